"""Tests for Rule compilation, application and counters."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from rulegraph.cascade.rules import Rule, RuleOptions, UsageAccumulator, merge_options
from rulegraph.core.exceptions import RuleCompilationError


class TestCompilation:
    """Tests for pattern compilation."""

    def test_invalid_pattern_raises_compilation_error(self):
        """An unbalanced group fails at construction, not at apply time."""
        with pytest.raises(RuleCompilationError) as exc_info:
            Rule("(unclosed", "x", label="broken")

        assert exc_info.value.error_code == "RULE_001"
        assert exc_info.value.details["label"] == "broken"

    def test_label_defaults_to_pattern(self):
        rule = Rule(r"iban\d+", "IBAN")

        assert rule.label == r"iban\d+"
        assert rule.rule_id == r"iban\d+"

    def test_category_tags_are_an_ordered_set(self):
        rule = Rule("esso", "Auto", category_tags=["Auto", "Carburante", "Auto"])

        assert rule.category_tags == ("Auto", "Carburante")

    def test_default_options(self):
        """Rules continue and retry from the original unless told otherwise."""
        rule = Rule("pizza", "FOOD")

        assert rule.exit_on_match is False
        assert rule.retry_from_original is True

    def test_ignore_retry_option(self):
        rule = Rule("pizza", "FOOD", options=RuleOptions.CONTINUE | RuleOptions.IGNORE_RETRY)

        assert rule.retry_from_original is False


class TestApplication:
    """Tests for match+replace."""

    def test_match_is_case_insensitive(self):
        result = Rule("pizza", "FOOD").apply_to("Una PIZZA margherita")

        assert result.matched is True
        assert result.output == "Una FOOD margherita"
        assert result.changed is True

    def test_no_match(self):
        result = Rule("pizza", "FOOD").apply_to("Bonifico da GOOGLE PAY")

        assert result.matched is False
        assert result.output == result.input
        assert result.changed is False

    def test_match_without_textual_change(self):
        result = Rule("food", "FOOD").apply_to("FOOD")

        assert result.matched is True
        assert result.changed is False

    def test_group_references(self):
        result = Rule(r"(\d{2})/(\d{2})", r"\2-\1").apply_to("del 12/04")

        assert result.output == "del 04-12"

    def test_bad_group_reference_is_returned_as_error(self):
        result = Rule("(a)", r"\2", label="bad-group").apply_to("abc")

        assert result.error is not None
        assert result.error.error_code == "RULE_002"
        assert result.matched is False
        assert result.output == "abc"

    def test_timeout_is_returned_as_error(self):
        """Every start position scans to the end of the text, so the search is quadratic."""
        rule = Rule("a*[bc][de]", "x", label="slow")
        text = "a" * 200_000

        result = rule.apply_to(text, timeout=0.05)

        assert result.error is not None
        assert result.error.error_code == "RULE_003"
        assert result.error.details["timeout"] == 0.05
        assert result.matched is False
        assert result.output == text

    def test_simulate_does_not_touch_counters(self):
        rule = Rule("pizza", "FOOD")

        rule.simulate("pizza")

        assert rule.match_count == 0
        assert rule.applications == 0

    def test_derive_keeps_definition_and_resets_counters(self):
        rule = Rule("pizza", "FOOD", label="food")
        rule.add_usage(3, 5, 0.1)

        derived = rule.derive(options=RuleOptions.EXIT_ON_MATCH)

        assert derived.pattern == "pizza"
        assert derived.label == "food"
        assert derived.exit_on_match is True
        assert derived.match_count == 0


class TestMergeOptions:
    """Tests for option precedence."""

    def test_exit_wins_over_continue_with_conflict(self):
        merged, conflict = merge_options(RuleOptions.EXIT_ON_MATCH, RuleOptions.CONTINUE)

        assert merged == RuleOptions.EXIT_ON_MATCH
        assert conflict is True

    def test_raising_to_exit_is_not_a_conflict(self):
        merged, conflict = merge_options(RuleOptions.CONTINUE, RuleOptions.EXIT_ON_MATCH)

        assert merged == RuleOptions.EXIT_ON_MATCH
        assert conflict is False

    def test_ignore_retry_merges_freely(self):
        merged, conflict = merge_options(RuleOptions.CONTINUE, RuleOptions.IGNORE_RETRY)

        assert merged == RuleOptions.CONTINUE | RuleOptions.IGNORE_RETRY
        assert conflict is False


class TestUsageAccumulator:
    """Tests for per-run counters."""

    def test_usage_rows(self):
        rule = Rule("pizza", "FOOD", label="food")
        usage = UsageAccumulator()

        usage.record(rule, True, 0.5)
        usage.record(rule, False, 0.25)

        rows = usage.usage()
        assert len(rows) == 1
        assert rows[0].rule_id == "food"
        assert rows[0].match_count == 1
        assert rows[0].applications == 2
        assert rows[0].total_elapsed == pytest.approx(0.75)

    def test_merge_into_rules_resets_accumulator(self):
        rule = Rule("pizza", "FOOD")
        usage = UsageAccumulator()
        usage.record(rule, True, 0.1)

        usage.merge_into_rules()
        usage.merge_into_rules()

        assert rule.match_count == 1
        assert rule.applications == 1
        assert usage.usage() == []

    def test_concurrent_records_are_not_lost(self):
        rule = Rule("pizza", "FOOD")
        usage = UsageAccumulator()

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda _: usage.record(rule, True, 0.0), range(1000)))
        usage.merge_into_rules()

        assert rule.match_count == 1000
        assert rule.applications == 1000


class TestDisplayName:
    """Tests for Rule.display_name."""

    def test_label_is_truncated_with_ellipsis(self):
        rule = Rule("pizza", "FOOD", label="Regola descrittiva lunghissima")

        assert rule.display_name(10) == "Regola de…"

    def test_falls_back_to_pattern(self):
        rule = Rule("pizza", "FOOD")

        assert rule.display_name() == "pizza"

    def test_blank_label_falls_back_to_pattern(self):
        rule = Rule("pizza", "FOOD", label="   ")

        assert rule.display_name() == "pizza"

    def test_edge_lengths(self):
        rule = Rule("pizza", "FOOD")

        assert rule.display_name(0) == ""
        assert rule.display_name(1) == "…"
        assert rule.display_name(5) == "pizza"
