"""Tests for the categorization service."""

from dataclasses import dataclass

import pytest

from rulegraph.cascade.engine import CancellationToken
from rulegraph.cascade.rules import Rule, RuleOptions
from rulegraph.config import Settings
from rulegraph.core.exceptions import BatchCancelledError
from rulegraph.graph.model import AggregationMode
from rulegraph.services.categorization import (
    CategorizationService,
    assign_categories,
    debug_report,
)


@dataclass
class Transaction:
    description: str
    category: str | None = None


@pytest.fixture
def catalog() -> list[Rule]:
    return [
        Rule(r"^paga\s+\d+$", "Stipendio", label="salary", category_tags=["Entrate"],
             options=RuleOptions.EXIT_ON_MATCH),
        Rule("bonifico", "BON", label="abbreviate"),
        Rule(r"bonifico iban\d+", "Bonifico", label="transfer", category_tags=["Bonifici"]),
        Rule("pizza", "FOOD", label="food", category_tags=["Cibo"]),
    ]


class TestCategorize:
    """Tests for CategorizationService.categorize."""

    def test_duplicates_collapsed_in_first_seen_order(self, catalog, sequential_settings):
        service = CategorizationService(catalog, sequential_settings)

        result = service.categorize(["pizza", "PAGA 12345", "pizza", "Bonifico iban1"])

        assert [state.original for state in result.states] == ["pizza", "PAGA 12345", "Bonifico iban1"]

    def test_results_and_graph(self, catalog, sequential_settings):
        service = CategorizationService(catalog, sequential_settings)

        result = service.categorize(["pizza", "PAGA 12345", "Bonifico iban1", "GOOGLE PAY"])

        assert result.graph is not None
        assert result.graph.aggregation_mode is AggregationMode.VALUE
        assert result.resolve("pizza") == "FOOD"
        assert result.resolve("PAGA 12345") == "Stipendio"
        assert result.resolve("Bonifico iban1") == "Bonifico"
        assert result.resolve("GOOGLE PAY") == "GOOGLE PAY"
        assert len(result.batch.interference) == 1

    def test_root_node_ids_follow_input_order(self, catalog, sequential_settings):
        texts = ["pizza", "PAGA 12345", "Bonifico iban1"]
        result = CategorizationService(catalog, sequential_settings).categorize(texts)

        ids = [result.graph.node_for_state(state).id for state in result.states]
        assert ids == sorted(ids)

    def test_parallel_run_resolves_like_sequential(self, catalog, sequential_settings, parallel_settings):
        texts = [f"pizza {i}" for i in range(30)] + [f"Bonifico iban{i}" for i in range(30)]

        sequential = CategorizationService(catalog, sequential_settings).categorize(texts)
        parallel = CategorizationService(catalog, parallel_settings).categorize(texts)

        assert [sequential.resolve(text) for text in texts] == [parallel.resolve(text) for text in texts]
        assert len(sequential.graph.nodes) == len(parallel.graph.nodes)

    def test_without_graph(self, catalog, sequential_settings):
        result = CategorizationService(catalog, sequential_settings).categorize(
            ["pizza"], build_graph=False
        )

        assert result.graph is None
        assert result.resolve("pizza") == "FOOD"
        assert result.resolve("mai visto") == "mai visto"

    def test_aggregation_mode_from_settings(self, catalog):
        settings = Settings(MAX_WORKERS=1, AGGREGATION_MODE="depth")

        result = CategorizationService(catalog, settings).categorize(["pizza"])

        assert result.graph.aggregation_mode is AggregationMode.DEPTH

    def test_cancelled_run_returns_partial_result(self, catalog, sequential_settings):
        token = CancellationToken()
        token.cancel()

        result = CategorizationService(catalog, sequential_settings).categorize(
            ["pizza", "sushi"], cancel_token=token
        )

        assert result.batch.cancelled is True
        assert result.graph.detail_nodes() == []
        assert result.resolve("pizza") == "pizza"

    def test_strict_cancel_raises(self, catalog, sequential_settings):
        token = CancellationToken()
        token.cancel()
        service = CategorizationService(catalog, sequential_settings)

        with pytest.raises(BatchCancelledError) as exc_info:
            service.categorize(["pizza"], cancel_token=token, strict_cancel=True)

        assert exc_info.value.error_code == "RUN_001"
        assert exc_info.value.details == {"processed": 0, "skipped": 1}


class TestAssignCategories:
    """Tests for writing categories back onto caller objects."""

    def test_assigns_frozen_category_or_resolved_text(self, catalog, sequential_settings):
        transactions = [
            Transaction("PAGA 12345"),
            Transaction("pizza"),
            Transaction("Pizza"),
            Transaction("GOOGLE PAY"),
        ]
        result = CategorizationService(catalog, sequential_settings).categorize(
            t.description for t in transactions
        )

        updated = assign_categories(
            transactions,
            lambda t: t.description,
            lambda t, category: setattr(t, "category", category),
            result,
        )

        assert [t.category for t in transactions] == ["Stipendio", "FOOD", "FOOD", "GOOGLE PAY"]
        assert updated == 3

    def test_inputs_differing_only_in_case_keep_their_own_result(self, catalog, sequential_settings):
        transactions = [Transaction("Pizza Hut"), Transaction("PIZZA HUT")]
        result = CategorizationService(catalog, sequential_settings).categorize(
            t.description for t in transactions
        )

        assign_categories(
            transactions,
            lambda t: t.description,
            lambda t, category: setattr(t, "category", category),
            result,
        )

        assert [t.category for t in transactions] == ["FOOD Hut", "FOOD HUT"]
        assert result.state_for("PIZZA HUT").current == "FOOD HUT"
        assert result.state_for("pizza hut").current == "FOOD Hut"

    def test_large_batch(self, catalog, parallel_settings):
        transactions = [Transaction(f"pizza {i}") for i in range(5000)]
        result = CategorizationService(catalog, parallel_settings).categorize(
            t.description for t in transactions
        )

        updated = assign_categories(
            transactions,
            lambda t: t.description,
            lambda t, category: setattr(t, "category", category),
            result,
        )

        assert updated == 5000
        assert transactions[4321].category == "FOOD 4321"

    def test_unknown_items_pass_through(self, catalog, sequential_settings):
        result = CategorizationService(catalog, sequential_settings).categorize(["pizza"])
        transactions = [Transaction("mai visto")]

        updated = assign_categories(
            transactions,
            lambda t: t.description,
            lambda t, category: setattr(t, "category", category),
            result,
        )

        assert transactions[0].category == "mai visto"
        assert updated == 0


class TestDebugReport:
    """Tests for debug_report."""

    def test_report_for_retried_state(self, catalog, sequential_settings):
        result = CategorizationService(catalog, sequential_settings).categorize(["Bonifico iban1"])
        state = result.state_for("Bonifico iban1")

        report = debug_report(state, result.graph)

        assert report.node_id == result.graph.node_for_state(state).id
        assert report.final == "Bonifico"
        assert report.is_final is False
        assert [t.rule_id for t in report.detail_transformations] == ["abbreviate", "transfer"]
        assert report.detail_transformations[1].input == "Bonifico iban1"
        assert report.detail_transformations[1].category_tags == ["Bonifici"]
        assert report.detail_transformations[1].rule_match_count == 1
        assert sorted(t.rule_id for t in report.aggregate_transformations) == ["abbreviate", "transfer"]

    def test_report_for_state_outside_graph(self, catalog, sequential_settings):
        result = CategorizationService(catalog, sequential_settings).categorize(["pizza"])
        other = CategorizationService(catalog, sequential_settings).categorize(["sushi"])

        report = debug_report(other.states[0], result.graph)

        assert report.node_id is None
        assert report.detail_transformations == []
