"""Rule compilation, options and usage counters (cascade domain).

Patterns are compiled with the ``regex`` library rather than ``re`` because
it supports a per-call ``timeout``; a pathological pattern on a long
description then fails one step instead of hanging a worker.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Iterable

import regex

from rulegraph.core.exceptions import RuleCompilationError, RuleExecutionError
from rulegraph.schemas.diagnostics import RuleUsage

logger = logging.getLogger(__name__)


class RuleOptions(enum.Flag):
    """Behavioral flags of a rule."""

    CONTINUE = 1
    EXIT_ON_MATCH = 2
    IGNORE_RETRY = 4


def merge_options(old: RuleOptions, new: RuleOptions) -> tuple[RuleOptions, bool]:
    """Combine two option sets.

    EXIT_ON_MATCH is stronger than CONTINUE: asking an exiting rule to
    continue keeps it exiting and reports a conflict. Raising a continuing
    rule to EXIT_ON_MATCH drops CONTINUE silently. IGNORE_RETRY merges freely.

    Returns:
        (merged options, conflict flag)
    """
    combined = old | new
    conflict = False

    if RuleOptions.EXIT_ON_MATCH in old and RuleOptions.CONTINUE in new:
        conflict = True
    if RuleOptions.EXIT_ON_MATCH in combined:
        combined &= ~RuleOptions.CONTINUE

    return combined, conflict


@dataclass(frozen=True)
class RuleResult:
    """Outcome of running one rule over one string."""

    input: str
    output: str
    matched: bool
    elapsed: float = 0.0
    error: RuleExecutionError | None = None

    @property
    def changed(self) -> bool:
        return self.matched and self.output != self.input


class Rule:
    """Compiled pattern/replacement unit of the cascade.

    Everything except the usage counters is fixed at construction; the
    counters are shared by every worker applying the rule and are only
    touched under ``_lock``.

    Example:
        >>> rule = Rule(r"iban\\d+", "IBAN", label="iban")
        >>> rule.apply_to("Bonifico iban1234").output
        'Bonifico IBAN'
    """

    def __init__(
        self,
        pattern: str,
        replacement: str = "",
        label: str | None = None,
        category_tags: Iterable[str] | None = None,
        options: RuleOptions = RuleOptions.CONTINUE,
    ):
        """Compile the rule.

        Args:
            pattern: Regular expression, matched case-insensitively
            replacement: Replacement template (``\\1`` / ``\\g<name>`` syntax)
            label: Human-readable label (defaults to the pattern)
            category_tags: Ordered category tags, duplicates dropped
            options: RuleOptions flags

        Raises:
            RuleCompilationError: If the pattern is invalid
        """
        try:
            self._compiled = regex.compile(pattern, regex.IGNORECASE)
        except (regex.error, TypeError) as e:
            raise RuleCompilationError(
                details={"pattern": pattern, "label": label, "reason": str(e)}
            ) from e

        self._replacement = replacement or ""
        self._label = label
        self._category_tags = tuple(dict.fromkeys(category_tags or ()))
        self._options = options

        self._lock = threading.Lock()
        self._match_count = 0
        self._applications = 0
        self._total_elapsed = 0.0

    # Definition

    @property
    def pattern(self) -> str:
        return self._compiled.pattern

    @property
    def replacement(self) -> str:
        return self._replacement

    @property
    def label(self) -> str:
        return self._label or self.pattern

    @property
    def rule_id(self) -> str:
        return self.label

    def display_name(self, max_length: int = 60) -> str:
        """Label (or pattern when the label is blank) cut to ``max_length`` with an ellipsis."""
        if max_length <= 0:
            return ""
        source = self._label if self._label and self._label.strip() else self.pattern
        if len(source) <= max_length:
            return source
        return source[: max_length - 1] + "…"

    @property
    def category_tags(self) -> tuple[str, ...]:
        return self._category_tags

    @property
    def options(self) -> RuleOptions:
        return self._options

    @property
    def exit_on_match(self) -> bool:
        return RuleOptions.EXIT_ON_MATCH in self._options

    @property
    def retry_from_original(self) -> bool:
        return RuleOptions.IGNORE_RETRY not in self._options

    def derive(
        self,
        *,
        options: RuleOptions | None = None,
        category_tags: Iterable[str] | None = None,
    ) -> "Rule":
        """New rule sharing this definition, with options or tags replaced.

        Counters start from zero on the derived rule.
        """
        return Rule(
            self.pattern,
            self._replacement,
            self._label,
            self._category_tags if category_tags is None else category_tags,
            self._options if options is None else options,
        )

    # Application

    def apply_to(self, text: str, timeout: float | None = None) -> RuleResult:
        """Run match+replace on ``text`` without touching counters.

        Execution failures are returned on the result, never raised.
        """
        text = text or ""
        started = time.perf_counter()
        try:
            output, replacements = self._compiled.subn(self._replacement, text, timeout=timeout)
        except TimeoutError as e:
            error = RuleExecutionError(
                "RULE_003", details={"rule_id": self.rule_id, "timeout": timeout, "reason": str(e)}
            )
            return RuleResult(text, text, False, time.perf_counter() - started, error)
        except (regex.error, IndexError) as e:
            error = RuleExecutionError(
                "RULE_002", details={"rule_id": self.rule_id, "reason": str(e)}
            )
            return RuleResult(text, text, False, time.perf_counter() - started, error)

        return RuleResult(text, output, replacements > 0, time.perf_counter() - started)

    def simulate(self, text: str, timeout: float | None = None) -> RuleResult:
        """Apply the rule to ``text`` with no side effects at all."""
        return self.apply_to(text, timeout=timeout)

    # Counters

    def add_usage(self, match_count: int, applications: int, elapsed: float) -> None:
        """Fold a run's counters into the rule's totals."""
        with self._lock:
            self._match_count += match_count
            self._applications += applications
            self._total_elapsed += elapsed

    @property
    def match_count(self) -> int:
        with self._lock:
            return self._match_count

    @property
    def applications(self) -> int:
        with self._lock:
            return self._applications

    @property
    def total_elapsed(self) -> float:
        with self._lock:
            return self._total_elapsed

    def __repr__(self) -> str:
        return (
            f"Rule(pattern={self.pattern!r}, replacement={self._replacement!r}, "
            f"categories={list(self._category_tags)}, options={self._options}, "
            f"match_count={self.match_count})"
        )


class UsageAccumulator:
    """Per-run rule counters, merged into the rules when the run ends."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: dict[Rule, list] = {}

    def record(self, rule: Rule, changed: bool, elapsed: float) -> None:
        with self._lock:
            counters = self._counters.setdefault(rule, [0, 0, 0.0])
            if changed:
                counters[0] += 1
            counters[1] += 1
            counters[2] += elapsed

    def usage(self) -> list[RuleUsage]:
        """Snapshot of this run's counters, one row per rule touched."""
        with self._lock:
            return [
                RuleUsage(
                    rule_id=rule.rule_id,
                    match_count=matches,
                    applications=applications,
                    total_elapsed=elapsed,
                )
                for rule, (matches, applications, elapsed) in self._counters.items()
            ]

    def merge_into_rules(self) -> None:
        """Add this run's counters to each rule's totals and reset."""
        with self._lock:
            counters, self._counters = self._counters, {}
        for rule, (matches, applications, elapsed) in counters.items():
            rule.add_usage(matches, applications, elapsed)
            logger.debug(
                "Rule usage merged",
                extra={"rule_id": rule.rule_id, "match_count": matches, "applications": applications},
            )
