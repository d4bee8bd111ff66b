"""Fluent construction of ordered rule lists."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from rulegraph.cascade.rules import Rule, RuleOptions, merge_options

logger = logging.getLogger(__name__)


class RuleBuilder:
    """Collects rules in cascade order.

    Bulk operations (``categorize``, ``with_options``, ``exit_on_match``,
    ``ignore_retry``) apply to every rule added so far, so a catalog section
    is usually written as a few ``add`` calls followed by one of them.

    Example:
        >>> rules = (
        ...     RuleBuilder()
        ...     .add(r"esso|agip|q8", "Auto")
        ...     .categorize("Auto")
        ...     .exit_on_match()
        ...     .build()
        ... )
    """

    def __init__(self, rules: Iterable[Rule] | None = None):
        self._rules: list[Rule] = list(rules or [])

    def add(
        self,
        pattern: str,
        replacement: str = "",
        label: str | None = None,
        categories: Iterable[str] | None = None,
        options: RuleOptions = RuleOptions.CONTINUE,
    ) -> "RuleBuilder":
        """Compile and append one rule.

        Raises:
            RuleCompilationError: If the pattern is invalid
        """
        self._rules.append(Rule(pattern, replacement, label, categories, options))
        return self

    def add_rules(self, rules: Iterable[Rule]) -> "RuleBuilder":
        self._rules.extend(rules)
        return self

    def categorize(self, category: str) -> "RuleBuilder":
        """Tag every rule added so far with ``category``."""
        self._rules = [
            rule if category in rule.category_tags
            else rule.derive(category_tags=(*rule.category_tags, category))
            for rule in self._rules
        ]
        return self

    def with_options(self, options: RuleOptions) -> "RuleBuilder":
        """Merge ``options`` into every rule added so far.

        Conflicts (an exiting rule asked to continue) keep the stronger
        option and are logged as warnings.
        """
        merged_rules = []
        for rule in self._rules:
            merged, conflict = merge_options(rule.options, options)
            if conflict:
                logger.warning(
                    "Conflict merging rule options",
                    extra={
                        "rule_id": rule.rule_id,
                        "old_options": str(rule.options),
                        "requested_options": str(options),
                        "merged_options": str(merged),
                    },
                )
            merged_rules.append(rule if merged == rule.options else rule.derive(options=merged))
        self._rules = merged_rules
        return self

    def exit_on_match(self) -> "RuleBuilder":
        return self.with_options(RuleOptions.EXIT_ON_MATCH)

    def ignore_retry(self) -> "RuleBuilder":
        return self.with_options(RuleOptions.IGNORE_RETRY)

    def build(self) -> list[Rule]:
        return list(self._rules)

    @classmethod
    def combine(cls, *builders: "RuleBuilder") -> "RuleBuilder":
        """Concatenate builders in the given order."""
        combined = cls()
        for builder in builders:
            combined._rules.extend(builder._rules)
        return combined

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)
