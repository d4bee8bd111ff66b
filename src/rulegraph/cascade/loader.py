"""Load rule lists from plain mappings or YAML files."""

import logging
from pathlib import Path
from typing import Any, Iterable

import yaml
from pydantic import ValidationError

from rulegraph.cascade.rules import Rule, RuleOptions
from rulegraph.core.exceptions import RuleDefinitionError
from rulegraph.schemas.rules import RuleCatalog, RuleDefinition

logger = logging.getLogger(__name__)


def rule_from_definition(definition: RuleDefinition) -> Rule:
    """Compile one validated definition.

    Raises:
        RuleCompilationError: If the pattern is invalid
    """
    options = RuleOptions.EXIT_ON_MATCH if definition.exit_on_match else RuleOptions.CONTINUE
    if not definition.retry_from_original:
        options |= RuleOptions.IGNORE_RETRY
    return Rule(
        definition.pattern,
        definition.replacement,
        definition.label,
        definition.categories,
        options,
    )


def load_rules(entries: Iterable[dict[str, Any]]) -> list[Rule]:
    """Validate and compile rule mappings, keeping their order.

    Raises:
        RuleDefinitionError: If an entry does not match RuleDefinition
        RuleCompilationError: If a pattern is invalid
    """
    rules: list[Rule] = []
    for index, entry in enumerate(entries):
        try:
            definition = RuleDefinition.model_validate(entry)
        except ValidationError as e:
            raise RuleDefinitionError(
                details={"index": index, "errors": e.errors(include_url=False)}
            ) from e
        rules.append(rule_from_definition(definition))
    return rules


def load_rules_from_yaml(path: str | Path) -> list[Rule]:
    """Load a rule catalog from YAML.

    The file is either a list of rule mappings or a mapping with a ``rules``
    key (and an optional ``name``).
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return []
    if isinstance(data, list):
        data = {"rules": data}
    if not isinstance(data, dict):
        raise RuleDefinitionError(details={"path": str(path), "reason": "expected a list or a mapping"})

    try:
        catalog = RuleCatalog.model_validate(data)
    except ValidationError as e:
        raise RuleDefinitionError(
            details={"path": str(path), "errors": e.errors(include_url=False)}
        ) from e

    rules = [rule_from_definition(definition) for definition in catalog.rules]
    logger.info("Loaded rule catalog", extra={"catalog": catalog.name, "rules_count": len(rules)})
    return rules
