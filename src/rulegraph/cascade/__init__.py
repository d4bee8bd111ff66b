"""Rule cascade: text states, rules and the engine that applies them.

Kept free of any graph code so it can run on its own when provenance is
not needed.
"""

from rulegraph.cascade.builder import RuleBuilder
from rulegraph.cascade.engine import (
    BatchResult,
    CancellationToken,
    CascadeEngine,
    TransformationRecord,
)
from rulegraph.cascade.loader import load_rules, load_rules_from_yaml
from rulegraph.cascade.rules import Rule, RuleOptions, RuleResult, UsageAccumulator
from rulegraph.cascade.state import TextState

__all__ = [
    "BatchResult",
    "CancellationToken",
    "CascadeEngine",
    "Rule",
    "RuleBuilder",
    "RuleOptions",
    "RuleResult",
    "TextState",
    "TransformationRecord",
    "UsageAccumulator",
    "load_rules",
    "load_rules_from_yaml",
]
