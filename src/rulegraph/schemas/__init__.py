"""Pydantic schemas for rule definitions and cascade diagnostics."""

from rulegraph.schemas.diagnostics import (
    AggregateTransformation,
    DebugReport,
    DebugStep,
    DetailTransformation,
    InterferenceFinding,
    RuleUsage,
)
from rulegraph.schemas.rules import RuleCatalog, RuleDefinition

__all__ = [
    "AggregateTransformation",
    "DebugReport",
    "DebugStep",
    "DetailTransformation",
    "InterferenceFinding",
    "RuleCatalog",
    "RuleDefinition",
    "RuleUsage",
]
