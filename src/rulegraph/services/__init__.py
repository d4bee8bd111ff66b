"""Orchestration services."""

from rulegraph.services.categorization import (
    CategorizationResult,
    CategorizationService,
    assign_categories,
    debug_report,
)

__all__ = [
    "CategorizationResult",
    "CategorizationService",
    "assign_categories",
    "debug_report",
]
