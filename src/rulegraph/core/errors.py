"""Error codes and diagnostic messages.

This module defines the error catalog for the rule cascade and the
provenance graph. Each error has:
- code: Unique identifier
- message: Technical description (for logs)
- recoverable: Whether processing continues after the error
- fatal_for_batch: Whether the whole batch must stop
"""

from dataclasses import dataclass


@dataclass
class ErrorDefinition:
    """Definition of a single error type."""

    code: str
    message: str
    recoverable: bool
    fatal_for_batch: bool


# Error catalog for cascade processing
ERROR_CATALOG: dict[str, dict] = {
    "RULE_001": {
        "code": "RULE_001",
        "message": "Rule pattern failed to compile",
        "recoverable": False,
        "fatal_for_batch": True,
    },
    "RULE_002": {
        "code": "RULE_002",
        "message": "Rule execution failed; step treated as no match",
        "recoverable": True,
        "fatal_for_batch": False,
    },
    "RULE_003": {
        "code": "RULE_003",
        "message": "Rule execution timed out; step treated as no match",
        "recoverable": True,
        "fatal_for_batch": False,
    },
    "RULE_004": {
        "code": "RULE_004",
        "message": "Rule definition is malformed",
        "recoverable": False,
        "fatal_for_batch": True,
    },
    "GRAPH_001": {
        "code": "GRAPH_001",
        "message": "Self-loop edge rejected",
        "recoverable": True,
        "fatal_for_batch": False,
    },
    "GRAPH_002": {
        "code": "GRAPH_002",
        "message": "Duplicate membership edge suppressed",
        "recoverable": True,
        "fatal_for_batch": False,
    },
    "RESOLVE_001": {
        "code": "RESOLVE_001",
        "message": "No detail node found for original text; returning input unchanged",
        "recoverable": True,
        "fatal_for_batch": False,
    },
    "RUN_001": {
        "code": "RUN_001",
        "message": "Categorization run was cancelled before all texts were processed",
        "recoverable": False,
        "fatal_for_batch": True,
    },
}


def get_error(error_code: str) -> ErrorDefinition:
    """Get error definition by code.

    Args:
        error_code: Error code (e.g., "RULE_001")

    Returns:
        ErrorDefinition with the catalog entry

    Raises:
        KeyError: If error code not found in catalog
    """
    if error_code not in ERROR_CATALOG:
        raise KeyError(f"Unknown error code: {error_code}")

    return ErrorDefinition(**ERROR_CATALOG[error_code])
