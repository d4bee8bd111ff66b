"""Custom exception classes for the rule cascade.

This module defines a hierarchy of exceptions used throughout the
cascade and graph pipeline. Each exception maps to a specific
error code defined in errors.py.
"""

from typing import Any


class RuleGraphError(Exception):
    """Base exception for all rule cascade errors.

    All custom exceptions inherit from this base class and include
    an error_code that maps to the error catalog.

    Attributes:
        error_code: Code from the error catalog (e.g., "RULE_001")
        details: Additional context about the error (for logging)
    """

    default_code = "RULE_002"

    def __init__(
        self,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize the exception.

        Args:
            error_code: Error code from errors.py (class default if omitted)
            details: Additional error context
        """
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.error_code)

    def __str__(self) -> str:
        if not self.details:
            return self.error_code
        context = ", ".join(f"{key}={value!r}" for key, value in self.details.items())
        return f"{self.error_code} ({context})"


class RuleCompilationError(RuleGraphError):
    """Raised when a rule pattern cannot be compiled.

    Always surfaced at rule construction, before any text is processed.
    Maps to error code RULE_001.
    """

    default_code = "RULE_001"


class RuleExecutionError(RuleGraphError):
    """Raised when applying a rule fails at match/replace time.

    Common causes:
    - Catastrophic backtracking hitting the match timeout (RULE_003)
    - Replacement template referencing a missing group (RULE_002)

    The engine never lets this escape: it is attached to the step's
    TransformationRecord and the step counts as "no match".
    """

    default_code = "RULE_002"


class RuleDefinitionError(RuleGraphError):
    """Raised when a rule definition mapping or YAML file is malformed.

    Maps to error code RULE_004.
    """

    default_code = "RULE_004"


class ResolutionMiss(RuleGraphError):
    """Raised by strict traversal when no start node matches the query.

    Non-strict traversal returns the query unchanged instead.
    Maps to error code RESOLVE_001.
    """

    default_code = "RESOLVE_001"


class BatchCancelledError(RuleGraphError):
    """Raised when a run is cancelled and the caller requested strict cancellation.

    Maps to error code RUN_001.
    """

    default_code = "RUN_001"


class GraphConsistencyWarning(UserWarning):
    """An edge was skipped while building the provenance graph.

    Recorded on the graph and logged, never raised.

    Attributes:
        error_code: GRAPH_001 (self-loop) or GRAPH_002 (duplicate membership)
        details: Node ids and rule id of the skipped edge
    """

    def __init__(self, error_code: str, details: dict[str, Any] | None = None):
        self.error_code = error_code
        self.details = details or {}
        super().__init__(error_code)
