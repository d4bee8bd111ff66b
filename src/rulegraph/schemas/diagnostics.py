"""Structured diagnostic schemas.

These models carry what the cascade learns about itself (interference
between rules, per-rule usage, step-by-step trails) to whatever logs or
renders it. Nothing here formats user-facing text.
"""

from pydantic import BaseModel, ConfigDict, Field


class InterferenceFinding(BaseModel):
    """An earlier rule whose rewrite stops a later rule from matching."""

    model_config = ConfigDict(frozen=True)

    rule_id: str = Field(..., description="Rule that matched the original but not the current text")
    interfering_rule_id: str = Field(..., description="Earlier rule whose output breaks the match")
    original: str = Field(..., description="Original text both rules were simulated on")
    message: str = Field(default="earlier rule rewrites the text so the later rule no longer matches")


class RuleUsage(BaseModel):
    """Per-rule counters collected during one run."""

    rule_id: str
    match_count: int = Field(default=0, description="Applications that changed the text")
    applications: int = Field(default=0, description="Applications attempted")
    total_elapsed: float = Field(default=0.0, description="Seconds spent matching")


class DebugStep(BaseModel):
    """A single step of the rewrite trail for one original text."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., description="Step number plus rule label")
    pattern: str
    output: str = Field(..., description="Text after this step")
    category: str | None = Field(None, description="First category tag of the rule, if any")


class DetailTransformation(BaseModel):
    """One detail edge touching the reported state."""

    rule_id: str
    pattern: str
    replacement: str
    category_tags: list[str] = Field(default_factory=list)
    input: str
    output: str
    matched: bool
    rule_match_count: int


class AggregateTransformation(BaseModel):
    """One aggregate edge in the graph."""

    rule_id: str
    pattern: str
    transformation_count: int
    inputs: list[str] = Field(default_factory=list)
    outputs: list[str] = Field(default_factory=list)


class DebugReport(BaseModel):
    """Everything the graph knows about one TextState."""

    node_id: int | None = Field(None, description="Detail node id, None if the state is not in the graph")
    original: str
    final: str
    is_final: bool
    category: str | None = None
    detail_transformations: list[DetailTransformation] = Field(default_factory=list)
    aggregate_transformations: list[AggregateTransformation] = Field(default_factory=list)
