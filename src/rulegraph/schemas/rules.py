"""Rule definition schema.

Rule catalogs live outside this package (YAML files, settings tables,
hand-written builders). This is the validated shape one entry must have
before it is compiled into a Rule.
"""

from pydantic import BaseModel, Field, field_validator


class RuleDefinition(BaseModel):
    """Uncompiled description of a single cascade rule."""

    pattern: str = Field(..., description="Regular expression matched case-insensitively")
    replacement: str = Field(default="", description="Replacement template (\\1, \\g<name>)")
    label: str | None = Field(None, description="Human-readable rule label")
    categories: list[str] = Field(default_factory=list, description="Category tags")
    exit_on_match: bool = Field(default=False, description="Freeze category and stop on match")
    retry_from_original: bool = Field(
        default=True, description="Retry against the original text when the current text does not match"
    )

    @field_validator("pattern")
    @classmethod
    def pattern_not_empty(cls, v: str) -> str:
        """Ensure the pattern is not empty."""
        if not v:
            raise ValueError("Pattern cannot be empty")
        return v

    @field_validator("categories")
    @classmethod
    def dedupe_categories(cls, v: list[str]) -> list[str]:
        """Keep first occurrence of each tag, in order."""
        return list(dict.fromkeys(tag.strip() for tag in v if tag and tag.strip()))


class RuleCatalog(BaseModel):
    """A named, ordered list of rule definitions."""

    name: str | None = None
    rules: list[RuleDefinition] = Field(default_factory=list)
