"""Mutable text record threaded through the rule cascade."""

from __future__ import annotations

from dataclasses import dataclass, field, replace


@dataclass(eq=False)
class TextState:
    """One input description and everything the cascade did to it.

    Equality and hashing are by identity: two states with the same text are
    still two different records in the provenance graph.

    ``current`` equals ``original`` until the first successful rewrite, and
    once ``is_final`` is set no rule may change ``current`` again.
    """

    original: str
    current: str = field(default=None)  # type: ignore[assignment]
    category: str | None = None
    is_final: bool = False
    changed_this_step: bool = False
    ever_changed: bool = False
    depth: int = 0
    is_snapshot: bool = field(default=False, repr=False)

    def __post_init__(self) -> None:
        if self.original is None:
            self.original = ""
        if self.current is None:
            self.current = self.original

    def begin_step(self) -> None:
        """Reset the per-step change flag before a rule is applied."""
        self.changed_this_step = False

    def update(self, text: str) -> bool:
        """Commit a rewrite; returns True if the text actually changed."""
        if self.is_final:
            raise RuntimeError("cannot rewrite a state after an exit rule matched")
        if text == self.current:
            self.changed_this_step = False
            return False
        self.current = text
        self.changed_this_step = True
        self.ever_changed = True
        self.depth += 1
        return True

    def freeze(self) -> None:
        """Mark the state final and take the current text as its category."""
        self.is_final = True
        self.category = self.current

    def snapshot(self) -> "TextState":
        """Copy of the state as it is now, as a distinct record."""
        return replace(self, is_snapshot=True)

    @property
    def tier_text(self) -> str:
        """Text this record stood for when it entered the graph.

        The live state keeps being rewritten after its first record, so it
        always stands for its original text; snapshots never change.
        """
        return self.current if self.is_snapshot else self.original

    @property
    def tier_depth(self) -> int:
        return self.depth if self.is_snapshot else 0

    def __repr__(self) -> str:
        return (
            f"TextState(original={self.original!r}, current={self.current!r}, "
            f"category={self.category!r}, is_final={self.is_final}, depth={self.depth})"
        )
