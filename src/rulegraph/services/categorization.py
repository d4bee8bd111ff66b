"""Categorization service: raw strings in, provenance graph out.

Wires the cascade engine, the graph builder and the traversal together and
writes resolved categories back onto caller objects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence, TypeVar

from rulegraph.cascade.engine import BatchResult, CancellationToken, CascadeEngine
from rulegraph.cascade.rules import Rule
from rulegraph.cascade.state import TextState
from rulegraph.config import Settings, get_settings
from rulegraph.core.exceptions import BatchCancelledError
from rulegraph.graph.builder import ProvenanceGraphBuilder
from rulegraph.graph.model import EdgeKind, ProvenanceGraph
from rulegraph.graph.traversal import resolve_final, walk
from rulegraph.schemas.diagnostics import (
    AggregateTransformation,
    DebugReport,
    DetailTransformation,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CategorizationResult:
    """Outcome of one categorization run."""

    states: list[TextState] = field(default_factory=list)
    batch: BatchResult = field(default_factory=BatchResult)
    graph: ProvenanceGraph | None = None
    _by_original: dict[str, TextState] = field(default_factory=dict, init=False, repr=False)
    _by_folded: dict[str, TextState] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        for state in self.states:
            self._by_original.setdefault(state.original, state)
            self._by_folded.setdefault(state.original.casefold(), state)

    def state_for(self, original: str) -> TextState | None:
        """TextState created for ``original``; exact match first, then ignoring case."""
        original = original or ""
        state = self._by_original.get(original)
        if state is None:
            state = self._by_folded.get(original.casefold())
        return state

    def resolve(self, original: str) -> str:
        """Final text for ``original``; pass-through when it was never processed."""
        if self.graph is None:
            state = self.state_for(original)
            return state.current if state is not None else original
        return resolve_final(original, self.graph)


class CategorizationService:
    """Runs a rule cascade over a batch of descriptions."""

    def __init__(self, rules: Sequence[Rule], settings: Settings | None = None):
        """Initialize the service.

        Args:
            rules: Ordered rule cascade
            settings: Runtime settings (defaults to get_settings())
        """
        self.settings = settings or get_settings()
        self.engine = CascadeEngine(
            rules,
            match_timeout=self.settings.MATCH_TIMEOUT_SECONDS,
            detect_interference=self.settings.DETECT_INTERFERENCE,
        )

    def categorize(
        self,
        raw_texts: Iterable[str],
        build_graph: bool = True,
        cancel_token: CancellationToken | None = None,
        strict_cancel: bool = False,
    ) -> CategorizationResult:
        """Run the cascade over ``raw_texts``.

        Duplicate inputs are collapsed (first occurrence wins) so every
        distinct description gets exactly one TextState.

        Args:
            raw_texts: Descriptions to categorize
            build_graph: Build the provenance graph from the records
            cancel_token: Optional token to stop the batch between states
            strict_cancel: Raise instead of returning a partial result

        Returns:
            CategorizationResult with states, batch output and graph

        Raises:
            BatchCancelledError: If strict_cancel and some states were skipped
        """
        states = [TextState(text) for text in _unique(raw_texts)]

        batch = self.engine.run_batch(
            states,
            max_workers=self.settings.MAX_WORKERS,
            cancel_token=cancel_token,
        )

        if batch.cancelled:
            logger.warning(
                "Categorization run cancelled",
                extra={"processed_count": len(batch.processed), "skipped_count": len(batch.skipped)},
            )
            if strict_cancel:
                raise BatchCancelledError(
                    details={"processed": len(batch.processed), "skipped": len(batch.skipped)}
                )

        graph = None
        if build_graph:
            builder = ProvenanceGraphBuilder(self.settings.AGGREGATION_MODE)
            # Root nodes first so their ids follow input order
            for state in batch.processed:
                builder.ensure_state(state)
            builder.add_records(batch.records)
            graph = builder.build()

        logger.info(
            "Categorization complete",
            extra={
                "states_count": len(states),
                "final_count": sum(1 for state in states if state.is_final),
                "changed_count": sum(1 for state in states if state.ever_changed),
                "errors_count": len(batch.errors),
                "interference_count": len(batch.interference),
            },
        )
        return CategorizationResult(states=states, batch=batch, graph=graph)


def assign_categories(
    items: Iterable[T],
    get_text: Callable[[T], str],
    set_category: Callable[[T, str], None],
    result: CategorizationResult,
) -> int:
    """Write the resolved category back onto caller objects.

    A state frozen by an exit rule supplies its category directly; anything
    else is resolved through the graph.

    Args:
        items: Caller domain objects
        get_text: Extracts the original description from an item
        set_category: Stores the resolved text on an item
        result: Output of CategorizationService.categorize

    Returns:
        Number of items whose category differs from their description
    """
    updated = 0
    for item in items:
        text = get_text(item)
        state = result.state_for(text)
        if state is not None and state.category:
            category = state.category
        else:
            category = result.resolve(text)
        set_category(item, category)
        if category != text:
            updated += 1
    return updated


def debug_report(state: TextState, graph: ProvenanceGraph) -> DebugReport:
    """Collect the detail and aggregate transformations of one state."""
    node = graph.node_for_state(state)
    report = DebugReport(
        node_id=node.id if node is not None else None,
        original=state.original,
        final=state.current,
        is_final=state.is_final,
        category=state.category,
    )
    if node is None:
        return report

    chain = {id(state)}
    for edge in walk(graph, node):
        chain.add(id(edge.target.state))
        record = edge.record
        report.detail_transformations.append(
            DetailTransformation(
                rule_id=edge.rule.rule_id,
                pattern=edge.rule.pattern,
                replacement=edge.rule.replacement,
                category_tags=list(edge.rule.category_tags),
                input=record.input,
                output=record.output,
                matched=record.matched,
                rule_match_count=edge.rule.match_count,
            )
        )

    for edge in graph.edges_of_kind(EdgeKind.AGGREGATE):
        if not any(id(record.source) in chain for record in edge.records):
            continue
        report.aggregate_transformations.append(
            AggregateTransformation(
                rule_id=edge.rule.rule_id,
                pattern=edge.rule.pattern,
                transformation_count=edge.count,
                inputs=[record.input for record in edge.records],
                outputs=[record.output for record in edge.records],
            )
        )
    return report


def _unique(texts: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for text in texts:
        text = text if text is not None else ""
        if text in seen:
            continue
        seen.add(text)
        unique.append(text)
    return unique
