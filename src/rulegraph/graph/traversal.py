"""Resolve final descriptions by walking the provenance graph.

Each TextState is rewritten in place by exactly one cascade run, so a
detail node has at most one live continuation. The walk therefore follows
the first outgoing detail edge (discovery order) at every node; that is
also the tie-break if re-processing ever left more than one.
"""

from __future__ import annotations

import logging
from typing import Iterator

from rulegraph.config import get_settings
from rulegraph.core.exceptions import ResolutionMiss
from rulegraph.graph.model import GraphEdge, GraphNode, ProvenanceGraph
from rulegraph.schemas.diagnostics import DebugStep

logger = logging.getLogger(__name__)


def walk(
    graph: ProvenanceGraph,
    start: GraphNode,
    max_steps: int | None = None,
) -> Iterator[GraphEdge]:
    """Yield the detail edges followed from ``start``.

    Stops when a node has no outgoing detail edge, when the next node was
    already visited, right after an edge whose rule exits on match, or after
    ``max_steps`` edges.
    """
    if max_steps is None:
        max_steps = get_settings().MAX_TRAVERSAL_STEPS

    visited = {start.id}
    current = start
    for _ in range(max_steps):
        edges = graph.outgoing_detail_edges(current)
        if not edges:
            return
        edge = edges[0]
        if edge.target.id in visited:
            logger.warning("Cycle detected during traversal", extra={"node_id": current.id})
            return
        visited.add(edge.target.id)
        yield edge
        current = edge.target
        if edge.rule is not None and edge.rule.exit_on_match:
            return
    if not graph.outgoing_detail_edges(current):
        return
    logger.warning(
        "Traversal step limit reached",
        extra={"start_node_id": start.id, "max_steps": max_steps},
    )


def resolve_final_node(
    original: str,
    graph: ProvenanceGraph,
    max_steps: int | None = None,
) -> GraphNode | None:
    """Terminal detail node for ``original``, or None if it is not in the graph."""
    start = graph.find_start_node(original)
    if start is None:
        return None

    terminal = start
    for edge in walk(graph, start, max_steps):
        terminal = edge.target
    return terminal


def resolve_final(
    original: str,
    graph: ProvenanceGraph,
    max_steps: int | None = None,
    strict: bool = False,
) -> str:
    """Final text for ``original`` according to ``graph``.

    Args:
        original: Original description, matched case-insensitively
        graph: Finished provenance graph
        max_steps: Bound on the walk (default: settings.MAX_TRAVERSAL_STEPS)
        strict: Raise ResolutionMiss instead of passing the input through

    Returns:
        The terminal node's current text, or ``original`` unchanged when no
        detail node matches

    Raises:
        ResolutionMiss: If strict and no detail node matches
    """
    terminal = resolve_final_node(original, graph, max_steps)
    if terminal is None:
        if strict:
            raise ResolutionMiss(details={"original": original})
        logger.debug("No detail node for original text; passing through")
        return original
    return terminal.state.current


def debug_trail(
    graph: ProvenanceGraph,
    original: str,
    max_steps: int | None = None,
) -> list[DebugStep]:
    """Ordered steps applied to ``original`` along the resolved path."""
    if graph is None or original is None:
        return []

    start = graph.find_start_node(original)
    if start is None:
        return []

    steps: list[DebugStep] = []
    for index, edge in enumerate(walk(graph, start, max_steps), start=1):
        rule = edge.rule
        steps.append(
            DebugStep(
                label=f"{index}. {rule.display_name()}",
                pattern=rule.pattern,
                output=edge.record.output if edge.record is not None else edge.target.state.current,
                category=rule.category_tags[0] if rule.category_tags else None,
            )
        )
    return steps
