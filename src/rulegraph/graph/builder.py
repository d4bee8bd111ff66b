"""Provenance graph construction from the engine's record stream.

Records may arrive in any order across states (and from several threads);
the builder keys everything by state identity or tier value, so the result
does not depend on interleaving. Node ids are handed out in the order
states are first seen.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from typing import Hashable, Iterable

from rulegraph.cascade.engine import TransformationRecord
from rulegraph.cascade.rules import Rule
from rulegraph.cascade.state import TextState
from rulegraph.core.exceptions import GraphConsistencyWarning
from rulegraph.graph.model import (
    AggregationMode,
    EdgeKind,
    GraphEdge,
    GraphNode,
    NodeKind,
    ProvenanceGraph,
)

logger = logging.getLogger(__name__)


class ProvenanceGraphBuilder:
    """Turns TransformationRecords into deduplicated nodes and edges.

    Example:
        >>> builder = ProvenanceGraphBuilder()
        >>> builder.add_records(engine.run_state(state))
        >>> graph = builder.build()
    """

    def __init__(self, aggregation_mode: AggregationMode | str = AggregationMode.VALUE):
        """Initialize the builder.

        Args:
            aggregation_mode: How detail nodes are grouped into tiers
                ("instance", "value" or legacy "depth")
        """
        self.aggregation_mode = AggregationMode(aggregation_mode)

        # Single critical section for ids, lookups and node/edge lists
        self._lock = threading.Lock()
        self._next_id = 0
        self._nodes: list[GraphNode] = []
        self._edges: list[GraphEdge] = []

        self._detail_by_state: dict[TextState, GraphNode] = {}
        self._start_by_original: dict[str, GraphNode] = {}
        self._start_by_folded: dict[str, GraphNode] = {}
        self._aggregate_by_tier: dict[Hashable, GraphNode] = {}
        self._memberships: set[tuple[int, int]] = set()
        self._aggregate_edges: dict[tuple[int, int, Rule], GraphEdge] = {}
        self._outgoing_detail: dict[int, list[GraphEdge]] = {}
        self._skipped: Counter[str] = Counter()

    def ensure_state(self, state: TextState) -> GraphNode:
        """Detail node for ``state``, created (with its membership) on first sight."""
        with self._lock:
            return self._detail_node(state)

    def add_record(self, record: TransformationRecord) -> None:
        """Fold one record into the graph."""
        with self._lock:
            source = self._detail_node(record.source)
            target = self._detail_node(record.target)

            self._add_edge(
                GraphEdge(EdgeKind.DETAIL, source, target, rule=record.rule, record=record)
            )

            source_tier = self._aggregate_node(record.source)
            target_tier = self._aggregate_node(record.target)
            if record.changed:
                _add_unique(target_tier.categories, record.rule.category_tags)
            self._fold_aggregate_edge(source_tier, target_tier, record)

    def add_records(self, records: Iterable[TransformationRecord]) -> None:
        for record in records:
            self.add_record(record)

    def build(self) -> ProvenanceGraph:
        """Snapshot of the nodes and edges added so far."""
        with self._lock:
            graph = ProvenanceGraph(
                nodes=list(self._nodes),
                edges=list(self._edges),
                aggregation_mode=self.aggregation_mode,
                skipped_edges=Counter(self._skipped),
                _outgoing_detail={node_id: list(edges) for node_id, edges in self._outgoing_detail.items()},
                _detail_by_state=dict(self._detail_by_state),
                _start_by_original=dict(self._start_by_original),
                _start_by_folded=dict(self._start_by_folded),
            )

        logger.info(
            "Provenance graph built",
            extra={
                "nodes_count": len(graph.nodes),
                "edges_count": len(graph.edges),
                "aggregation_mode": self.aggregation_mode.value,
                "skipped_edges": dict(graph.skipped_edges),
            },
        )
        return graph

    # Everything below runs with self._lock held

    def _new_id(self) -> int:
        node_id = self._next_id
        self._next_id += 1
        return node_id

    def _detail_node(self, state: TextState) -> GraphNode:
        node = self._detail_by_state.get(state)
        if node is not None:
            return node

        node = GraphNode(self._new_id(), NodeKind.DETAIL, state=state)
        self._detail_by_state[state] = node
        self._nodes.append(node)
        # Ids only grow, so the first node seen for an original keeps the lowest id
        self._start_by_original.setdefault(state.original, node)
        self._start_by_folded.setdefault(state.original.casefold(), node)

        tier = self._aggregate_node(state)
        tier.states.append(state)
        if state.is_final and state.category:
            _add_unique(tier.categories, (state.category,))
        self._link_membership(node, tier)
        return node

    def _tier_key(self, state: TextState) -> Hashable:
        if self.aggregation_mode is AggregationMode.INSTANCE:
            return (AggregationMode.INSTANCE, state)
        if self.aggregation_mode is AggregationMode.DEPTH:
            return (AggregationMode.DEPTH, state.tier_depth)
        return (AggregationMode.VALUE, state.tier_text)

    def _aggregate_node(self, state: TextState) -> GraphNode:
        key = self._tier_key(state)
        node = self._aggregate_by_tier.get(key)
        if node is None:
            label = key[1] if self.aggregation_mode is not AggregationMode.INSTANCE else None
            node = GraphNode(self._new_id(), NodeKind.AGGREGATE, tier=label)
            self._aggregate_by_tier[key] = node
            self._nodes.append(node)
        return node

    def _link_membership(self, detail: GraphNode, aggregate: GraphNode) -> None:
        pair = (detail.id, aggregate.id)
        if pair in self._memberships:
            self._skip(GraphConsistencyWarning("GRAPH_002", {"source": detail.id, "target": aggregate.id}))
            return
        self._memberships.add(pair)
        self._add_edge(GraphEdge(EdgeKind.MEMBERSHIP, detail, aggregate))

    def _fold_aggregate_edge(
        self,
        source: GraphNode,
        target: GraphNode,
        record: TransformationRecord,
    ) -> None:
        if source is target:
            # Unchanged text stays in its tier
            return
        key = (source.id, target.id, record.rule)
        edge = self._aggregate_edges.get(key)
        if edge is None:
            edge = GraphEdge(EdgeKind.AGGREGATE, source, target, rule=record.rule)
            self._aggregate_edges[key] = edge
            self._add_edge(edge)
        edge.count += 1
        edge.records.append(record)

    def _add_edge(self, edge: GraphEdge) -> None:
        if edge.source.id == edge.target.id:
            self._skip(
                GraphConsistencyWarning(
                    "GRAPH_001",
                    {
                        "kind": edge.kind.value,
                        "node_id": edge.source.id,
                        "rule_id": edge.rule.rule_id if edge.rule is not None else None,
                    },
                )
            )
            return

        self._edges.append(edge)
        if edge.kind is EdgeKind.DETAIL:
            self._outgoing_detail.setdefault(edge.source.id, []).append(edge)

    def _skip(self, warning: GraphConsistencyWarning) -> None:
        self._skipped[warning.error_code] += 1
        logger.debug(
            "Edge skipped",
            extra={"error_code": warning.error_code, **warning.details},
        )


def _add_unique(target: list[str], values: Iterable[str]) -> None:
    for value in values:
        if value not in target:
            target.append(value)
