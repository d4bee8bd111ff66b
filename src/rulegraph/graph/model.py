"""Provenance graph data model.

Nodes and edges are tagged variants: one class each with a ``kind``
discriminator and kind-specific payload fields, so the graph serializes to
plain dicts and every consumer can match on ``kind`` exhaustively.

Node kinds:
- DETAIL: one per TextState instance, holds a reference to it
- AGGREGATE: one per processing tier, holds the states at that tier

Edge kinds:
- MEMBERSHIP: detail -> aggregate
- DETAIL: detail -> detail, one rule application that changed the text
- AGGREGATE: aggregate -> aggregate, every record of one rule between two tiers
"""

from __future__ import annotations

import enum
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Hashable

from rulegraph.cascade.engine import TransformationRecord
from rulegraph.cascade.rules import Rule
from rulegraph.cascade.state import TextState


class NodeKind(str, enum.Enum):
    DETAIL = "detail"
    AGGREGATE = "aggregate"


class EdgeKind(str, enum.Enum):
    MEMBERSHIP = "membership"
    DETAIL = "detail"
    AGGREGATE = "aggregate"


class AggregationMode(str, enum.Enum):
    """How detail nodes are grouped into aggregate tiers.

    INSTANCE: one tier per TextState instance
    VALUE: one tier per distinct current text
    DEPTH: one tier per number of rewrites, across the whole batch
    """

    INSTANCE = "instance"
    VALUE = "value"
    DEPTH = "depth"


@dataclass(eq=False)
class GraphNode:
    """A node of the provenance graph."""

    id: int
    kind: NodeKind
    # DETAIL
    state: TextState | None = None
    # AGGREGATE
    tier: Hashable | None = None
    states: list[TextState] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)

    @property
    def cardinality(self) -> int:
        return len(self.states) if self.kind is NodeKind.AGGREGATE else 1

    def to_dict(self) -> dict[str, Any]:
        if self.kind is NodeKind.DETAIL:
            return {
                "id": self.id,
                "kind": self.kind.value,
                "original": self.state.original,
                "current": self.state.current,
                "category": self.state.category,
                "is_final": self.state.is_final,
                "depth": self.state.depth,
            }
        return {
            "id": self.id,
            "kind": self.kind.value,
            "tier": self.tier if isinstance(self.tier, (str, int)) else None,
            "cardinality": self.cardinality,
            "descriptions": [state.tier_text for state in self.states],
            "categories": list(self.categories),
        }


@dataclass(eq=False)
class GraphEdge:
    """An edge of the provenance graph."""

    kind: EdgeKind
    source: GraphNode
    target: GraphNode
    # DETAIL and AGGREGATE
    rule: Rule | None = None
    # DETAIL
    record: TransformationRecord | None = None
    # AGGREGATE
    count: int = 0
    records: list[TransformationRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "source": self.source.id,
            "target": self.target.id,
        }
        if self.rule is not None:
            data["rule_id"] = self.rule.rule_id
            data["pattern"] = self.rule.pattern
        if self.kind is EdgeKind.DETAIL and self.record is not None:
            data["input"] = self.record.input
            data["output"] = self.record.output
            data["matched"] = self.record.matched
            data["retried"] = self.record.retried
        elif self.kind is EdgeKind.AGGREGATE:
            data["count"] = self.count
        return data


@dataclass
class ProvenanceGraph:
    """Finished nodes and edges of one categorization run."""

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    skipped_edges: Counter[str] = field(default_factory=Counter)
    aggregation_mode: AggregationMode = AggregationMode.VALUE
    _outgoing_detail: dict[int, list[GraphEdge]] = field(default_factory=dict, repr=False)
    _detail_by_state: dict[TextState, GraphNode] = field(default_factory=dict, repr=False)
    _start_by_original: dict[str, GraphNode] = field(default_factory=dict, repr=False)
    _start_by_folded: dict[str, GraphNode] = field(default_factory=dict, repr=False)

    def detail_nodes(self) -> list[GraphNode]:
        return [node for node in self.nodes if node.kind is NodeKind.DETAIL]

    def aggregate_nodes(self) -> list[GraphNode]:
        return [node for node in self.nodes if node.kind is NodeKind.AGGREGATE]

    def edges_of_kind(self, kind: EdgeKind) -> list[GraphEdge]:
        return [edge for edge in self.edges if edge.kind is kind]

    def outgoing_detail_edges(self, node: GraphNode) -> list[GraphEdge]:
        """Detail edges leaving ``node``, in discovery order."""
        return list(self._outgoing_detail.get(node.id, ()))

    def node_for_state(self, state: TextState) -> GraphNode | None:
        return self._detail_by_state.get(state)

    def find_start_node(self, original: str) -> GraphNode | None:
        """First detail node (by id) whose state's original text is ``original``.

        An exact match wins; otherwise the first match ignoring case.
        """
        original = original or ""
        node = self._start_by_original.get(original)
        if node is None:
            node = self._start_by_folded.get(original.casefold())
        return node

    def to_dict(self) -> dict[str, Any]:
        return {
            "aggregation_mode": self.aggregation_mode.value,
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "skipped_edges": dict(self.skipped_edges),
        }
