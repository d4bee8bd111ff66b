"""Provenance graph: data model, builder and traversal."""

from rulegraph.graph.builder import ProvenanceGraphBuilder
from rulegraph.graph.model import (
    AggregationMode,
    EdgeKind,
    GraphEdge,
    GraphNode,
    NodeKind,
    ProvenanceGraph,
)
from rulegraph.graph.traversal import debug_trail, resolve_final, resolve_final_node

__all__ = [
    "AggregationMode",
    "EdgeKind",
    "GraphEdge",
    "GraphNode",
    "NodeKind",
    "ProvenanceGraph",
    "ProvenanceGraphBuilder",
    "debug_trail",
    "resolve_final",
    "resolve_final_node",
]
