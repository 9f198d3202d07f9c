"""Graph construction and analysis engine."""

from __future__ import annotations

from dep_insight.analysis.graph_models import AdjacencyMapping, CycleReport, DependencyGraph, GraphStats
from dep_insight.analysis.graph_builder import (
    AdjacencyValidationError,
    build_graph,
    get_graph_stats,
    serialize_adjacency,
    validate_adjacency,
)
from dep_insight.analysis.cycles import detect_cycles, find_cycles
from dep_insight.analysis.coupling import (
    CouplingEntry,
    CouplingThresholds,
    compute_coupling_metrics,
    compute_fan_in_out,
    find_high_coupling_nodes,
    get_extended_graph_stats,
)

__all__ = [
    "AdjacencyMapping",
    "AdjacencyValidationError",
    "CouplingEntry",
    "CouplingThresholds",
    "CycleReport",
    "DependencyGraph",
    "GraphStats",
    "build_graph",
    "compute_coupling_metrics",
    "compute_fan_in_out",
    "detect_cycles",
    "find_cycles",
    "find_high_coupling_nodes",
    "get_extended_graph_stats",
    "get_graph_stats",
    "serialize_adjacency",
    "validate_adjacency",
]
