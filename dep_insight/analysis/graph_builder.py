"""Dependency graph builder: adjacency mapping in, graph and canonical mapping out."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import networkx as nx

from dep_insight.analysis.graph_models import AdjacencyMapping, DependencyGraph, GraphStats


class AdjacencyValidationError(ValueError):
    """Raised when an adjacency mapping is malformed."""


def validate_adjacency(data: Any) -> AdjacencyMapping:
    """Check that ``data`` is a well-formed adjacency mapping.

    Keys must be non-empty strings and values lists of non-empty strings.
    Returns the mapping as a plain dict of lists; raises
    :class:`AdjacencyValidationError` on the first problem found.
    """
    if data is None or not isinstance(data, Mapping):
        raise AdjacencyValidationError("Adjacency mapping must be a non-null object")

    validated: AdjacencyMapping = {}
    for source, dependencies in data.items():
        if not isinstance(source, str) or not source.strip():
            raise AdjacencyValidationError(f"Invalid source file: {source!r}")
        if not isinstance(dependencies, (list, tuple)):
            raise AdjacencyValidationError(f"Dependencies for {source} must be an array")
        for dependency in dependencies:
            if not isinstance(dependency, str) or not dependency.strip():
                raise AdjacencyValidationError(
                    f"Invalid dependency: {dependency!r} for source {source}"
                )
        validated[source] = list(dependencies)
    return validated


def build_graph(adjacency: AdjacencyMapping) -> DependencyGraph:
    """Build a directed graph with one node per path and one edge per distinct import."""
    graph = DependencyGraph()

    # Step 1: every source and every target is a node
    for source, dependencies in adjacency.items():
        graph.add_node(source)
        for dependency in dependencies:
            graph.add_node(dependency)

    # Step 2: edges (sets collapse duplicates)
    for source, dependencies in adjacency.items():
        for dependency in dependencies:
            graph.add_edge(source, dependency)

    return graph


def serialize_adjacency(graph: DependencyGraph) -> AdjacencyMapping:
    """Stable adjacency mapping: keys and dependency lists sorted by code point."""
    return {node: sorted(graph.forward[node]) for node in sorted(graph.forward)}


def to_networkx(graph: DependencyGraph) -> nx.DiGraph:
    """Copy the graph into a ``networkx.DiGraph``, inserting nodes and edges in sorted order."""
    digraph = nx.DiGraph()
    digraph.add_nodes_from(graph.nodes())
    digraph.add_edges_from(graph.edges())
    return digraph


def get_graph_stats(
    graph: DependencyGraph,
    cycles: list[list[str]] | None = None,
) -> GraphStats:
    """Node/edge counts, cycle presence, and the longest dependency chain.

    Cycles are enumerated unless ``cycles`` is given.
    """
    if cycles is None:
        # Imported here: cycles depends on this module for to_networkx
        from dep_insight.analysis.cycles import find_cycles
        cycles = find_cycles(graph)

    node_count = graph.node_count()
    has_cycles = bool(cycles)

    max_depth = 0
    if has_cycles:
        max_depth = -1
    elif node_count > 0:
        digraph = to_networkx(graph)
        # Unknown depth when cycle detection failed on a cyclic graph
        if nx.is_directed_acyclic_graph(digraph):
            max_depth = nx.dag_longest_path_length(digraph)
        else:
            max_depth = -1

    return GraphStats(
        node_count=node_count,
        edge_count=graph.edge_count(),
        has_cycles=has_cycles,
        max_depth=max_depth,
    )
