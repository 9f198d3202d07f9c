"""Cycle detection over the dependency graph, in deterministic order."""

from __future__ import annotations

import logging

import networkx as nx

from dep_insight.analysis.graph_builder import to_networkx
from dep_insight.analysis.graph_models import CycleReport, DependencyGraph

logger = logging.getLogger(__name__)


def _cycle_sort_key(members: list[str]) -> tuple[str, int, list[str]]:
    return members[0], len(members), members


def _rotate_to_smallest(path: list[str]) -> list[str]:
    start = path.index(min(path))
    return path[start:] + path[:start]


def detect_cycles(graph: DependencyGraph) -> CycleReport:
    """Enumerate all simple cycles (Johnson's algorithm) and canonicalize them.

    Cycles whose member sets coincide are reported once; the discovered walk
    kept for such a set is the lexicographically smallest rotation among them.
    Enumeration failures are logged and reported through ``CycleReport.error``
    with empty results.
    """
    try:
        walks = [list(cycle) for cycle in nx.simple_cycles(to_networkx(graph))]
    except Exception as e:
        logger.warning("Error during cycle detection: %s", e)
        return CycleReport(error=str(e))

    by_members: dict[tuple[str, ...], list[str]] = {}
    for walk in walks:
        members = tuple(sorted(walk))
        path = _rotate_to_smallest(walk)
        known = by_members.get(members)
        if known is None or path < known:
            by_members[members] = path

    ordered = sorted(by_members, key=lambda m: _cycle_sort_key(list(m)))
    return CycleReport(
        cycles=[list(members) for members in ordered],
        paths=[by_members[members] for members in ordered],
    )


def find_cycles(graph: DependencyGraph) -> list[list[str]]:
    """Canonical cycles: members sorted, list ordered by (smallest member, length, members).

    Returns ``[]`` both for acyclic graphs and when enumeration fails; use
    :func:`detect_cycles` to tell the two apart.
    """
    return detect_cycles(graph).cycles
