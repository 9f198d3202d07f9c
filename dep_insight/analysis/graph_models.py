"""Data models for the dependency graph."""

from __future__ import annotations

from dataclasses import dataclass, field

# file path -> direct dependency paths
AdjacencyMapping = dict[str, list[str]]


@dataclass
class DependencyGraph:
    """Directed file-level graph: an edge ``a -> b`` means ``a`` imports ``b``.

    Built once by :func:`dep_insight.analysis.graph_builder.build_graph` and
    treated as read-only afterwards. Every node has an entry in both
    ``forward`` and ``reverse``, even when it has no edges.
    """

    forward: dict[str, set[str]] = field(default_factory=dict)  # source -> {targets}
    reverse: dict[str, set[str]] = field(default_factory=dict)  # target -> {sources}

    def add_node(self, node: str) -> None:
        self.forward.setdefault(node, set())
        self.reverse.setdefault(node, set())

    def add_edge(self, source: str, target: str) -> None:
        self.add_node(source)
        self.add_node(target)
        self.forward[source].add(target)
        self.reverse[target].add(source)

    # ── Queries ─────────────────────────────────────────────

    def nodes(self) -> list[str]:
        return sorted(self.forward)

    def has_node(self, node: str) -> bool:
        return node in self.forward

    def successors(self, node: str) -> set[str]:
        return set(self.forward.get(node, ()))

    def predecessors(self, node: str) -> set[str]:
        return set(self.reverse.get(node, ()))

    def has_edge(self, source: str, target: str) -> bool:
        return target in self.forward.get(source, ())

    def edges(self) -> list[tuple[str, str]]:
        return sorted(
            (source, target)
            for source, targets in self.forward.items()
            for target in targets
        )

    def node_count(self) -> int:
        return len(self.forward)

    def edge_count(self) -> int:
        return sum(len(targets) for targets in self.forward.values())


@dataclass
class GraphStats:
    node_count: int
    edge_count: int
    has_cycles: bool
    max_depth: int  # -1 when the graph has cycles

    def to_dict(self) -> dict:
        return {
            "nodeCount": self.node_count,
            "edgeCount": self.edge_count,
            "hasCycles": self.has_cycles,
            "maxDepth": self.max_depth,
        }


@dataclass
class CycleReport:
    """Cycle enumeration result.

    ``cycles`` holds the canonical (sorted) member lists, ``paths`` the walk
    in which each cycle was discovered, rotated to start at its smallest
    member. ``error`` is set when enumeration failed, in which case both lists
    are empty.
    """

    cycles: list[list[str]] = field(default_factory=list)
    paths: list[list[str]] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None
