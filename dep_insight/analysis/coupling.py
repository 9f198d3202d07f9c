"""Fan-in/fan-out per module and high-coupling detection."""

from __future__ import annotations

from dataclasses import dataclass, field

from dep_insight.analysis.graph_builder import get_graph_stats
from dep_insight.analysis.graph_models import DependencyGraph

DEFAULT_FAN_IN_THRESHOLD = 5
DEFAULT_FAN_OUT_THRESHOLD = 10


@dataclass
class CouplingThresholds:
    """A node is flagged when its count is at or above the threshold."""
    fan_in_threshold: int = DEFAULT_FAN_IN_THRESHOLD
    fan_out_threshold: int = DEFAULT_FAN_OUT_THRESHOLD


@dataclass
class FanInOut:
    fan_in: dict[str, int] = field(default_factory=dict)
    fan_out: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class CouplingEntry:
    node: str
    count: int

    def to_dict(self) -> dict:
        return {"node": self.node, "count": self.count}


@dataclass
class HighCoupling:
    high_fan_in: list[CouplingEntry] = field(default_factory=list)
    high_fan_out: list[CouplingEntry] = field(default_factory=list)


@dataclass
class CouplingMetrics:
    average_fan_in: float = 0.0
    average_fan_out: float = 0.0
    max_fan_in: int = 0
    max_fan_out: int = 0
    highly_connected_nodes: int = 0

    def to_dict(self) -> dict:
        return {
            "averageFanIn": self.average_fan_in,
            "averageFanOut": self.average_fan_out,
            "maxFanIn": self.max_fan_in,
            "maxFanOut": self.max_fan_out,
            "highlyConnectedNodes": self.highly_connected_nodes,
        }


def compute_fan_in_out(graph: DependencyGraph) -> FanInOut:
    """Distinct predecessor and successor counts for every node."""
    result = FanInOut()
    for node in graph.nodes():
        result.fan_in[node] = len(graph.reverse.get(node, ()))
        result.fan_out[node] = len(graph.forward.get(node, ()))
    return result


def _rank(counts: dict[str, int], threshold: int) -> list[CouplingEntry]:
    entries = [CouplingEntry(node, count) for node, count in counts.items() if count >= threshold]
    # Highest counts first, path order for ties
    entries.sort(key=lambda e: (-e.count, e.node))
    return entries


def find_high_coupling_nodes(
    graph: DependencyGraph,
    thresholds: CouplingThresholds | None = None,
) -> HighCoupling:
    """Nodes at or above the fan-in/fan-out thresholds, sorted by count then path."""
    thresholds = thresholds or CouplingThresholds()
    fan = compute_fan_in_out(graph)
    return HighCoupling(
        high_fan_in=_rank(fan.fan_in, thresholds.fan_in_threshold),
        high_fan_out=_rank(fan.fan_out, thresholds.fan_out_threshold),
    )


def compute_coupling_metrics(graph: DependencyGraph, fan: FanInOut | None = None) -> CouplingMetrics:
    """Averages, maxima, and the count of nodes above average in either direction."""
    fan = fan or compute_fan_in_out(graph)
    nodes = graph.nodes()
    if not nodes:
        return CouplingMetrics()

    avg_in = sum(fan.fan_in.values()) / len(nodes)
    avg_out = sum(fan.fan_out.values()) / len(nodes)
    highly_connected = sum(
        1 for n in nodes if fan.fan_in[n] > avg_in or fan.fan_out[n] > avg_out
    )

    return CouplingMetrics(
        average_fan_in=avg_in,
        average_fan_out=avg_out,
        max_fan_in=max(fan.fan_in.values()),
        max_fan_out=max(fan.fan_out.values()),
        highly_connected_nodes=highly_connected,
    )


def get_extended_graph_stats(graph: DependencyGraph) -> dict:
    """Graph stats plus fan-in/out maps and coupling metrics, JSON-ready."""
    fan = compute_fan_in_out(graph)
    stats = get_graph_stats(graph).to_dict()
    stats["fanInOut"] = {"fanIn": fan.fan_in, "fanOut": fan.fan_out}
    stats["couplingMetrics"] = compute_coupling_metrics(graph, fan).to_dict()
    return stats
