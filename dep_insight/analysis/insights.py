"""Insight synthesis: deterministic heuristics and LLM-backed analysis behind one interface."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import Protocol

from pydantic import ValidationError

from dep_insight.ai.client import LLMError
from dep_insight.analysis.coupling import (
    CouplingThresholds,
    HighCoupling,
    find_high_coupling_nodes,
)
from dep_insight.analysis.cycles import find_cycles
from dep_insight.analysis.graph_builder import serialize_adjacency
from dep_insight.analysis.graph_models import DependencyGraph
from dep_insight.models import AnalysisOutput, InsightPayload

logger = logging.getLogger(__name__)

_TS_SUFFIXES = (".ts", ".tsx")


class InsightValidationError(ValueError):
    """Raised when an insight payload does not match the expected schema."""


class GraphAnalyzer(Protocol):
    """Anything that can produce insights from a serialized graph."""

    async def analyze(self, graph_json: str) -> InsightPayload: ...


class InsightStrategy(Protocol):
    async def synthesize(self, graph: DependencyGraph) -> InsightPayload: ...


@dataclass
class AnalyzerConfig:
    """Thresholds and caps for the deterministic analyzer."""
    fan_in_threshold: int = 5
    fan_out_threshold: int = 10
    use_basenames: bool = True
    max_cycle_recommendations: int = 3
    max_fan_out_recommendations: int = 3
    max_fan_in_recommendations: int = 3
    very_high_fan_in_factor: int = 2
    high_average_dependencies: float = 5.0
    fragmented_min_nodes: int = 50
    fragmented_max_average: float = 2.0


def format_file_path(file_path: str, use_basename: bool = True) -> str:
    """Display name for a node: basename without a TypeScript extension, or the full path."""
    if not use_basename:
        return file_path
    name = PurePath(file_path).name
    for suffix in _TS_SUFFIXES:
        if name.endswith(suffix) and name != suffix:
            return name[: -len(suffix)]
    return name


class ProgrammaticAnalyzer:
    """Deterministic insights from cycles and fan-in/fan-out. No I/O."""

    def __init__(self, config: AnalyzerConfig | None = None):
        self.config = config or AnalyzerConfig()

    async def synthesize(self, graph: DependencyGraph) -> InsightPayload:
        # Cycle enumeration is CPU-bound; keep it off the event loop
        return await asyncio.to_thread(self.analyze, graph)

    def analyze(
        self,
        graph: DependencyGraph,
        cycles: list[list[str]] | None = None,
    ) -> InsightPayload:
        """Insights for ``graph``; pass ``cycles`` when they are already known."""
        if cycles is None:
            cycles = find_cycles(graph)
        high = find_high_coupling_nodes(graph, self._thresholds())
        return InsightPayload(
            circularDependencies=self._circular_dependencies(cycles),
            tightCoupling=self._tight_coupling(high),
            recommendations=self._recommendations(graph, cycles, high),
        )

    def _name(self, node: str) -> str:
        return format_file_path(node, self.config.use_basenames)

    def _circular_dependencies(self, cycles: list[list[str]]) -> list[str]:
        results: list[str] = []
        for cycle in cycles:
            names = [self._name(n) for n in cycle]
            results.append("Circular dependency: " + " -> ".join(names + names[:1]))
        return results

    def _tight_coupling(self, high: HighCoupling) -> list[str]:
        findings = [
            f"High fan-in: {self._name(e.node)} is depended upon by {e.count} modules"
            for e in high.high_fan_in
        ]
        findings.extend(
            f"High fan-out: {self._name(e.node)} depends on {e.count} modules"
            for e in high.high_fan_out
        )
        return sorted(findings)

    def _recommendations(
        self,
        graph: DependencyGraph,
        cycles: list[list[str]],
        high: HighCoupling,
    ) -> list[str]:
        cfg = self.config
        recs: list[str] = []

        # ── Cycles ──
        if cycles:
            recs.append(
                f"Found {len(cycles)} circular dependency cycles. Consider refactoring to break "
                "these cycles by introducing interfaces or moving shared code to separate modules."
            )
            for cycle in cycles[: cfg.max_cycle_recommendations]:
                names = ", ".join(self._name(n) for n in cycle)
                recs.append(
                    f"Break cycle involving: {names}. Consider extracting common "
                    "dependencies or using dependency injection."
                )

        # ── Fan-out ──
        for entry in high.high_fan_out[: cfg.max_fan_out_recommendations]:
            recs.append(
                f"Consider splitting {self._name(entry.node)}: it has high fan-out "
                f"({entry.count} dependencies). Split into smaller, more focused modules."
            )

        # ── Fan-in ──
        very_high = cfg.fan_in_threshold * cfg.very_high_fan_in_factor
        for entry in high.high_fan_in[: cfg.max_fan_in_recommendations]:
            name = self._name(entry.node)
            if entry.count >= very_high:
                recs.append(
                    f"Consider extracting interfaces from {name}: it has very high fan-in "
                    f"({entry.count} dependents). This might indicate it's doing too much."
                )
            else:
                recs.append(
                    f"Monitor {name}: it has high fan-in ({entry.count} dependents). "
                    "Ensure it maintains a stable API."
                )

        # ── Graph-wide ──
        node_count = graph.node_count()
        if node_count > 0:
            average = graph.edge_count() / node_count
            if average > cfg.high_average_dependencies:
                recs.append(
                    f"The project has high average dependencies per module ({average:.1f}). "
                    "Consider reducing coupling between modules."
                )
            if node_count > cfg.fragmented_min_nodes and average < cfg.fragmented_max_average:
                recs.append(
                    "The project has many modules with low interconnectivity. Consider if some "
                    "modules can be consolidated or if the architecture is too fragmented."
                )

        return recs

    def _thresholds(self) -> CouplingThresholds:
        return CouplingThresholds(
            fan_in_threshold=self.config.fan_in_threshold,
            fan_out_threshold=self.config.fan_out_threshold,
        )


def validate_insights(data) -> InsightPayload:
    """Coerce ``data`` into an :class:`InsightPayload` or raise :class:`InsightValidationError`."""
    if isinstance(data, InsightPayload):
        data = data.model_dump()
    try:
        return InsightPayload.model_validate(data)
    except ValidationError as e:
        raise InsightValidationError(f"Insight payload validation failed: {e}") from e


class LLMAnalyzer:
    """Delegates synthesis to an LLM that only ever sees the canonical adjacency JSON."""

    def __init__(self, client: GraphAnalyzer):
        self.client = client

    async def synthesize(self, graph: DependencyGraph) -> InsightPayload:
        graph_json = json.dumps(serialize_adjacency(graph))
        logger.debug("serialized graph for LLM analysis: %d chars", len(graph_json))
        insights = await self.client.analyze(graph_json)
        return validate_insights(insights)


class FallbackAnalyzer:
    """Runs ``primary``; on an LLM or schema failure logs it and uses ``fallback`` instead."""

    def __init__(self, primary: InsightStrategy, fallback: InsightStrategy):
        self.primary = primary
        self.fallback = fallback

    async def synthesize(self, graph: DependencyGraph) -> InsightPayload:
        try:
            return await self.primary.synthesize(graph)
        except (LLMError, InsightValidationError) as e:
            logger.warning("LLM analysis failed, falling back to programmatic analysis: %s", e)
            return await self.fallback.synthesize(graph)


def analyze_programmatically(
    graph: DependencyGraph,
    config: AnalyzerConfig | None = None,
) -> InsightPayload:
    return ProgrammaticAnalyzer(config).analyze(graph)


async def analyze_with_llm(graph: DependencyGraph, client: GraphAnalyzer) -> AnalysisOutput:
    """Serialize, ask the LLM, and validate the complete output payload."""
    insights = await LLMAnalyzer(client).synthesize(graph)
    return build_output(graph, insights)


def build_output(graph: DependencyGraph, insights: InsightPayload) -> AnalysisOutput:
    try:
        return AnalysisOutput.model_validate(
            {"graph": serialize_adjacency(graph), "insights": insights.model_dump()}
        )
    except ValidationError as e:
        raise InsightValidationError(f"Analysis output validation failed: {e}") from e
