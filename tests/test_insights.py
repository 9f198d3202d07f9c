"""Tests for insight synthesis: deterministic analyzer, LLM strategy, and fallback."""

import asyncio
import json
import logging
import threading
from unittest.mock import AsyncMock, patch

import pytest

from dep_insight.ai.client import LLMError
from dep_insight.analysis.graph_builder import build_graph, serialize_adjacency
from dep_insight.analysis.insights import (
    AnalyzerConfig,
    FallbackAnalyzer,
    InsightValidationError,
    LLMAnalyzer,
    ProgrammaticAnalyzer,
    analyze_programmatically,
    analyze_with_llm,
    format_file_path,
    validate_insights,
)
from dep_insight.models import AnalysisOutput, InsightPayload


def _payload(**overrides):
    data = {
        "circularDependencies": ["Circular dependency: a -> b -> a"],
        "tightCoupling": [],
        "recommendations": ["Break the cycle"],
    }
    data.update(overrides)
    return InsightPayload(**data)


def _fan_in(target, count):
    return {f"/src/user{i}.ts": [target] for i in range(count)}


# ── Display names ─────────────────────────────────────────────

class TestFormatFilePath:
    def test_basename_without_extension(self):
        assert format_file_path("/src/utils/helper.ts") == "helper"
        assert format_file_path("/src/App.tsx") == "App"

    def test_only_last_suffix_removed(self):
        assert format_file_path("/src/types.d.ts") == "types.d"

    def test_other_extensions_kept(self):
        assert format_file_path("/src/data.json") == "data.json"

    def test_full_path(self):
        assert format_file_path("/src/utils/helper.ts", use_basename=False) == "/src/utils/helper.ts"


# ── Programmatic analyzer ─────────────────────────────────────

class TestProgrammaticAnalyzer:
    def test_empty_graph(self):
        insights = analyze_programmatically(build_graph({}))
        assert insights == InsightPayload(circularDependencies=[], tightCoupling=[], recommendations=[])

    def test_cycle_description(self):
        graph = build_graph({"/src/a.ts": ["/src/b.ts"], "/src/b.ts": ["/src/a.ts"]})
        insights = analyze_programmatically(graph)
        assert insights.circularDependencies == ["Circular dependency: a -> b -> a"]

    def test_cycle_full_paths(self):
        graph = build_graph({"/src/a.ts": ["/src/b.ts"], "/src/b.ts": ["/src/a.ts"]})
        insights = analyze_programmatically(graph, AnalyzerConfig(use_basenames=False))
        assert insights.circularDependencies == [
            "Circular dependency: /src/a.ts -> /src/b.ts -> /src/a.ts"
        ]

    def test_cycle_recommendations(self):
        graph = build_graph({"/src/a.ts": ["/src/b.ts"], "/src/b.ts": ["/src/a.ts"]})
        recs = analyze_programmatically(graph).recommendations
        assert recs[0].startswith("Found 1 circular dependency cycles.")
        assert recs[1] == (
            "Break cycle involving: a, b. Consider extracting common "
            "dependencies or using dependency injection."
        )

    def test_cycle_recommendations_capped(self):
        adjacency = {}
        for i in range(5):
            adjacency[f"/p/x{i}.ts"] = [f"/p/y{i}.ts"]
            adjacency[f"/p/y{i}.ts"] = [f"/p/x{i}.ts"]
        insights = analyze_programmatically(build_graph(adjacency))
        assert len(insights.circularDependencies) == 5
        assert insights.recommendations[0].startswith("Found 5 circular dependency cycles.")
        breaks = [r for r in insights.recommendations if r.startswith("Break cycle")]
        assert len(breaks) == 3
        assert breaks[0].startswith("Break cycle involving: x0, y0.")

    def test_high_fan_in_monitor(self):
        insights = analyze_programmatically(build_graph(_fan_in("/src/utils.ts", 6)))
        assert insights.tightCoupling == ["High fan-in: utils is depended upon by 6 modules"]
        assert insights.recommendations == [
            "Monitor utils: it has high fan-in (6 dependents). Ensure it maintains a stable API."
        ]

    def test_very_high_fan_in(self):
        recs = analyze_programmatically(build_graph(_fan_in("/src/utils.ts", 10))).recommendations
        assert recs == [
            "Consider extracting interfaces from utils: it has very high fan-in "
            "(10 dependents). This might indicate it's doing too much."
        ]

    def test_high_fan_out(self):
        graph = build_graph({"/src/hub.ts": [f"/src/dep{i}.ts" for i in range(10)]})
        insights = analyze_programmatically(graph)
        assert insights.tightCoupling == ["High fan-out: hub depends on 10 modules"]
        assert insights.recommendations == [
            "Consider splitting hub: it has high fan-out (10 dependencies). "
            "Split into smaller, more focused modules."
        ]

    def test_custom_thresholds(self):
        graph = build_graph(_fan_in("/src/utils.ts", 3))
        assert analyze_programmatically(graph).tightCoupling == []
        insights = analyze_programmatically(graph, AnalyzerConfig(fan_in_threshold=3))
        assert insights.tightCoupling == ["High fan-in: utils is depended upon by 3 modules"]

    def test_tight_coupling_sorted(self):
        adjacency = _fan_in("/src/zeta.ts", 5)
        adjacency.update({f"/src/user{i}.ts": ["/src/zeta.ts", "/src/alpha.ts"] for i in range(5)})
        adjacency["/src/hub.ts"] = [f"/src/dep{i}.ts" for i in range(10)]
        coupling = analyze_programmatically(build_graph(adjacency)).tightCoupling
        assert coupling == sorted(coupling)
        assert coupling[0] == "High fan-in: alpha is depended upon by 5 modules"
        assert coupling[-1] == "High fan-out: hub depends on 10 modules"

    def test_high_average_dependencies(self):
        # 13 nodes, each importing every later node: 78 edges, average 6.0
        names = [f"/m/n{i:02d}.ts" for i in range(13)]
        adjacency = {name: names[i + 1:] for i, name in enumerate(names)}
        recs = analyze_programmatically(build_graph(adjacency)).recommendations
        assert (
            "The project has high average dependencies per module (6.0). "
            "Consider reducing coupling between modules."
        ) in recs

    def test_fragmented_project(self):
        adjacency = {f"/m/isolated{i}.ts": [] for i in range(60)}
        recs = analyze_programmatically(build_graph(adjacency)).recommendations
        assert len(recs) == 1
        assert "low interconnectivity" in recs[0]

    def test_small_sparse_project_not_fragmented(self):
        adjacency = {f"/m/isolated{i}.ts": [] for i in range(50)}
        assert analyze_programmatically(build_graph(adjacency)).recommendations == []

    def test_deterministic(self):
        adjacency = _fan_in("/src/utils.ts", 7)
        adjacency["/src/utils.ts"] = ["/src/user0.ts"]
        graph = build_graph(adjacency)
        first = analyze_programmatically(graph).model_dump()
        second = analyze_programmatically(build_graph(dict(reversed(list(adjacency.items())))))
        assert json.dumps(first) == json.dumps(second.model_dump())

    def test_synthesize_matches_analyze(self):
        graph = build_graph({"/src/a.ts": ["/src/b.ts"], "/src/b.ts": ["/src/a.ts"]})
        analyzer = ProgrammaticAnalyzer()
        assert asyncio.run(analyzer.synthesize(graph)) == analyzer.analyze(graph)

    def test_synthesize_runs_off_the_event_loop(self):
        graph = build_graph({"/src/a.ts": ["/src/b.ts"], "/src/b.ts": ["/src/a.ts"]})
        analyzer = ProgrammaticAnalyzer()
        analyze = analyzer.analyze
        threads = []

        def record(*args, **kwargs):
            threads.append(threading.get_ident())
            return analyze(*args, **kwargs)

        async def go():
            with patch.object(analyzer, "analyze", side_effect=record):
                return threading.get_ident(), await analyzer.synthesize(graph)

        loop_thread, insights = asyncio.run(go())
        assert threads and threads[0] != loop_thread
        assert insights.circularDependencies == ["Circular dependency: a -> b -> a"]

    def test_known_cycles_not_enumerated_again(self):
        graph = build_graph({"/src/a.ts": ["/src/b.ts"], "/src/b.ts": ["/src/a.ts"]})
        with patch("dep_insight.analysis.insights.find_cycles") as find:
            insights = ProgrammaticAnalyzer().analyze(graph, [["/src/a.ts", "/src/b.ts"]])
        find.assert_not_called()
        assert insights.circularDependencies == ["Circular dependency: a -> b -> a"]


# ── Validation ────────────────────────────────────────────────

class TestValidateInsights:
    def test_accepts_dict(self):
        payload = validate_insights({
            "circularDependencies": [],
            "tightCoupling": ["x"],
            "recommendations": [],
        })
        assert payload.tightCoupling == ["x"]

    def test_missing_field(self):
        with pytest.raises(InsightValidationError, match="validation failed"):
            validate_insights({"circularDependencies": [], "tightCoupling": []})

    def test_wrong_type(self):
        with pytest.raises(InsightValidationError):
            validate_insights({
                "circularDependencies": "a -> b",
                "tightCoupling": [],
                "recommendations": [],
            })


# ── LLM strategy ──────────────────────────────────────────────

class TestLLMAnalyzer:
    def test_sends_only_serialized_graph(self):
        graph = build_graph({"/src/b.ts": ["/src/a.ts"], "/src/a.ts": []})
        client = AsyncMock()
        client.analyze.return_value = _payload()

        insights = asyncio.run(LLMAnalyzer(client).synthesize(graph))

        assert insights == _payload()
        client.analyze.assert_awaited_once_with(json.dumps(serialize_adjacency(graph)))
        sent = json.loads(client.analyze.await_args.args[0])
        assert sent == {"/src/a.ts": [], "/src/b.ts": ["/src/a.ts"]}

    def test_invalid_payload_rejected(self):
        client = AsyncMock()
        client.analyze.return_value = {"circularDependencies": [], "recommendations": []}
        with pytest.raises(InsightValidationError):
            asyncio.run(LLMAnalyzer(client).synthesize(build_graph({"a": []})))

    def test_llm_error_propagates(self):
        client = AsyncMock()
        client.analyze.side_effect = LLMError.timeout_error("Request timeout after 30s")
        with pytest.raises(LLMError) as exc_info:
            asyncio.run(LLMAnalyzer(client).synthesize(build_graph({"a": []})))
        assert exc_info.value.code == "TIMEOUT"

    def test_analyze_with_llm_output(self):
        graph = build_graph({"/src/a.ts": ["/src/b.ts"]})
        client = AsyncMock()
        client.analyze.return_value = _payload()

        output = asyncio.run(analyze_with_llm(graph, client))

        assert isinstance(output, AnalysisOutput)
        assert output.graph == {"/src/a.ts": ["/src/b.ts"], "/src/b.ts": []}
        assert output.insights == _payload()


# ── Fallback ──────────────────────────────────────────────────

class TestFallbackAnalyzer:
    def _graph(self):
        return build_graph({"/src/a.ts": ["/src/b.ts"], "/src/b.ts": ["/src/a.ts"]})

    def test_primary_result_used(self):
        client = AsyncMock()
        client.analyze.return_value = _payload(recommendations=["from llm"])
        analyzer = FallbackAnalyzer(LLMAnalyzer(client), ProgrammaticAnalyzer())
        insights = asyncio.run(analyzer.synthesize(self._graph()))
        assert insights.recommendations == ["from llm"]

    def test_falls_back_on_llm_error(self, caplog):
        client = AsyncMock()
        client.analyze.side_effect = LLMError.rate_limit_error("Rate limit exceeded (429)")
        analyzer = FallbackAnalyzer(LLMAnalyzer(client), ProgrammaticAnalyzer())

        with caplog.at_level(logging.WARNING, logger="dep_insight.analysis.insights"):
            insights = asyncio.run(analyzer.synthesize(self._graph()))

        assert insights == ProgrammaticAnalyzer().analyze(self._graph())
        assert "falling back" in caplog.text

    def test_falls_back_on_invalid_payload(self):
        client = AsyncMock()
        client.analyze.return_value = {"unexpected": True}
        analyzer = FallbackAnalyzer(LLMAnalyzer(client), ProgrammaticAnalyzer())
        insights = asyncio.run(analyzer.synthesize(self._graph()))
        assert insights.circularDependencies == ["Circular dependency: a -> b -> a"]

    def test_other_errors_propagate(self):
        client = AsyncMock()
        client.analyze.side_effect = RuntimeError("bug")
        analyzer = FallbackAnalyzer(LLMAnalyzer(client), ProgrammaticAnalyzer())
        with pytest.raises(RuntimeError):
            asyncio.run(analyzer.synthesize(self._graph()))
