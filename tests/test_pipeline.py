"""Tests for the end-to-end analysis pipeline."""

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from dep_insight.ai.client import LLMError
from dep_insight.models import AnalysisConfig, AnalysisOutput, InsightPayload, ScanConfig
from dep_insight.pipeline import (
    AnalysisError,
    analyze_project,
    collect_graph,
    run_analysis,
    validate_config,
)

PROJECT = (Path(__file__).parent / "fixtures" / "ts_project").resolve()

LLM_INSIGHTS = InsightPayload(
    circularDependencies=["a.ts -> b.ts -> a.ts"],
    tightCoupling=[],
    recommendations=["Move the shared code out of a.ts"],
)


def _config(**overrides):
    values = {"source_dir": PROJECT, "mode": "programmatic"}
    values.update(overrides)
    return AnalysisConfig(**values)


def _relative_graph(graph):
    return {
        Path(src).relative_to(PROJECT).as_posix(): [
            Path(d).relative_to(PROJECT).as_posix() for d in deps
        ]
        for src, deps in graph.items()
    }


# ── Config validation ────────────────────────────────────────

class TestValidateConfig:
    def test_valid(self):
        validate_config(_config())

    def test_default_mode_from_env(self, monkeypatch):
        monkeypatch.setenv("DEP_INSIGHT_MODE", "auto")
        assert AnalysisConfig(source_dir=PROJECT).mode == "auto"
        monkeypatch.delenv("DEP_INSIGHT_MODE")
        assert AnalysisConfig(source_dir=PROJECT).mode == "programmatic"

    @pytest.mark.parametrize("overrides, code", [
        ({"source_dir": None}, "MISSING_DIR"),
        ({"max_files": 0}, "INVALID_MAX_FILES"),
        ({"scan": ScanConfig(concurrency=0)}, "INVALID_CONCURRENCY"),
        ({"scan": ScanConfig(batch_size=0)}, "INVALID_BATCH_SIZE"),
        ({"mode": "magic"}, "INVALID_MODE"),
        ({"fan_in_threshold": 0}, "INVALID_THRESHOLD"),
    ])
    def test_rejected(self, overrides, code):
        with pytest.raises(AnalysisError) as exc_info:
            validate_config(_config(**overrides))
        assert exc_info.value.code == code
        assert exc_info.value.status_code == 400

    def test_error_to_dict(self):
        error = AnalysisError("nope", 404, "DIR_NOT_FOUND")
        assert error.to_dict() == {"message": "nope", "code": "DIR_NOT_FOUND", "statusCode": 404}


# ── Graph collection ─────────────────────────────────────────

class TestCollectGraph:
    def test_fixture_graph(self):
        graph = collect_graph(_config())
        assert graph.node_count() == 8
        assert graph.edge_count() == 7

    def test_missing_directory(self, tmp_path):
        with pytest.raises(AnalysisError) as exc_info:
            collect_graph(_config(source_dir=tmp_path / "missing"))
        assert exc_info.value.code == "DIR_NOT_FOUND"
        assert exc_info.value.status_code == 404

    def test_not_a_directory(self, tmp_path):
        target = tmp_path / "file.ts"
        target.write_text("")
        with pytest.raises(AnalysisError) as exc_info:
            collect_graph(_config(source_dir=target))
        assert exc_info.value.code == "NOT_A_DIRECTORY"
        assert exc_info.value.status_code == 400

    def test_no_typescript_files(self, tmp_path):
        (tmp_path / "index.js").write_text("export {}")
        with pytest.raises(AnalysisError) as exc_info:
            collect_graph(_config(source_dir=tmp_path))
        assert exc_info.value.code == "NO_TS_FILES"

    def test_max_files(self):
        graph = collect_graph(_config(max_files=2))
        # a.ts and b.ts, plus lazy.tsx imported by b.ts
        assert graph.node_count() == 3

    def test_without_tsconfig_aliases_unresolved(self, tmp_path):
        graph = collect_graph(_config(tsconfig=tmp_path / "none.json"))
        main = str(PROJECT / "src" / "main.ts")
        assert str(PROJECT / "src" / "config.ts") not in graph.successors(main)
        assert str(PROJECT / "src" / "a.ts") in graph.successors(main)

    def test_progress_reported(self):
        calls = []
        collect_graph(_config(), progress=lambda stage, cur, total: calls.append((stage, cur, total)))
        assert ("Discovering", 1, 1) in calls
        assert ("Parsing", 8, 8) in calls


# ── Full analysis ────────────────────────────────────────────

class TestRunAnalysis:
    def test_programmatic(self):
        output = run_analysis(_config())
        assert isinstance(output, AnalysisOutput)
        assert _relative_graph(output.graph) == {
            "src/a.ts": ["src/b.ts"],
            "src/b.ts": ["src/a.ts", "src/lazy.tsx"],
            "src/config.ts": [],
            "src/lazy.tsx": [],
            "src/main.ts": ["src/a.ts", "src/config.ts", "src/utils/helper.ts"],
            "src/types.ts": [],
            "src/utils/format.ts": [],
            "src/utils/helper.ts": ["src/utils/format.ts"],
        }
        assert output.insights.circularDependencies == ["Circular dependency: a -> b -> a"]
        assert output.insights.tightCoupling == []

    def test_graph_keys_sorted(self):
        output = run_analysis(_config())
        assert list(output.graph) == sorted(output.graph)

    def test_output_is_json_serializable(self):
        data = json.loads(json.dumps(run_analysis(_config()).model_dump()))
        assert set(data) == {"graph", "insights"}
        assert set(data["insights"]) == {"circularDependencies", "tightCoupling", "recommendations"}

    def test_repeatable(self):
        first = run_analysis(_config()).model_dump()
        second = run_analysis(_config(scan=ScanConfig(batch_size=1, concurrency=1))).model_dump()
        assert json.dumps(first) == json.dumps(second)


class TestInsightModes:
    def test_llm_mode_uses_client(self):
        client = AsyncMock()
        client.analyze.return_value = LLM_INSIGHTS
        output = asyncio.run(analyze_project(_config(mode="llm"), client=client))
        assert output.insights == LLM_INSIGHTS
        sent = json.loads(client.analyze.await_args.args[0])
        assert sent == output.graph

    def test_llm_mode_surfaces_errors(self):
        client = AsyncMock()
        client.analyze.side_effect = LLMError.authentication_error("Authentication failed (401)")
        with pytest.raises(LLMError):
            asyncio.run(analyze_project(_config(mode="llm"), client=client))

    def test_auto_mode_falls_back(self):
        client = AsyncMock()
        client.analyze.side_effect = LLMError.network_error("Server error (503)")
        output = asyncio.run(analyze_project(_config(mode="auto"), client=client))
        assert output.insights.circularDependencies == ["Circular dependency: a -> b -> a"]

    def test_llm_mode_without_key(self, monkeypatch):
        monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)
        with pytest.raises(LLMError) as exc_info:
            run_analysis(_config(mode="llm"))
        assert exc_info.value.code == "CONFIG_ERROR"

    def test_auto_mode_without_key(self, monkeypatch):
        monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)
        output = run_analysis(_config(mode="auto"))
        assert output.insights.circularDependencies == ["Circular dependency: a -> b -> a"]

    def test_programmatic_mode_ignores_client(self):
        client = AsyncMock()
        asyncio.run(analyze_project(_config(), client=client))
        client.analyze.assert_not_awaited()
