"""Analysis API routes."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Query, Request, Response
from pydantic import BaseModel

from dep_insight import __version__
from dep_insight.ai.client import LLMError
from dep_insight.analysis.coupling import (
    CouplingThresholds,
    compute_coupling_metrics,
    find_high_coupling_nodes,
)
from dep_insight.analysis.cycles import detect_cycles
from dep_insight.analysis.graph_builder import (
    AdjacencyValidationError,
    build_graph,
    get_graph_stats,
    serialize_adjacency,
    validate_adjacency,
)
from dep_insight.analysis.insights import AnalyzerConfig, ProgrammaticAnalyzer
from dep_insight.models import AnalysisConfig, ScanConfig
from dep_insight.pipeline import AnalysisError, analyze_project

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class InsightsRequest(BaseModel):
    graph: Any
    fanInThreshold: int = 5
    fanOutThreshold: int = 10
    useBasenames: bool = True


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
async def api_info():
    return {
        "name": "dep-insight API",
        "version": __version__,
        "description": "Dependency graph analysis for TypeScript projects",
        "endpoints": {
            "GET /api/": "API information",
            "GET /api/health": "Liveness check",
            "GET /api/analyze": "Analyze a project directory",
            "POST /api/insights": "Analyze a posted adjacency mapping",
        },
        "usage": {
            "analyze": {
                "method": "GET",
                "parameters": {
                    "dir": "Directory to analyze (required)",
                    "tsconfig": "Path to tsconfig.json",
                    "maxFiles": "Maximum number of files to analyze",
                    "concurrency": "Files parsed concurrently per batch (default: 10)",
                    "batchSize": "Files per parsing batch (default: 50)",
                    "mode": "programmatic | llm | auto (default: programmatic)",
                    "useProgrammaticAnalysis": "true forces programmatic mode",
                },
            },
        },
        "timestamp": _now(),
    }


@router.get("/health")
async def health():
    return {"status": "ok", "timestamp": _now()}


@router.get("/analyze")
async def analyze(
    request: Request,
    response: Response,
    dir: str = "",
    tsconfig: str | None = None,
    max_files: int | None = Query(None, alias="maxFiles"),
    concurrency: int = 10,
    batch_size: int = Query(50, alias="batchSize"),
    mode: str = "programmatic",
    use_programmatic: bool = Query(False, alias="useProgrammaticAnalysis"),
):
    start = time.monotonic()
    request_id = request.state.request_id
    logger.info("analysis request [%s] dir=%s mode=%s", request_id, dir, mode)

    config = AnalysisConfig(
        source_dir=Path(dir).resolve() if dir.strip() else None,
        tsconfig=Path(tsconfig).resolve() if tsconfig else None,
        max_files=max_files,
        scan=ScanConfig(batch_size=batch_size, concurrency=concurrency),
        mode="programmatic" if use_programmatic else mode,
    )

    try:
        result = await analyze_project(config)
    except (AnalysisError, LLMError):
        raise
    except Exception as e:
        logger.exception("unexpected error in analysis [%s]", request_id)
        raise AnalysisError("Internal server error during analysis", 500, "INTERNAL_ERROR") from e

    duration = int((time.monotonic() - start) * 1000)
    logger.info(
        "analysis completed [%s] in %dms: %d nodes",
        request_id, duration, len(result.graph),
    )
    response.headers["X-Analysis-Duration"] = str(duration)
    return {
        "success": True,
        "requestId": request_id,
        "duration": duration,
        "timestamp": _now(),
        "result": result.model_dump(),
    }


def _graph_insights(req: InsightsRequest) -> dict:
    """Deterministic insights for a posted adjacency mapping. Runs in a worker thread."""
    try:
        adjacency = validate_adjacency(req.graph)
    except AdjacencyValidationError as e:
        raise AnalysisError(str(e), 400, "INVALID_GRAPH") from e

    if req.fanInThreshold < 1 or req.fanOutThreshold < 1:
        raise AnalysisError("Coupling thresholds must be positive", 400, "INVALID_THRESHOLD")

    graph = build_graph(adjacency)
    analyzer = ProgrammaticAnalyzer(AnalyzerConfig(
        fan_in_threshold=req.fanInThreshold,
        fan_out_threshold=req.fanOutThreshold,
        use_basenames=req.useBasenames,
    ))
    report = detect_cycles(graph)
    stats = get_graph_stats(graph, report.cycles)
    high = find_high_coupling_nodes(
        graph, CouplingThresholds(req.fanInThreshold, req.fanOutThreshold),
    )

    return {
        "graph": serialize_adjacency(graph),
        "insights": analyzer.analyze(graph, report.cycles).model_dump(),
        "cycles": report.cycles,
        "cyclePaths": report.paths,
        "highFanIn": [e.to_dict() for e in high.high_fan_in],
        "highFanOut": [e.to_dict() for e in high.high_fan_out],
        "stats": {
            **stats.to_dict(),
            "couplingMetrics": compute_coupling_metrics(graph).to_dict(),
        },
    }


@router.post("/insights")
async def insights(req: InsightsRequest):
    return await asyncio.to_thread(_graph_insights, req)
