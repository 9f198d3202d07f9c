"""Analysis pipeline: discover -> parse -> build graph -> synthesize insights."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable

from dep_insight.ai.client import LLMClient, LLMError
from dep_insight.analysis.graph_builder import (
    AdjacencyValidationError,
    build_graph,
    validate_adjacency,
)
from dep_insight.analysis.graph_models import DependencyGraph
from dep_insight.analysis.insights import (
    AnalyzerConfig,
    FallbackAnalyzer,
    InsightStrategy,
    LLMAnalyzer,
    ProgrammaticAnalyzer,
    build_output,
)
from dep_insight.models import ANALYSIS_MODES, AnalysisConfig, AnalysisOutput
from dep_insight.scanner import (
    create_path_resolver,
    find_typescript_files,
    load_tsconfig,
    parse_imports,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]


class AnalysisError(Exception):
    """User-facing analysis failure with an HTTP-style status and a stable code."""

    def __init__(self, message: str, status_code: int = 500, code: str = "INTERNAL_ERROR"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.code, "statusCode": self.status_code}


def validate_config(config: AnalysisConfig) -> None:
    """Reject unusable options before any file is touched."""
    if config.source_dir is None or not str(config.source_dir).strip():
        raise AnalysisError("Directory path is required", 400, "MISSING_DIR")
    if config.max_files is not None and (not isinstance(config.max_files, int) or config.max_files < 1):
        raise AnalysisError("maxFiles must be a positive integer", 400, "INVALID_MAX_FILES")
    if not isinstance(config.scan.concurrency, int) or config.scan.concurrency < 1:
        raise AnalysisError("concurrency must be a positive integer", 400, "INVALID_CONCURRENCY")
    if not isinstance(config.scan.batch_size, int) or config.scan.batch_size < 1:
        raise AnalysisError("batchSize must be a positive integer", 400, "INVALID_BATCH_SIZE")
    if config.mode not in ANALYSIS_MODES:
        raise AnalysisError(
            f"mode must be one of: {', '.join(ANALYSIS_MODES)}", 400, "INVALID_MODE",
        )
    if config.fan_in_threshold < 1 or config.fan_out_threshold < 1:
        raise AnalysisError("Coupling thresholds must be positive", 400, "INVALID_THRESHOLD")


def analyzer_config(config: AnalysisConfig) -> AnalyzerConfig:
    return AnalyzerConfig(
        fan_in_threshold=config.fan_in_threshold,
        fan_out_threshold=config.fan_out_threshold,
        use_basenames=config.use_basenames,
    )


def collect_graph(config: AnalysisConfig, progress: ProgressCallback | None = None) -> DependencyGraph:
    """Stages 1-3: find files, parse and resolve imports, build the graph."""
    validate_config(config)
    source_dir = Path(config.source_dir)

    # Stage 1: Discover
    if progress:
        progress("Discovering", 0, 1)
    try:
        files = find_typescript_files(source_dir, config.max_files, config.extra_ignores)
    except FileNotFoundError as e:
        raise AnalysisError(
            "Directory path does not exist or is not accessible", 404, "DIR_NOT_FOUND",
        ) from e
    except NotADirectoryError as e:
        raise AnalysisError(str(e), 400, "NOT_A_DIRECTORY") from e
    except PermissionError as e:
        raise AnalysisError(
            "Permission denied - check directory read permissions", 403, "PERMISSION_DENIED",
        ) from e
    if not files:
        raise AnalysisError(
            "No TypeScript files found in the specified directory", 404, "NO_TS_FILES",
        )
    logger.info("found %d TypeScript files in %s", len(files), source_dir)
    if progress:
        progress("Discovering", 1, 1)

    # Stage 2: Parse
    tsconfig_path = config.tsconfig or source_dir / "tsconfig.json"
    resolver = create_path_resolver(source_dir, load_tsconfig(tsconfig_path))
    if progress:
        progress("Parsing", 0, len(files))
    adjacency = parse_imports(files, resolver, config.scan)
    if progress:
        progress("Parsing", len(files), len(files))
    logger.info(
        "parsed %d dependencies across %d files",
        sum(len(deps) for deps in adjacency.values()), len(adjacency),
    )

    # Stage 3: Build
    try:
        graph = build_graph(validate_adjacency(adjacency))
    except AdjacencyValidationError as e:
        raise AnalysisError(str(e), 500, "INVALID_GRAPH") from e
    logger.info("dependency graph built: %d nodes, %d edges", graph.node_count(), graph.edge_count())
    return graph


def build_strategy(
    mode: str,
    programmatic: ProgrammaticAnalyzer,
    client: LLMClient | None = None,
) -> InsightStrategy:
    """Pick the insight strategy for ``mode``; ``auto`` wraps the LLM with a fallback."""
    if mode == "programmatic" or client is None:
        return programmatic
    if mode == "llm":
        return LLMAnalyzer(client)
    return FallbackAnalyzer(LLMAnalyzer(client), programmatic)


async def synthesize(
    graph: DependencyGraph,
    config: AnalysisConfig,
    client: LLMClient | None = None,
) -> AnalysisOutput:
    """Stage 4: produce insights with the configured strategy and validate the payload."""
    programmatic = ProgrammaticAnalyzer(analyzer_config(config))

    if config.mode == "programmatic":
        insights = await programmatic.synthesize(graph)
        return build_output(graph, insights)

    if client is not None:
        insights = await build_strategy(config.mode, programmatic, client).synthesize(graph)
        return build_output(graph, insights)

    try:
        owned = LLMClient()
    except LLMError as e:
        if config.mode == "llm":
            raise
        logger.warning("LLM unavailable (%s), using programmatic analysis", e.message)
        return build_output(graph, await programmatic.synthesize(graph))

    async with owned:
        insights = await build_strategy(config.mode, programmatic, owned).synthesize(graph)
    return build_output(graph, insights)


async def analyze_project(
    config: AnalysisConfig,
    progress: ProgressCallback | None = None,
    client: LLMClient | None = None,
) -> AnalysisOutput:
    """Run the full analysis. Parsing runs in a worker thread."""
    graph = await asyncio.to_thread(collect_graph, config, progress)

    if progress:
        progress("Analyzing", 0, 1)
    output = await synthesize(graph, config, client)
    if progress:
        progress("Analyzing", 1, 1)

    logger.info(
        "analysis completed: %d cycles, %d coupling findings, %d recommendations",
        len(output.insights.circularDependencies),
        len(output.insights.tightCoupling),
        len(output.insights.recommendations),
    )
    return output


def run_analysis(
    config: AnalysisConfig,
    progress: ProgressCallback | None = None,
) -> AnalysisOutput:
    """Synchronous entry point for the CLI."""
    return asyncio.run(analyze_project(config, progress))
