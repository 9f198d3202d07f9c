"""Click CLI with analyze, stats, and serve subcommands."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import click

from dep_insight import __version__
from dep_insight.ai.client import LLMError
from dep_insight.analysis.coupling import get_extended_graph_stats
from dep_insight.models import ANALYSIS_MODES, AnalysisConfig, ScanConfig
from dep_insight.pipeline import AnalysisError, collect_graph, run_analysis
from dep_insight.reporter import ReportError, print_json, write_json_to_file

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

_TIPS = {
    "DIR_NOT_FOUND": "Please check that the directory path exists and is accessible",
    "PERMISSION_DENIED": "Please check that you have read permissions for the directory",
    "NO_TS_FILES": "Only .ts and .tsx files are analyzed; node_modules, dist and build are skipped",
}


def _configure_logging(level: str | None) -> None:
    level = (level or os.getenv("DEP_INSIGHT_LOG_LEVEL", "WARNING")).upper()
    # Logs go to stderr so stdout carries only JSON
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _progress(stage: str, current: int, total: int) -> None:
    if total > 0:
        click.echo(f"  {stage}: {current}/{total}", err=True)
    else:
        click.echo(f"  {stage}...", err=True)


def _fail(e: AnalysisError) -> click.ClickException:
    message = e.message
    if e.code in _TIPS:
        message += f"\nTip: {_TIPS[e.code]}"
    return click.ClickException(message)


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", type=click.Choice(_LOG_LEVELS, case_sensitive=False), help="Log level (stderr)")
def cli(log_level: str | None):
    """dep-insight: dependency graph analysis for TypeScript projects."""
    _configure_logging(log_level)


@cli.command()
@click.option("-d", "--dir", "source_dir", required=True,
              type=click.Path(file_okay=False, path_type=Path), help="Directory to analyze")
@click.option("-o", "--output", "output", type=click.Path(dir_okay=False, path_type=Path),
              help="Output file (defaults to stdout)")
@click.option("--tsconfig", type=click.Path(dir_okay=False, path_type=Path),
              help="Path to tsconfig.json (defaults to <dir>/tsconfig.json)")
@click.option("--max-files", type=click.IntRange(min=1), help="Maximum number of files to analyze")
@click.option("--concurrency", type=click.IntRange(min=1), default=10, show_default=True,
              help="Files parsed concurrently per batch")
@click.option("--batch-size", type=click.IntRange(min=1), default=50, show_default=True,
              help="Files per parsing batch")
@click.option("--mode", type=click.Choice(ANALYSIS_MODES), default=None,
              help="Insight strategy (default: $DEP_INSIGHT_MODE or programmatic)")
@click.option("--fan-in-threshold", type=click.IntRange(min=1), default=5, show_default=True)
@click.option("--fan-out-threshold", type=click.IntRange(min=1), default=10, show_default=True)
@click.option("--full-paths", is_flag=True, help="Show full paths instead of basenames in findings")
@click.option("--quiet", "-q", is_flag=True, help="Suppress progress output")
def analyze(
    source_dir: Path,
    output: Path | None,
    tsconfig: Path | None,
    max_files: int | None,
    concurrency: int,
    batch_size: int,
    mode: str | None,
    fan_in_threshold: int,
    fan_out_threshold: int,
    full_paths: bool,
    quiet: bool,
):
    """Analyze a TypeScript project and emit {graph, insights} JSON."""
    config = AnalysisConfig(
        source_dir=source_dir.resolve(),
        tsconfig=tsconfig.resolve() if tsconfig else None,
        max_files=max_files,
        scan=ScanConfig(batch_size=batch_size, concurrency=concurrency),
        mode=mode or "",
        fan_in_threshold=fan_in_threshold,
        fan_out_threshold=fan_out_threshold,
        use_basenames=not full_paths,
    )

    if not quiet:
        click.echo(f"Analyzing {config.source_dir} ({config.mode})", err=True)

    try:
        result = run_analysis(config, progress=None if quiet else _progress)
    except AnalysisError as e:
        raise _fail(e)
    except LLMError as e:
        raise click.ClickException(f"LLM analysis failed ({e.code}): {e.message}")

    if output:
        try:
            write_json_to_file(output, result)
        except ReportError as e:
            raise click.ClickException(str(e))
        if not quiet:
            click.echo(f"Done! Results written to {output}", err=True)
    else:
        print_json(result)


@cli.command()
@click.option("-d", "--dir", "source_dir", required=True,
              type=click.Path(file_okay=False, path_type=Path), help="Directory to analyze")
@click.option("--tsconfig", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--max-files", type=click.IntRange(min=1))
def stats(source_dir: Path, tsconfig: Path | None, max_files: int | None):
    """Print graph statistics and coupling metrics as JSON."""
    config = AnalysisConfig(
        source_dir=source_dir.resolve(),
        tsconfig=tsconfig.resolve() if tsconfig else None,
        max_files=max_files,
        mode="programmatic",
    )
    try:
        graph = collect_graph(config)
    except AnalysisError as e:
        raise _fail(e)
    print_json(get_extended_graph_stats(graph))


@cli.command()
@click.option("--port", "-p", default=8421, help="Port number")
@click.option("--host", default="127.0.0.1", help="Host address")
def serve(port: int, host: str):
    """Start the HTTP API."""
    try:
        import uvicorn
        from dep_insight.web import create_app
    except ImportError:
        raise click.ClickException(
            "fastapi and uvicorn are required for the API server. "
            "Install with: pip install 'dep-insight[web]'"
        )

    click.echo(f"Starting dep-insight API at http://{host}:{port}/api/", err=True)
    uvicorn.run(create_app(), host=host, port=port, log_level="info")


if __name__ == "__main__":
    cli()
