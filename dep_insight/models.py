"""Data models for the dep-insight pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel


class InsightPayload(BaseModel):
    """Findings produced by either insight strategy."""
    circularDependencies: list[str]
    tightCoupling: list[str]
    recommendations: list[str]


class AnalysisOutput(BaseModel):
    """The documented JSON contract: canonical graph plus insights."""
    graph: dict[str, list[str]]
    insights: InsightPayload


ANALYSIS_MODES = ("programmatic", "llm", "auto")


@dataclass
class ScanConfig:
    """Import-parsing knobs: files per batch and worker threads per batch."""
    batch_size: int = 50
    concurrency: int = 10


@dataclass
class AnalysisConfig:
    """Configuration for one analysis run."""
    source_dir: Path | None = None
    tsconfig: Path | None = None
    max_files: int | None = None
    scan: ScanConfig = field(default_factory=ScanConfig)
    mode: str = ""  # "programmatic" | "llm" | "auto"
    fan_in_threshold: int = 5
    fan_out_threshold: int = 10
    use_basenames: bool = True
    extra_ignores: list[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.mode:
            self.mode = os.getenv("DEP_INSIGHT_MODE", "programmatic")
