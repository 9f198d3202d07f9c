"""dep-insight: dependency graph analysis for TypeScript codebases."""

__version__ = "0.1.0"
