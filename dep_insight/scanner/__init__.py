"""File discovery, tsconfig-aware resolution, and import parsing."""

from __future__ import annotations

from dep_insight.scanner.files import (
    DEFAULT_IGNORES,
    TS_EXTENSIONS,
    find_typescript_files,
    is_typescript_file,
    validate_directory,
)
from dep_insight.scanner.imports import extract_import_specifiers, parse_imports
from dep_insight.scanner.tsconfig import (
    TsConfigPaths,
    create_path_resolver,
    is_external_module,
    load_tsconfig,
)

__all__ = [
    "DEFAULT_IGNORES",
    "TS_EXTENSIONS",
    "TsConfigPaths",
    "create_path_resolver",
    "extract_import_specifiers",
    "find_typescript_files",
    "is_external_module",
    "is_typescript_file",
    "load_tsconfig",
    "parse_imports",
    "validate_directory",
]
