"""TypeScript import scanner using regex patterns."""

from __future__ import annotations

import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor
from functools import partial

from dep_insight.analysis.graph_models import AdjacencyMapping
from dep_insight.models import ScanConfig
from dep_insight.scanner.files import is_typescript_file
from dep_insight.scanner.tsconfig import PathResolver

logger = logging.getLogger(__name__)

# String literals are matched first so comment markers inside them survive
_COMMENT_RE = re.compile(
    r"""('(?:\\.|[^'\\\n])*'|"(?:\\.|[^"\\\n])*"|`(?:\\.|[^`\\])*`)|//[^\n]*|/\*.*?\*/""",
    re.DOTALL,
)

# Patterns for module specifiers
_IMPORT_FROM_RE = re.compile(
    r"""^\s*import\s+(type\s+)?[\w*{}\s,$]*?\s*from\s*['"]([^'"]+)['"]""",
    re.MULTILINE,
)
_SIDE_EFFECT_IMPORT_RE = re.compile(r"""^\s*import\s*['"]([^'"]+)['"]""", re.MULTILINE)
_EXPORT_FROM_RE = re.compile(
    r"""^\s*export\s+(type\s+)?(?:\*(?:\s+as\s+\w+)?|\{[^}]*\})\s*from\s*['"]([^'"]+)['"]""",
    re.MULTILINE,
)
_DYNAMIC_IMPORT_RE = re.compile(r"""\bimport\s*\(\s*['"]([^'"]+)['"]\s*\)""")


def strip_comments(source: str) -> str:
    return _COMMENT_RE.sub(lambda m: m.group(1) or "", source)


def extract_import_specifiers(source: str) -> list[str]:
    """Module specifiers of static, side-effect, re-export and dynamic imports.

    Type-only imports and exports are skipped. Specifiers are returned in
    order of first appearance, without duplicates.
    """
    code = strip_comments(source)
    found: list[tuple[int, str]] = []

    for m in _IMPORT_FROM_RE.finditer(code):
        if not m.group(1):
            found.append((m.start(), m.group(2)))
    for m in _EXPORT_FROM_RE.finditer(code):
        if not m.group(1):
            found.append((m.start(), m.group(2)))
    for m in _SIDE_EFFECT_IMPORT_RE.finditer(code):
        found.append((m.start(), m.group(1)))
    for m in _DYNAMIC_IMPORT_RE.finditer(code):
        found.append((m.start(), m.group(1)))

    specifiers: list[str] = []
    seen: set[str] = set()
    for _, spec in sorted(found):
        spec = spec.strip()
        if spec and spec not in seen:
            seen.add(spec)
            specifiers.append(spec)
    return specifiers


def parse_file(file_path: str, resolve: PathResolver) -> list[str]:
    """Sorted, deduplicated TypeScript files imported by ``file_path``."""
    try:
        with open(file_path, encoding="utf-8", errors="replace") as f:
            source = f.read()
    except OSError as e:
        logger.warning("Could not read %s: %s", file_path, e)
        return []

    imports: set[str] = set()
    for specifier in extract_import_specifiers(source):
        resolved = resolve(file_path, specifier)
        if resolved and is_typescript_file(resolved):
            imports.add(os.path.abspath(resolved))
    return sorted(imports)


def parse_imports(
    files: list[str],
    resolve: PathResolver,
    config: ScanConfig | None = None,
) -> AdjacencyMapping:
    """Parse every TypeScript file into one adjacency mapping.

    Files are processed in batches of ``config.batch_size``; the files of a
    batch are parsed concurrently on up to ``config.concurrency`` threads and
    batches run one after another.
    """
    if not files:
        return {}
    if not callable(resolve):
        raise TypeError("resolve function is required")

    config = config or ScanConfig()
    ts_files = [os.path.abspath(f) for f in files if is_typescript_file(f)]
    result: AdjacencyMapping = {}
    batch_size = max(1, config.batch_size)
    worker = partial(parse_file, resolve=resolve)

    with ThreadPoolExecutor(max_workers=max(1, config.concurrency)) as pool:
        for start in range(0, len(ts_files), batch_size):
            batch = ts_files[start:start + batch_size]
            for path, deps in zip(batch, pool.map(worker, batch)):
                result[path] = deps
            logger.debug("parsed batch %d-%d of %d", start + 1, start + len(batch), len(ts_files))

    return result
