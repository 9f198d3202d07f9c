"""tsconfig.json loading and import specifier resolution."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

PathResolver = Callable[[str, str], "str | None"]

# A JSON string literal is matched first so comment markers inside strings survive
_COMMENT_RE = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r'("(?:\\.|[^"\\])*")|,(\s*[}\]])')

_NODE_BUILTINS_RE = re.compile(
    r"^(fs|path|http|https|url|crypto|util|events|stream|buffer|os|"
    r"querystring|zlib|child_process)$"
)
_COMMON_PACKAGES_RE = re.compile(r"^(lodash|react|vue|angular|express|webpack|babel|typescript)")
_SCOPED_PACKAGE_RE = re.compile(r"^@[a-z0-9][a-z0-9-]*/")
_BARE_PACKAGE_RE = re.compile(r"^[a-z][a-z0-9-]*$")

_SOURCE_SUFFIXES = (".ts", ".tsx")
# ESM-style TypeScript imports name the emitted file
_EMITTED_SUFFIXES = {".js": ".ts", ".jsx": ".tsx", ".mjs": ".ts"}


@dataclass
class TsConfigPaths:
    base_url: str | None = None
    paths: dict[str, list[str]] = field(default_factory=dict)


def strip_json_comments(content: str) -> str:
    """Remove ``//`` and ``/* */`` comments and trailing commas from JSONC text."""
    without_comments = _COMMENT_RE.sub(lambda m: m.group(1) or "", content)
    return _TRAILING_COMMA_RE.sub(lambda m: m.group(1) or m.group(2), without_comments)


def load_tsconfig(tsconfig_path: str | Path | None = None) -> TsConfigPaths:
    """Read ``compilerOptions.baseUrl`` and ``compilerOptions.paths``.

    A missing file yields an empty config silently; an unreadable or invalid
    one yields an empty config with a warning.
    """
    config_path = Path(tsconfig_path or "tsconfig.json").resolve()
    try:
        raw = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return TsConfigPaths()
    except OSError as e:
        logger.warning("Could not read tsconfig from %s: %s", config_path, e)
        return TsConfigPaths()

    try:
        config = json.loads(strip_json_comments(raw))
    except ValueError as e:
        logger.warning("Could not parse tsconfig from %s: %s", config_path, e)
        return TsConfigPaths()

    options = config.get("compilerOptions") if isinstance(config, dict) else None
    if not isinstance(options, dict):
        options = {}
    base_url = options.get("baseUrl")
    paths = options.get("paths")
    if not isinstance(paths, dict):
        paths = {}
    if base_url is not None:
        # baseUrl is relative to the tsconfig file itself
        base_url = os.path.normpath(os.path.join(config_path.parent, base_url))
    return TsConfigPaths(
        base_url=base_url,
        paths={k: list(v) for k, v in paths.items() if isinstance(v, list)},
    )


def is_external_module(specifier: str) -> bool:
    """Heuristic: does ``specifier`` name a package rather than a project file?"""
    if not specifier or not specifier.strip():
        return False
    if specifier.startswith((".", "/")):
        return False
    # Common path alias prefixes
    if specifier.startswith(("@/", "~/")):
        return False
    if _NODE_BUILTINS_RE.match(specifier) or specifier.startswith("node:"):
        return True
    if _COMMON_PACKAGES_RE.match(specifier):
        return True
    if _SCOPED_PACKAGE_RE.match(specifier):
        return True
    if _BARE_PACKAGE_RE.match(specifier):
        return True
    return False


def find_actual_file(base_path: str) -> str | None:
    """Map an extensionless or emitted-extension path to an existing TypeScript file."""
    root, ext = os.path.splitext(base_path)
    if ext in _SOURCE_SUFFIXES:
        return base_path if os.path.isfile(base_path) else None
    if ext in _EMITTED_SUFFIXES:
        candidate = root + _EMITTED_SUFFIXES[ext]
        if os.path.isfile(candidate):
            return candidate

    candidates = [base_path + suffix for suffix in _SOURCE_SUFFIXES]
    candidates += [os.path.join(base_path, "index" + suffix) for suffix in _SOURCE_SUFFIXES]
    for candidate in candidates:
        if os.path.isfile(candidate):
            return candidate
    return None


def _match_pattern(specifier: str, pattern: str) -> str | None:
    """Return the wildcard capture when ``specifier`` matches ``pattern``."""
    if "*" not in pattern:
        return specifier if specifier == pattern else None
    prefix, _, suffix = pattern.partition("*")
    if (
        specifier.startswith(prefix)
        and specifier.endswith(suffix)
        and len(specifier) >= len(prefix) + len(suffix)
    ):
        return specifier[len(prefix): len(specifier) - len(suffix)]
    return None


def _pattern_priority(pattern: str) -> tuple[int, int]:
    # Exact patterns first, then longer (more specific) patterns
    return ("*" in pattern, -len(pattern))


def _resolve_path_mapping(
    specifier: str,
    path_mappings: dict[str, list[str]],
    base_url: str,
) -> str | None:
    for pattern in sorted(path_mappings, key=_pattern_priority):
        wildcard = _match_pattern(specifier, pattern)
        if wildcard is None:
            continue
        for replacement in path_mappings[pattern]:
            target = replacement.replace("*", wildcard, 1)
            resolved = find_actual_file(os.path.normpath(os.path.join(base_url, target)))
            if resolved:
                return resolved
    return None


def create_path_resolver(root_dir: str | Path, tsconfig: TsConfigPaths) -> PathResolver:
    """Build ``resolve(from_file, specifier) -> path | None`` for a project.

    Order: relative specifiers, absolute paths, ``paths`` mappings, then
    ``baseUrl``. Package imports and anything that does not land on an
    existing ``.ts``/``.tsx`` file resolve to ``None``.
    """
    root = os.path.abspath(root_dir)
    base_url = tsconfig.base_url or root
    path_mappings = tsconfig.paths

    def resolve(from_file: str, specifier: str) -> str | None:
        if not specifier or not specifier.strip():
            return None

        if specifier.startswith("."):
            from_dir = os.path.dirname(os.path.abspath(from_file))
            return find_actual_file(os.path.normpath(os.path.join(from_dir, specifier)))

        if os.path.isabs(specifier):
            return find_actual_file(os.path.normpath(specifier))

        mapped = _resolve_path_mapping(specifier, path_mappings, base_url)
        if mapped:
            return mapped

        if is_external_module(specifier):
            return None

        if tsconfig.base_url:
            return find_actual_file(os.path.normpath(os.path.join(base_url, specifier)))

        return None

    return resolve

