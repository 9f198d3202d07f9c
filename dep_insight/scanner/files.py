"""TypeScript file discovery."""

from __future__ import annotations

import fnmatch
from pathlib import Path

DEFAULT_IGNORES = [
    "node_modules", "jspm_packages", "dist", "build", "out", "coverage",
    ".git", ".svn", ".hg", ".vscode", ".idea", ".DS_Store",
    ".next", ".nuxt", ".cache", ".parcel-cache", ".nyc_output",
    "temp", "tmp",
]

TS_EXTENSIONS = (".ts", ".tsx")


def is_typescript_file(path: str | Path) -> bool:
    return Path(path).suffix in TS_EXTENSIONS


def should_ignore_path(path: str | Path, ignore: list[str] | None = None) -> bool:
    patterns = DEFAULT_IGNORES + list(ignore or [])
    for part in Path(path).parts:
        for pattern in patterns:
            if fnmatch.fnmatch(part, pattern):
                return True
    return False


def validate_directory(directory: str | Path) -> Path:
    """Resolve ``directory`` and make sure it is an existing directory."""
    path = Path(directory).resolve()
    if not path.exists():
        raise FileNotFoundError(f"Directory {directory} does not exist")
    if not path.is_dir():
        raise NotADirectoryError(f"Path {directory} is not a directory")
    return path


def find_typescript_files(
    root_dir: str | Path,
    max_files: int | None = None,
    ignore: list[str] | None = None,
) -> list[str]:
    """Recursively collect ``.ts``/``.tsx`` files as sorted absolute paths.

    Ignore patterns are matched against each path component below ``root_dir``.
    With ``max_files`` the first N paths in sorted order are returned.
    """
    root = validate_directory(root_dir)
    results: list[str] = []
    for path in sorted(root.rglob("*")):
        if not is_typescript_file(path) or not path.is_file():
            continue
        if should_ignore_path(path.relative_to(root), ignore):
            continue
        results.append(str(path))
        if max_files and len(results) >= max_files:
            break
    return sorted(results)

