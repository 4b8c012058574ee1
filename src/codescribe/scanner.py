"""Source scanner: collect candidate source files from a directory tree."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from codescribe.errors import ScanError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

logger = logging.getLogger(__name__)


class UnitMode(enum.Enum):
    """How scanned files are grouped into analysis units."""

    FILE = "file"  # one unit per file
    FEATURE = "feature"  # one unit per subtree


# Dependency caches, VCS metadata, build output, coverage reports.
EXCLUDE_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        "dist",
        "build",
        "coverage",
        "__pycache__",
        ".venv",
        "venv",
        ".next",
        ".pytest_cache",
        ".mypy_cache",
        "htmlcov",
    }
)

GENERAL_EXTENSIONS = frozenset({".js", ".jsx", ".ts", ".tsx", ".py", ".java", ".go"})

WEB_EXTENSIONS = frozenset(
    {".js", ".jsx", ".ts", ".tsx", ".vue", ".svelte", ".css", ".scss", ".html"}
)


@dataclass(frozen=True)
class FileDescriptor:
    """A source file found by the scanner."""

    absolute_path: Path
    relative_name: str


def extensions_for(mode: UnitMode) -> frozenset[str]:
    """Return the extension allow-set used for *mode*."""
    if mode is UnitMode.FEATURE:
        return WEB_EXTENSIONS
    return GENERAL_EXTENSIONS


def _walk(
    directory: Path,
    root: Path,
    extensions: frozenset[str],
    exclude_dirs: frozenset[str],
    found: list[FileDescriptor],
) -> None:
    try:
        entries = list(directory.iterdir())
    except OSError as exc:
        logger.warning("Skipping unreadable directory %s: %s", directory, exc)
        return

    for entry in entries:
        try:
            is_dir = entry.is_dir()
            is_link = is_dir and entry.is_symlink()
        except OSError as exc:
            logger.warning("Skipping %s: %s", entry, exc)
            continue

        if is_link:
            logger.debug("Skipping symlinked directory %s", entry)
        elif is_dir:
            if entry.name not in exclude_dirs:
                _walk(entry, root, extensions, exclude_dirs, found)
        elif entry.suffix in extensions:
            found.append(
                FileDescriptor(
                    absolute_path=entry.resolve(),
                    relative_name=entry.relative_to(root).as_posix(),
                )
            )


def scan(
    root: Path,
    extensions: Iterable[str] = GENERAL_EXTENSIONS,
    exclude_dirs: Iterable[str] = EXCLUDE_DIRS,
) -> list[FileDescriptor]:
    """Recursively collect files under *root* whose extension is allowed.

    Directories named in *exclude_dirs* and symlinked directories are not
    descended into.  Entries are
    returned in filesystem enumeration order, depth-first.

    Raises
    ------
    ScanError
        If *root* does not exist or is not a directory.
    """
    if not root.exists():
        msg = f"Scan root does not exist: {root}"
        raise ScanError(msg)
    if not root.is_dir():
        msg = f"Scan root is not a directory: {root}"
        raise ScanError(msg)

    found: list[FileDescriptor] = []
    _walk(root, root, frozenset(extensions), frozenset(exclude_dirs), found)
    logger.debug("Scanned %s: %d candidate files", root, len(found))
    return found
