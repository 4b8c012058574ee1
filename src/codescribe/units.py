"""Unit builder: group scanned files into analysis units."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from codescribe.errors import EmptyUnitError
from codescribe.scanner import FileDescriptor, UnitMode

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

_HEADER_TEMPLATE = "===== FILE: {name} ({count} lines) ====="
_HEADER_RE = re.compile(r"^===== FILE: (?P<name>.+) \((?P<count>\d+) lines\) =====$")


@dataclass(frozen=True)
class AnalysisUnit:
    """One bundle of source analyzed together and mapped to one record."""

    unit_key: str
    mode: UnitMode
    members: tuple[FileDescriptor, ...]
    concatenated_source: str

    @property
    def source_label(self) -> str:
        """Comma-joined member names, written to the record's File Path."""
        return ", ".join(m.relative_name for m in self.members)


def join_sources(parts: Sequence[tuple[str, str]]) -> str:
    """Concatenate ``(relative_name, text)`` pairs with header lines.

    Each header records how many lines follow it, so member text that
    happens to contain a header-shaped line cannot shift the boundaries.
    """
    chunks: list[str] = []
    for name, text in parts:
        body = text if text.endswith("\n") else text + "\n"
        chunks.append(_HEADER_TEMPLATE.format(name=name, count=body.count("\n")) + "\n")
        chunks.append(body)
    return "".join(chunks)


def split_source(concatenated: str) -> list[tuple[str, str]]:
    """Reverse :func:`join_sources`, returning pairs in their original order.

    Lines before the first header are ignored.  Trailing newlines added by
    :func:`join_sources` are kept.
    """
    parts: list[tuple[str, str]] = []
    lines = concatenated.split("\n")
    index = 0
    while index < len(lines):
        match = _HEADER_RE.match(lines[index])
        index += 1
        if not match:
            continue
        count = int(match.group("count"))
        body = lines[index : index + count]
        index += count
        parts.append((match.group("name"), "".join(line + "\n" for line in body)))
    return parts


def _read_member(fd: FileDescriptor, size_ceiling_bytes: int | None) -> str | None:
    """Return the text of *fd*, or None when it is skipped."""
    try:
        size = fd.absolute_path.stat().st_size
    except OSError as exc:
        logger.warning("Skipping %s: %s", fd.relative_name, exc)
        return None

    if size_ceiling_bytes is not None and size > size_ceiling_bytes:
        logger.info(
            "Skipping %s (too large: %d bytes > %d)",
            fd.relative_name,
            size,
            size_ceiling_bytes,
        )
        return None

    try:
        return fd.absolute_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Skipping unreadable file %s: %s", fd.relative_name, exc)
        return None


def build_units(
    files: Sequence[FileDescriptor],
    mode: UnitMode,
    size_ceiling_bytes: int | None,
    *,
    unit_key: str | None = None,
) -> list[AnalysisUnit]:
    """Group *files* into analysis units and load their contents.

    Parameters
    ----------
    files:
        Scanned file descriptors, in scan order.
    mode:
        ``UnitMode.FILE`` builds one unit per file keyed by its relative
        name; ``UnitMode.FEATURE`` builds a single unit from all files.
    size_ceiling_bytes:
        Files larger than this are skipped.  ``None`` disables the limit.
    unit_key:
        Identity of the feature unit (feature mode only).  Defaults to the
        first path component shared by the members.

    Raises
    ------
    EmptyUnitError
        If *files* is empty, or in feature mode when every file was
        filtered out.  In file mode, oversized files are skipped and may
        leave an empty result without raising.
    """
    if not files:
        msg = "No eligible source files to build units from."
        raise EmptyUnitError(msg)

    if mode is UnitMode.FILE:
        units: list[AnalysisUnit] = []
        for fd in files:
            text = _read_member(fd, size_ceiling_bytes)
            if text is None:
                continue
            units.append(
                AnalysisUnit(
                    unit_key=fd.relative_name,
                    mode=mode,
                    members=(fd,),
                    concatenated_source=join_sources([(fd.relative_name, text)]),
                )
            )
        if not units:
            logger.info("All %d files were skipped; no units built.", len(files))
        return units

    members: list[FileDescriptor] = []
    parts: list[tuple[str, str]] = []
    for fd in files:
        text = _read_member(fd, size_ceiling_bytes)
        if text is None:
            continue
        members.append(fd)
        parts.append((fd.relative_name, text))

    if not members:
        msg = f"All {len(files)} feature files were filtered out."
        raise EmptyUnitError(msg)

    key = unit_key or _common_root(members)
    return [
        AnalysisUnit(
            unit_key=key,
            mode=mode,
            members=tuple(members),
            concatenated_source=join_sources(parts),
        )
    ]


def _common_root(members: Sequence[FileDescriptor]) -> str:
    """Return the directory shared by all members' first path component, else 'feature'."""
    if all("/" in m.relative_name for m in members):
        heads = {m.relative_name.split("/", 1)[0] for m in members}
        if len(heads) == 1:
            return heads.pop()
    return "feature"
