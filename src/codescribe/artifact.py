"""Artifact parser: decode model replies into typed documentation artifacts.

The model is asked for a bare JSON object but is not fully compliant, so
replies are normalized (code fences stripped) before decoding.  Two shapes
exist, selected by the unit's mode rather than by inspecting the payload:

- file mode: ``errorMessages`` is free text;
- feature mode: ``errorMessages`` is a list of ``{error, explanation}``
  objects and an optional ``plainSummary`` string (empty when absent).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from codescribe.errors import ArtifactParseError
from codescribe.scanner import UnitMode

_FENCE_OPEN_RE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?")
_FENCE_CLOSE_RE = re.compile(r"\n?```[ \t]*$")

# Wire key -> attribute name, shared by both shapes.
_COMMON_FIELDS = (
    ("description", "description"),
    ("howItWorks", "mechanism"),
    ("technicalDetails", "technical_notes"),
    ("flowchart", "diagram"),
)


@dataclass(frozen=True)
class ErrorEntry:
    """One documented error message."""

    error_message: str
    explanation: str


@dataclass(frozen=True)
class FileArtifact:
    """Documentation for a single source file."""

    title: str
    description: str
    mechanism: str
    technical_notes: str
    error_catalog: str
    diagram: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "title", self.title.strip())

    @property
    def mode(self) -> UnitMode:
        return UnitMode.FILE

    def to_payload(self) -> dict[str, Any]:
        """Return the wire representation the model is asked to produce."""
        return {
            "featureName": self.title,
            "description": self.description,
            "howItWorks": self.mechanism,
            "technicalDetails": self.technical_notes,
            "errorMessages": self.error_catalog,
            "flowchart": self.diagram,
        }


@dataclass(frozen=True)
class FeatureArtifact:
    """Documentation for a feature spanning many files."""

    title: str
    plain_summary: str
    description: str
    mechanism: str
    technical_notes: str
    error_catalog: tuple[ErrorEntry, ...]
    diagram: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "title", self.title.strip())

    @property
    def mode(self) -> UnitMode:
        return UnitMode.FEATURE

    def to_payload(self) -> dict[str, Any]:
        """Return the wire representation the model is asked to produce."""
        return {
            "featureName": self.title,
            "plainSummary": self.plain_summary,
            "description": self.description,
            "howItWorks": self.mechanism,
            "technicalDetails": self.technical_notes,
            "errorMessages": [
                {"error": e.error_message, "explanation": e.explanation}
                for e in self.error_catalog
            ],
            "flowchart": self.diagram,
        }


DocumentationArtifact = FileArtifact | FeatureArtifact


def strip_code_fences(raw: str) -> str:
    """Remove a leading ```` ```json ```` fence and a trailing ```` ``` ```` fence."""
    text = raw.strip()
    text = _FENCE_OPEN_RE.sub("", text, count=1)
    text = _FENCE_CLOSE_RE.sub("", text, count=1)
    return text.strip()


def _require_str(data: dict[str, Any], key: str, raw: str) -> str:
    if key not in data:
        msg = f"Artifact is missing required field {key!r}."
        raise ArtifactParseError(msg, raw)
    value = data[key]
    if not isinstance(value, str):
        msg = f"Artifact field {key!r} must be a string, got {type(value).__name__}."
        raise ArtifactParseError(msg, raw)
    return value


def _parse_error_entries(data: dict[str, Any], raw: str) -> tuple[ErrorEntry, ...]:
    if "errorMessages" not in data:
        msg = "Artifact is missing required field 'errorMessages'."
        raise ArtifactParseError(msg, raw)
    value = data["errorMessages"]
    if not isinstance(value, list):
        msg = "Artifact field 'errorMessages' must be a list in feature mode."
        raise ArtifactParseError(msg, raw)

    entries: list[ErrorEntry] = []
    for index, item in enumerate(value):
        if (
            not isinstance(item, dict)
            or not isinstance(item.get("error"), str)
            or not isinstance(item.get("explanation"), str)
        ):
            msg = f"errorMessages[{index}] must be an object with string 'error' and 'explanation'."
            raise ArtifactParseError(msg, raw)
        entries.append(ErrorEntry(error_message=item["error"], explanation=item["explanation"]))
    return tuple(entries)


def parse_artifact(raw: str, mode: UnitMode) -> DocumentationArtifact:
    """Parse a raw model reply into the artifact shape for *mode*.

    Only structure is validated; the content (e.g. flowchart syntax) is
    taken as-is.

    Raises
    ------
    ArtifactParseError
        If the reply is not a JSON object after fence stripping, or a
        required field is missing or has the wrong type.  The original
        reply is attached as ``raw_payload``.
    """
    cleaned = strip_code_fences(raw)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        msg = f"Response is not valid JSON: {exc}"
        raise ArtifactParseError(msg, raw) from exc

    if not isinstance(data, dict):
        msg = f"Response must be a JSON object, got {type(data).__name__}."
        raise ArtifactParseError(msg, raw)

    title = _require_str(data, "featureName", raw)
    if not title.strip():
        msg = "Artifact field 'featureName' must not be empty."
        raise ArtifactParseError(msg, raw)

    common = {attr: _require_str(data, key, raw) for key, attr in _COMMON_FIELDS}

    if mode is UnitMode.FEATURE:
        return FeatureArtifact(
            title=title,
            plain_summary=(
                _require_str(data, "plainSummary", raw) if "plainSummary" in data else ""
            ),
            error_catalog=_parse_error_entries(data, raw),
            **common,
        )

    return FileArtifact(
        title=title,
        error_catalog=_require_str(data, "errorMessages", raw),
        **common,
    )
