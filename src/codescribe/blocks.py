"""Render documentation artifacts as Notion content blocks."""

from __future__ import annotations

import base64
import logging
import re
from typing import Any

from codescribe.artifact import DocumentationArtifact, FeatureArtifact

logger = logging.getLogger(__name__)

MERMAID_IMAGE_BASE = "https://mermaid.ink/img/"

# Notion rejects rich-text content longer than this.
MAX_TEXT_LENGTH = 2000
# ...and external URLs longer than this.
MAX_URL_LENGTH = 2000

_PARAGRAPH_SPLIT_RE = re.compile(r"\n[ \t]*\n")
_BULLET_RE = re.compile(r"^\s*(?:[•·▪]\s*|[-*+–]\s+)")

Block = dict[str, Any]


def rich_text(content: str, **annotations: bool) -> list[dict[str, Any]]:
    """Build a rich-text array, splitting *content* at the length limit."""
    segments: list[dict[str, Any]] = []
    for start in range(0, len(content), MAX_TEXT_LENGTH):
        segment: dict[str, Any] = {
            "type": "text",
            "text": {"content": content[start : start + MAX_TEXT_LENGTH]},
        }
        if annotations:
            segment["annotations"] = dict(annotations)
        segments.append(segment)
    return segments


def _block(block_type: str, body: dict[str, Any]) -> Block:
    return {"object": "block", "type": block_type, block_type: body}


def heading(text: str) -> Block:
    return _block("heading_2", {"rich_text": rich_text(text)})


def paragraph(text: str) -> Block:
    return _block("paragraph", {"rich_text": rich_text(text)})


def bullet(segments: list[dict[str, Any]]) -> Block:
    return _block("bulleted_list_item", {"rich_text": segments})


def split_paragraphs(text: str) -> list[str]:
    """Split on blank lines, dropping empty paragraphs."""
    return [p.strip() for p in _PARAGRAPH_SPLIT_RE.split(text) if p.strip()]


def split_bullets(text: str) -> list[str]:
    """One item per non-blank line, with any leading bullet marker removed."""
    items: list[str] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        item = _BULLET_RE.sub("", line, count=1).strip()
        if item:
            items.append(item)
    return items


def mermaid_image_url(diagram: str) -> str:
    """Return a mermaid.ink URL that renders *diagram* as an image."""
    encoded = base64.urlsafe_b64encode(diagram.encode("utf-8")).decode("ascii")
    return MERMAID_IMAGE_BASE + encoded


def _paragraph_section(title: str, text: str) -> list[Block]:
    return [heading(title), *(paragraph(p) for p in split_paragraphs(text))]


def render_blocks(artifact: DocumentationArtifact) -> list[Block]:
    """Render *artifact* into an ordered list of content blocks.

    Every section keeps its heading even when its body is empty, so two
    renders of equal artifacts are always equal.  The flowchart image and
    its source toggle are omitted when the artifact has no diagram.
    """
    blocks: list[Block] = []

    if isinstance(artifact, FeatureArtifact):
        blocks.extend(_paragraph_section("Summary", artifact.plain_summary))

    blocks.extend(_paragraph_section("Description", artifact.description))
    blocks.extend(_paragraph_section("How It Works", artifact.mechanism))

    blocks.append(heading("Technical Details"))
    blocks.extend(bullet(rich_text(item)) for item in split_bullets(artifact.technical_notes))

    if isinstance(artifact, FeatureArtifact):
        blocks.append(heading("Error Messages"))
        for entry in artifact.error_catalog:
            segments = rich_text(entry.error_message, bold=True, code=True)
            if entry.explanation:
                segments.extend(rich_text(f": {entry.explanation}"))
            blocks.append(bullet(segments))
    else:
        blocks.extend(_paragraph_section("Error Messages", artifact.error_catalog))

    blocks.append(heading("Visual Flowchart"))
    diagram = artifact.diagram.strip()
    if diagram:
        url = mermaid_image_url(diagram)
        if len(url) <= MAX_URL_LENGTH:
            blocks.append(_block("image", {"type": "external", "external": {"url": url}}))
        else:
            logger.warning(
                "Flowchart for %r is too large to render as an image (%d chars)",
                artifact.title,
                len(url),
            )
        code = _block("code", {"rich_text": rich_text(diagram), "language": "mermaid"})
        blocks.append(
            _block("toggle", {"rich_text": rich_text("Mermaid Code"), "children": [code]})
        )

    return blocks
