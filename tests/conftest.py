"""Shared test fixtures for codescribe."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pytest

from codescribe.errors import StoreError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path


@dataclass
class FakeRecord:
    properties: dict[str, Any]
    blocks: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    @property
    def title(self) -> str:
        return "".join(seg["text"]["content"] for seg in self.properties["Name"]["title"])

    @property
    def block_bodies(self) -> list[dict[str, Any]]:
        return [body for _id, body in self.blocks]


class FakeStore:
    """In-memory ``DocumentStore`` with optional failure injection.

    ``fail_delete_after`` makes ``delete_block`` fail once that many blocks
    were deleted; ``fail_append`` makes every append fail.
    """

    def __init__(self) -> None:
        self.records: dict[str, FakeRecord] = {}
        self._ids = itertools.count(1)
        self.calls: list[str] = []
        self.fail_delete_after: int | None = None
        self.fail_append = False
        self.fail_lookup = False
        self._deleted = 0
        self.closed = False

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def find_by_title(self, title: str) -> str | None:
        self.calls.append("find_by_title")
        if self.fail_lookup:
            msg = "lookup unavailable"
            raise StoreError(msg, status_code=503)
        for record_id, record in self.records.items():
            if record.title == title:
                return record_id
        return None

    def create_record(self, properties: dict[str, Any]) -> str:
        self.calls.append("create_record")
        record_id = self._next_id("page")
        self.records[record_id] = FakeRecord(properties=dict(properties))
        return record_id

    def update_record(self, record_id: str, properties: dict[str, Any]) -> None:
        self.calls.append("update_record")
        self.records[record_id].properties = dict(properties)

    def list_child_blocks(self, record_id: str) -> list[str]:
        self.calls.append("list_child_blocks")
        return [block_id for block_id, _body in self.records[record_id].blocks]

    def delete_block(self, block_id: str) -> None:
        self.calls.append("delete_block")
        if self.fail_delete_after is not None and self._deleted >= self.fail_delete_after:
            msg = "delete failed"
            raise StoreError(msg, status_code=500)
        for record in self.records.values():
            record.blocks = [(bid, body) for bid, body in record.blocks if bid != block_id]
        self._deleted += 1

    def append_child_blocks(self, record_id: str, blocks: Sequence[dict[str, Any]]) -> None:
        self.calls.append("append_child_blocks")
        if self.fail_append:
            msg = "append failed"
            raise StoreError(msg, status_code=500)
        record = self.records[record_id]
        record.blocks.extend((self._next_id("block"), dict(b)) for b in blocks)

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def source_tree(tmp_path: Path) -> Path:
    """Create a small repository with sources and excluded directories."""
    repo = tmp_path / "repo"
    (repo / "src" / "utils").mkdir(parents=True)
    (repo / "node_modules" / "lib").mkdir(parents=True)
    (repo / ".git").mkdir()
    (repo / "dist").mkdir()

    (repo / "src" / "app.py").write_text("def main():\n    return 1\n")
    (repo / "src" / "utils" / "counter.js").write_text("let n = 0;\n")
    (repo / "src" / "notes.txt").write_text("not code\n")
    (repo / "node_modules" / "lib" / "index.js").write_text("module.exports = 1;\n")
    (repo / ".git" / "hook.py").write_text("pass\n")
    (repo / "dist" / "bundle.js").write_text("var x;\n")
    return repo
