"""Tests for the `codescribe` and `codescribe-feature` entry points."""

from __future__ import annotations

import json
import unittest.mock
from typing import TYPE_CHECKING

import pytest
import yaml
from click.testing import CliRunner

from codescribe.cli import feature_main, main

if TYPE_CHECKING:
    from pathlib import Path

    from conftest import FakeStore


def _reply(title: str, *, feature: bool = False) -> unittest.mock.MagicMock:
    payload: dict[str, object] = {
        "featureName": title,
        "description": "Does things.",
        "howItWorks": "Runs.",
        "technicalDetails": "• one",
        "errorMessages": "None.",
        "flowchart": "graph TD\n  A --> B",
    }
    if feature:
        payload["plainSummary"] = "Summary."
        payload["errorMessages"] = []
    resp = unittest.mock.MagicMock()
    resp.status_code = 200
    resp.json.return_value = {"content": [{"type": "text", "text": json.dumps(payload)}]}
    return resp


@pytest.fixture()
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Working directory with a config that disables the cooldown."""
    config_dir = tmp_path / ".codescribe"
    config_dir.mkdir()
    (config_dir / "config.yml").write_text(yaml.dump({"cooldown_seconds": 0}))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    monkeypatch.setenv("NOTION_API_KEY", "secret")
    monkeypatch.setenv("NOTION_DATABASE_ID", "db-1")
    return tmp_path


class TestMain:
    def test_success(self, workdir: Path, source_tree: Path, fake_store: FakeStore) -> None:
        with (
            unittest.mock.patch("codescribe.cli.NotionStore", return_value=fake_store) as ctor,
            unittest.mock.patch(
                "codescribe.requester.httpx.post",
                side_effect=[_reply("App"), _reply("Counter")],
            ),
        ):
            result = CliRunner().invoke(main, [str(source_tree)])

        assert result.exit_code == 0, result.output
        ctor.assert_called_once_with("secret", "db-1")
        assert "Documentation generation complete" in result.output
        assert "2 created" in result.output
        assert len(fake_store.records) == 2
        assert fake_store.closed

    def test_default_path(self, workdir: Path, fake_store: FakeStore) -> None:
        (workdir / "repo").mkdir()
        (workdir / "repo" / "a.py").write_text("a = 1\n")
        with (
            unittest.mock.patch("codescribe.cli.NotionStore", return_value=fake_store),
            unittest.mock.patch(
                "codescribe.requester.httpx.post", side_effect=[_reply("A")]
            ),
        ):
            result = CliRunner().invoke(main, [])
        assert result.exit_code == 0, result.output
        assert [r.title for r in fake_store.records.values()] == ["A"]

    def test_failed_unit_still_exits_zero(
        self, workdir: Path, source_tree: Path, fake_store: FakeStore
    ) -> None:
        bad = unittest.mock.MagicMock(status_code=401, text="invalid x-api-key")
        with (
            unittest.mock.patch("codescribe.cli.NotionStore", return_value=fake_store),
            unittest.mock.patch(
                "codescribe.requester.httpx.post", side_effect=[bad, _reply("Counter")]
            ),
        ):
            result = CliRunner().invoke(main, [str(source_tree)])
        assert result.exit_code == 0, result.output
        assert "1 failed" in result.output

    def test_missing_root_exits_one(self, workdir: Path, fake_store: FakeStore) -> None:
        with unittest.mock.patch("codescribe.cli.NotionStore", return_value=fake_store):
            result = CliRunner().invoke(main, [str(workdir / "nope")])
        assert result.exit_code == 1
        assert "Error: Scan root does not exist" in result.output
        assert fake_store.closed

    def test_rejects_flags(self, workdir: Path) -> None:
        result = CliRunner().invoke(main, ["--full"])
        assert result.exit_code == 2


class TestFeatureMain:
    def test_success(self, workdir: Path, fake_store: FakeStore) -> None:
        feature = workdir / "src" / "cart"
        feature.mkdir(parents=True)
        (feature / "Cart.tsx").write_text("export {};\n")
        with (
            unittest.mock.patch("codescribe.cli.NotionStore", return_value=fake_store),
            unittest.mock.patch(
                "codescribe.requester.httpx.post",
                side_effect=[_reply("Cart", feature=True)],
            ),
        ):
            result = CliRunner().invoke(feature_main, [str(feature)])
        assert result.exit_code == 0, result.output
        assert [r.title for r in fake_store.records.values()] == ["Cart"]

    def test_unit_failure_exits_one(self, workdir: Path, fake_store: FakeStore) -> None:
        feature = workdir / "src"
        feature.mkdir()
        (feature / "App.jsx").write_text("x\n")
        with (
            unittest.mock.patch("codescribe.cli.NotionStore", return_value=fake_store),
            unittest.mock.patch(
                "codescribe.requester.httpx.post", side_effect=[_reply("App")]
            ),
        ):
            result = CliRunner().invoke(feature_main, [])
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "errorMessages" in result.output
        assert fake_store.records == {}

    def test_bad_config_exits_one(self, workdir: Path) -> None:
        (workdir / ".codescribe" / "config.yml").write_text("llm: {provider: gemini}\n")
        result = CliRunner().invoke(feature_main, [])
        assert result.exit_code == 1
        assert "Unsupported LLM provider" in result.output
