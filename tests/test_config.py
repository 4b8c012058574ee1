"""Tests for codescribe.config — settings loading."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import yaml

from codescribe.config import (
    DEFAULT_COOLDOWN_SECONDS,
    DEFAULT_MAX_UNITS,
    DEFAULT_SIZE_CEILING_BYTES,
    load_settings,
)
from codescribe.errors import ConfigError

if TYPE_CHECKING:
    from pathlib import Path

ENV = {
    "ANTHROPIC_API_KEY": "sk-ant",
    "NOTION_API_KEY": "secret_notion",
    "NOTION_DATABASE_ID": "db-123",
}


def _write_config(project: Path, data: object) -> None:
    config_dir = project / ".codescribe"
    config_dir.mkdir(exist_ok=True)
    (config_dir / "config.yml").write_text(yaml.dump(data), encoding="utf-8")


class TestLoadSettings:
    def test_defaults_without_config(self, tmp_path: Path) -> None:
        settings = load_settings(tmp_path, ENV)
        assert settings.notion_api_key == "secret_notion"
        assert settings.notion_database_id == "db-123"
        assert settings.llm.api_key == "sk-ant"
        assert settings.llm.provider == "anthropic"
        assert settings.size_ceiling_bytes == DEFAULT_SIZE_CEILING_BYTES
        assert settings.feature_size_ceiling_bytes is None
        assert settings.max_units == DEFAULT_MAX_UNITS
        assert settings.cooldown_seconds == DEFAULT_COOLDOWN_SECONDS

    def test_missing_env_is_not_validated(self, tmp_path: Path) -> None:
        settings = load_settings(tmp_path, {})
        assert settings.notion_api_key == ""
        assert settings.notion_database_id == ""
        assert settings.llm.api_key == ""

    def test_reads_config_file(self, tmp_path: Path) -> None:
        _write_config(
            tmp_path,
            {
                "llm": {"provider": "openai", "model": "gpt-4o", "max_tokens": 3000},
                "size_ceiling_bytes": None,
                "feature_size_ceiling_bytes": 50_000,
                "max_units": 0,
                "cooldown_seconds": 0.5,
            },
        )
        settings = load_settings(tmp_path, {**ENV, "OPENAI_API_KEY": "sk-oai"})
        assert settings.llm.provider == "openai"
        assert settings.llm.api_key == "sk-oai"
        assert settings.llm.max_tokens == 3000
        assert settings.size_ceiling_bytes is None
        assert settings.feature_size_ceiling_bytes == 50_000
        assert settings.max_units == 0
        assert settings.cooldown_seconds == 0.5

    def test_empty_config_file(self, tmp_path: Path) -> None:
        (tmp_path / ".codescribe").mkdir()
        (tmp_path / ".codescribe" / "config.yml").write_text("")
        assert load_settings(tmp_path, ENV).max_units == DEFAULT_MAX_UNITS

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        (tmp_path / ".codescribe").mkdir()
        (tmp_path / ".codescribe" / "config.yml").write_text("llm: [unclosed\n")
        with pytest.raises(ConfigError, match="Cannot read"):
            load_settings(tmp_path, ENV)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        _write_config(tmp_path, ["a", "b"])
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(tmp_path, ENV)

    def test_bad_provider(self, tmp_path: Path) -> None:
        _write_config(tmp_path, {"llm": {"provider": "gemini"}})
        with pytest.raises(ConfigError, match="Unsupported LLM provider"):
            load_settings(tmp_path, ENV)

    def test_negative_ceiling(self, tmp_path: Path) -> None:
        _write_config(tmp_path, {"size_ceiling_bytes": -1})
        with pytest.raises(ConfigError, match="size_ceiling_bytes"):
            load_settings(tmp_path, ENV)

    def test_bad_cooldown(self, tmp_path: Path) -> None:
        _write_config(tmp_path, {"cooldown_seconds": "fast"})
        with pytest.raises(ConfigError, match="cooldown_seconds"):
            load_settings(tmp_path, ENV)
