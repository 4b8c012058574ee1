"""Run settings: secrets from the environment, tuning from config.yml."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import yaml

from codescribe.errors import ConfigError
from codescribe.requester import LLMConfig, parse_llm_config

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

CONFIG_PATH = ".codescribe/config.yml"

DEFAULT_SIZE_CEILING_BYTES = 10_000
DEFAULT_MAX_UNITS = 20
DEFAULT_COOLDOWN_SECONDS = 1.0


@dataclass(frozen=True)
class Settings:
    """Everything a run needs, resolved once at startup."""

    notion_api_key: str
    notion_database_id: str
    llm: LLMConfig
    size_ceiling_bytes: int | None = DEFAULT_SIZE_CEILING_BYTES
    feature_size_ceiling_bytes: int | None = None
    max_units: int = DEFAULT_MAX_UNITS  # 0 means unlimited
    cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS


def _read_config_file(project_root: Path) -> dict[str, Any]:
    """Load ``.codescribe/config.yml``; an absent file yields ``{}``.

    Raises
    ------
    ConfigError
        If the file is not valid YAML or not a mapping.
    """
    config_path = project_root / CONFIG_PATH
    if not config_path.exists():
        return {}
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        msg = f"Cannot read {config_path}: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(data, dict):
        msg = f"{config_path} must contain a mapping."
        raise ConfigError(msg)
    return data


def _optional_int(data: Mapping[str, Any], key: str, default: int | None) -> int | None:
    if key not in data:
        return default
    value = data[key]
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        msg = f"Config key {key!r} must be a non-negative integer or null."
        raise ConfigError(msg)
    return value


def load_settings(
    project_root: Path,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Build run settings.

    Credentials come from ``ANTHROPIC_API_KEY`` (or ``OPENAI_API_KEY``),
    ``NOTION_API_KEY`` and ``NOTION_DATABASE_ID``.  They are not validated
    here; missing values surface as authentication errors on the first
    service call.

    Raises
    ------
    ConfigError
        If ``.codescribe/config.yml`` exists but is malformed.
    """
    env = dict(os.environ if environ is None else environ)
    data = _read_config_file(project_root)

    llm_raw = data.get("llm") or {}
    if not isinstance(llm_raw, dict):
        msg = "Config key 'llm' must be a mapping."
        raise ConfigError(msg)
    try:
        llm = parse_llm_config(llm_raw, env)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    max_units = _optional_int(data, "max_units", DEFAULT_MAX_UNITS)

    cooldown = data.get("cooldown_seconds", DEFAULT_COOLDOWN_SECONDS)
    if isinstance(cooldown, bool) or not isinstance(cooldown, (int, float)) or cooldown < 0:
        msg = "Config key 'cooldown_seconds' must be a non-negative number."
        raise ConfigError(msg)

    return Settings(
        notion_api_key=env.get("NOTION_API_KEY", ""),
        notion_database_id=env.get("NOTION_DATABASE_ID", ""),
        llm=llm,
        size_ceiling_bytes=_optional_int(data, "size_ceiling_bytes", DEFAULT_SIZE_CEILING_BYTES),
        feature_size_ceiling_bytes=_optional_int(data, "feature_size_ceiling_bytes", None),
        max_units=max_units or 0,
        cooldown_seconds=float(cooldown),
    )
