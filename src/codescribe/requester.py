"""Documentation requester: prompt the LLM for a structured artifact."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from codescribe.errors import UpstreamError
from codescribe.scanner import UnitMode

if TYPE_CHECKING:
    from codescribe.units import AnalysisUnit

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 2000

_API_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}

_FILE_SCHEMA = """{
  "featureName": "Brief feature/component name",
  "description": "What this feature/component does (2-3 sentences). Separate paragraphs with a blank line.",
  "howItWorks": "High-level explanation of how it works (3-4 sentences). Separate paragraphs with a blank line.",
  "technicalDetails": "Key functions and data structures, one bullet per line, each line starting with '• '",
  "errorMessages": "Error messages with explanations and resolutions. Format as: 'ERROR: explanation and how to resolve.' If none, say 'No explicit error messages defined.'",
  "flowchart": "Mermaid flowchart code showing the main logic flow. Use 'graph TD' format."
}"""

_FEATURE_SCHEMA = """{
  "featureName": "Brief feature name",
  "plainSummary": "One or two sentences a non-technical reader can follow",
  "description": "What this feature does for the user. Separate paragraphs with a blank line.",
  "howItWorks": "How the files cooperate to implement it. Separate paragraphs with a blank line.",
  "technicalDetails": "Components, state and data flow, one bullet per line, each line starting with '• '",
  "errorMessages": [
    {"error": "Exact error message shown to the user", "explanation": "What causes it and how to resolve it"}
  ],
  "flowchart": "Mermaid flowchart code showing the main user flow. Use 'graph TD' format."
}"""


@dataclass(frozen=True)
class LLMConfig:
    """LLM provider configuration."""

    provider: str  # "anthropic" or "openai"
    model: str
    api_key: str
    max_tokens: int = DEFAULT_MAX_TOKENS


def parse_llm_config(raw: dict[str, Any], environ: dict[str, str]) -> LLMConfig:
    """Parse the config.yml ``llm`` section, resolving the API key from *environ*.

    Missing keys fall back to the Anthropic defaults.  A missing API key is
    not an error here: it surfaces as an authentication failure on the
    first call.

    Raises
    ------
    ValueError
        If the provider is unsupported or ``max_tokens`` is not a positive
        integer.
    """
    provider = raw.get("provider", "anthropic")
    if provider not in _API_KEY_ENV:
        msg = f"Unsupported LLM provider: {provider!r}. Use 'anthropic' or 'openai'."
        raise ValueError(msg)

    model = raw.get("model") or DEFAULT_MODEL
    if not isinstance(model, str):
        msg = "LLM config 'model' must be a string."
        raise ValueError(msg)

    try:
        max_tokens = int(raw.get("max_tokens", DEFAULT_MAX_TOKENS))
    except (TypeError, ValueError):
        msg = "LLM config 'max_tokens' must be an integer."
        raise ValueError(msg) from None
    if max_tokens <= 0:
        msg = "LLM config 'max_tokens' must be positive."
        raise ValueError(msg)

    api_key_env = raw.get("api_key_env") or _API_KEY_ENV[provider]

    return LLMConfig(
        provider=provider,
        model=model,
        api_key=environ.get(api_key_env, ""),
        max_tokens=max_tokens,
    )


def schema_for(mode: UnitMode) -> str:
    """Return the JSON schema text the model must follow for *mode*."""
    return _FEATURE_SCHEMA if mode is UnitMode.FEATURE else _FILE_SCHEMA


def build_prompt(unit: AnalysisUnit) -> str:
    """Build the user prompt for one analysis unit.

    The prompt is a pure function of the unit: the same unit always yields
    the same prompt.
    """
    parts: list[str] = []

    if unit.mode is UnitMode.FEATURE:
        parts.append(
            "Analyze the files of this feature and provide user-facing "
            "documentation in JSON format.\n"
        )
        parts.append(f"Feature: {unit.unit_key}")
    else:
        parts.append("Analyze this code file and provide detailed documentation in JSON format.\n")
        parts.append(f"File: {unit.unit_key}")

    parts.append("Files:")
    for member in unit.members:
        parts.append(f"- {member.relative_name}")
    parts.append("")

    parts.append("Code:")
    parts.append("```")
    parts.append(unit.concatenated_source.rstrip("\n"))
    parts.append("```\n")

    parts.append(
        "Return ONLY valid JSON (no markdown, no backticks) with this structure:"
    )
    parts.append(schema_for(unit.mode))
    parts.append(f'\nThe "featureName" value must be exactly "{unit.unit_key}".')

    return "\n".join(parts)


def _call_anthropic(config: LLMConfig, prompt: str) -> str:
    """Call Anthropic Messages API."""
    response = httpx.post(
        "https://api.anthropic.com/v1/messages",
        headers={
            "x-api-key": config.api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json",
        },
        json={
            "model": config.model,
            "max_tokens": config.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        },
        timeout=120.0,
    )

    if response.status_code != 200:
        msg = f"Anthropic API error {response.status_code}: {response.text}"
        raise UpstreamError(msg)

    data = response.json()
    content_blocks = data.get("content", [])
    if not content_blocks:
        msg = "Anthropic API returned empty response."
        raise UpstreamError(msg)

    return str(content_blocks[0].get("text", ""))


def _call_openai(config: LLMConfig, prompt: str) -> str:
    """Call OpenAI Chat Completions API."""
    response = httpx.post(
        "https://api.openai.com/v1/chat/completions",
        headers={
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        },
        json={
            "model": config.model,
            "max_tokens": config.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        },
        timeout=120.0,
    )

    if response.status_code != 200:
        msg = f"OpenAI API error {response.status_code}: {response.text}"
        raise UpstreamError(msg)

    data = response.json()
    choices = data.get("choices", [])
    if not choices:
        msg = "OpenAI API returned empty response."
        raise UpstreamError(msg)

    return str(choices[0].get("message", {}).get("content", ""))


def call_llm(config: LLMConfig, prompt: str) -> str:
    """Call the configured LLM provider once and return the response text.

    Raises
    ------
    UpstreamError
        On transport failures, non-200 responses, or empty replies.
    """
    try:
        if config.provider == "anthropic":
            return _call_anthropic(config, prompt)
        if config.provider == "openai":
            return _call_openai(config, prompt)
    except (httpx.HTTPError, ValueError) as exc:  # ValueError: undecodable body
        msg = f"{config.provider} request failed: {exc}"
        raise UpstreamError(msg) from exc

    msg = f"Unsupported provider: {config.provider}"
    raise UpstreamError(msg)


def request_documentation(config: LLMConfig, unit: AnalysisUnit) -> str:
    """Request a documentation artifact for *unit* and return the raw reply.

    Raises
    ------
    UpstreamError
        When the service call fails.  The call is not retried.
    """
    logger.info("Analyzing %s (%d files)...", unit.unit_key, len(unit.members))
    return call_llm(config, build_prompt(unit))
