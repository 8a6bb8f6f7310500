"""
TDD Guard Configuration — Per-project gate config plus verifier backend settings.

The gate config lives in <project>/.opencode/tdd.json:
{
  "testOutputFile": ".opencode/tdd/test-output.txt",
  "enforcePatterns": ["src/**"],
  "verifierModel": "gpt-4o-mini",
  "maxTestOutputAge": 300
}

A missing file means "no enforcement configured" and every edit passes.
A present but malformed file is a ConfigError and blocks every gated edit.

Backend credentials come from environment variables, never from the
project file.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

from tdd_guard.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_DIR = ".opencode"
CONFIG_FILE = os.path.join(CONFIG_DIR, "tdd.json")
DEFAULT_MAX_TEST_OUTPUT_AGE = 300


@dataclass(frozen=True)
class TDDConfig:
    """Validated gate configuration. Immutable for the life of one decision."""

    test_output_file: str
    verifier_model: str
    enforce_patterns: Optional[tuple[str, ...]] = None
    max_test_output_age: float = DEFAULT_MAX_TEST_OUTPUT_AGE

    def test_output_path(self, project_root: str) -> str:
        """Absolute location of the test-output artifact."""
        if os.path.isabs(self.test_output_file):
            return self.test_output_file
        return os.path.join(project_root, self.test_output_file)


@dataclass(frozen=True)
class ConfigLoadResult:
    """Either "missing" (pass-through) or "loaded" with a config."""

    kind: str
    config: Optional[TDDConfig] = None

    @property
    def is_missing(self) -> bool:
        return self.kind == "missing"


def _require_string(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value:
        raise ConfigError(f"Missing config field: {field_name}")
    return value


def _require_string_list(value: Any, field_name: str) -> tuple[str, ...]:
    if not isinstance(value, list) or any(not isinstance(item, str) for item in value):
        raise ConfigError(f"{field_name} must be an array of strings")
    return tuple(value)


def _max_age(value: Any) -> float:
    # bool is an int subclass but is not a valid age
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return DEFAULT_MAX_TEST_OUTPUT_AGE


def parse_config(raw: str) -> TDDConfig:
    """Validate raw config text into a TDDConfig. Raises ConfigError."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        raise ConfigError("Invalid config JSON")

    if not isinstance(data, dict):
        raise ConfigError("Invalid config JSON")

    test_output_file = _require_string(data.get("testOutputFile"), "testOutputFile")
    enforce_patterns = None
    if "enforcePatterns" in data:
        enforce_patterns = _require_string_list(data["enforcePatterns"], "enforcePatterns")
    verifier_model = _require_string(data.get("verifierModel"), "verifierModel")

    return TDDConfig(
        test_output_file=test_output_file,
        verifier_model=verifier_model,
        enforce_patterns=enforce_patterns,
        max_test_output_age=_max_age(data.get("maxTestOutputAge")),
    )


def load_config(project_root: str) -> ConfigLoadResult:
    """
    Load <project_root>/.opencode/tdd.json.

    Returns ConfigLoadResult(kind="missing") when the file is absent or
    empty. Raises ConfigError when it is present but invalid.
    """
    config_path = os.path.join(project_root, CONFIG_FILE)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = f.read()
    except OSError:
        raw = ""

    if not raw:
        logger.debug(f"No TDD config at {config_path}")
        return ConfigLoadResult(kind="missing")

    config = parse_config(raw)
    logger.debug(
        f"Loaded TDD config: model={config.verifier_model}, "
        f"patterns={config.enforce_patterns}, max_age={config.max_test_output_age}"
    )
    return ConfigLoadResult(kind="loaded", config=config)


# ── Verifier Backend Settings ─────────────────────────────────────


@dataclass(frozen=True)
class ProviderConfig:
    """Configuration for a single LLM provider endpoint."""
    name: str
    base_url: str
    env_key: str           # Name of the env variable holding the API key

    @property
    def api_key(self) -> str:
        return os.environ.get(self.env_key, "")


PROVIDER_CONFIGS: dict[str, ProviderConfig] = {
    "together": ProviderConfig(
        name="together",
        base_url="https://api.together.xyz/v1",
        env_key="TOGETHER_API_KEY",
    ),
    "openai": ProviderConfig(
        name="openai",
        base_url=os.environ.get("OPENAI_BASE_URL", "https://api.openai.com/v1"),
        env_key="OPENAI_API_KEY",
    ),
    "openrouter": ProviderConfig(
        name="openrouter",
        base_url="https://openrouter.ai/api/v1",
        env_key="OPENROUTER_API_KEY",
    ),
    "ollama": ProviderConfig(
        name="ollama",
        base_url=os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434/v1"),
        env_key="OLLAMA_API_KEY",   # Usually empty for local Ollama
    ),
}


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not a number; using {default:g}")
        return default


@dataclass(frozen=True)
class VerifierSettings:
    """
    Backend sampling settings for the verifier.

    Verdicts must be reproducible, so sampling is greedy by default.
    """

    provider: str = field(default_factory=lambda: os.environ.get("TDD_PROVIDER", "openai"))
    temperature: float = 0.0
    top_p: float = 1.0
    max_tokens: int = 1024
    timeout: float = field(default_factory=lambda: _env_float("TDD_VERIFIER_TIMEOUT", 60.0))

    @property
    def provider_config(self) -> ProviderConfig:
        return PROVIDER_CONFIGS.get(self.provider, PROVIDER_CONFIGS["openai"])

    @property
    def has_api_key(self) -> bool:
        """Check if the selected provider can be called."""
        if self.provider == "ollama":
            return True
        return bool(self.provider_config.api_key)
