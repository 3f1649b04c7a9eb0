"""Shared chatgraph configuration utilities.

Centralises reading of ~/.chatgraph/configuration.json so that the executor,
the CLI and the LLM-backed adapters share one implementation.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

DEFAULT_CONFIG_FILE = Path.home() / ".chatgraph" / "configuration.json"

# Engine settings resolved by their default factories: environment first, then the file
ENV_RESOLVED_ENGINE_FIELDS = ("max_iterations", "max_node_visits", "default_language")


def get_config_path() -> Path:
    override = os.environ.get("CHATGRAPH_CONFIG")
    return Path(override) if override else DEFAULT_CONFIG_FILE


def get_chatgraph_config() -> dict[str, Any]:
    """Load configuration from ~/.chatgraph/configuration.json (or $CHATGRAPH_CONFIG)."""
    config_file = get_config_path()
    if not config_file.exists():
        return {}
    try:
        with open(config_file, encoding="utf-8-sig") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def _section(name: str) -> dict[str, Any]:
    section = get_chatgraph_config().get(name, {})
    return section if isinstance(section, dict) else {}


def _env_int(name: str) -> int | None:
    value = os.environ.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def get_max_iterations() -> int:
    env = _env_int("CHATGRAPH_MAX_ITERATIONS")
    if env is not None:
        return env
    return _section("engine").get("max_iterations", 100)


def get_max_node_visits() -> int:
    env = _env_int("CHATGRAPH_MAX_NODE_VISITS")
    if env is not None:
        return env
    return _section("engine").get("max_node_visits", 3)


def get_default_language() -> str:
    return os.environ.get("CHATGRAPH_DEFAULT_LANGUAGE") or _section("engine").get(
        "default_language", "english"
    )


def get_preferred_model() -> str:
    """Return the configured chat model (e.g. 'gpt-4o-mini' or 'anthropic/claude-haiku-4-5')."""
    llm = _section("llm")
    if llm.get("provider") and llm.get("model"):
        return f"{llm['provider']}/{llm['model']}"
    return llm.get("model") or "gpt-4o-mini"


def get_api_key() -> str | None:
    """Return the API key from the environment variable named in configuration."""
    api_key_env_var = _section("llm").get("api_key_env_var")
    if api_key_env_var:
        return os.environ.get(api_key_env_var)
    return os.environ.get("OPENAI_API_KEY")


# ---------------------------------------------------------------------------
# Config dataclasses
# ---------------------------------------------------------------------------


@dataclass
class EngineConfig:
    """Execution limits and routing policy for the workflow executor."""

    max_iterations: int = field(default_factory=get_max_iterations)
    max_node_visits: int = field(default_factory=get_max_node_visits)
    high_confidence_threshold: float = 0.7
    default_language: str = field(default_factory=get_default_language)
    history_window: int = 5
    chars_per_token: int = 4

    @classmethod
    def from_file(cls) -> "EngineConfig":
        engine = _section("engine")
        known = {
            k: v
            for k, v in engine.items()
            if k in cls.__dataclass_fields__ and k not in ENV_RESOLVED_ENGINE_FIELDS
        }
        return cls(**known)


@dataclass
class RecommenderConfig:
    """Relevance policy for the product recommender. Kept as data, not code."""

    min_relevance: float = 0.6
    top_n: int = 3
    search_limit: int = 10
    fallback_count: int = 3


@dataclass
class LLMConfig:
    model: str = field(default_factory=get_preferred_model)
    vision_model: str = "gpt-4o"
    transcription_model: str = "whisper-1"
    temperature: float = 0.2
    max_tokens: int = 150
    api_key: str | None = field(default_factory=get_api_key)
    api_base: str | None = None

    @classmethod
    def from_file(cls) -> "LLMConfig":
        llm = _section("llm")
        known = {
            k: v
            for k, v in llm.items()
            if k in cls.__dataclass_fields__ and k not in ("model", "api_key")
        }
        return cls(**known)
