"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag (or ORDERRELAY_CONFIG_PATH)
2. ./orderrelay.yaml (working directory)
3. ~/.orderrelay/config.yaml (user home)

Environment variables override YAML: ORDERRELAY_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
"""

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

ENV_PREFIX = "ORDERRELAY_"


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve ${VAR} references in a nested data structure."""
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class ServerConfig(BaseModel):
    """HTTP server settings for ``orderrelay serve``."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"


class AdapterConfig(BaseModel):
    """Adapter invocation settings.

    The executor never retries; these timeouts bound how long a caller
    waits before recording an ambiguous outcome.
    """

    http_timeout_seconds: float = Field(30.0, gt=0)
    best_effort_timeout_seconds: float = Field(10.0, gt=0)
    placement_concurrency: int = Field(5, ge=1)
    modules: list[str] = []

    @field_validator("modules", mode="before")
    @classmethod
    def split_module_list(cls, value: Any) -> Any:
        """Accept a comma-separated string (env override) as a list."""
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


class WebhookConfig(BaseModel):
    """Webhook ingress settings."""

    allow_unverified: bool = False


class OAuthConfig(BaseModel):
    """OAuth handshake state settings."""

    state_ttl_seconds: int = Field(300, gt=0)


class OrderRelayConfig(BaseModel):
    """Top-level configuration for OrderRelay."""

    server: ServerConfig = ServerConfig()
    adapters: AdapterConfig = AdapterConfig()
    webhooks: WebhookConfig = WebhookConfig()
    oauth: OAuthConfig = OAuthConfig()


def _find_config_file() -> Path | None:
    """Search for config file in standard locations."""
    candidates = [
        Path.cwd() / "orderrelay.yaml",
        Path.cwd() / "orderrelay.yml",
        Path.home() / ".orderrelay" / "config.yaml",
        Path.home() / ".orderrelay" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply ORDERRELAY_<SECTION>_<KEY> env var overrides to config data.

    For example ``ORDERRELAY_ADAPTERS_PLACEMENT_CONCURRENCY=10`` maps to
    section ``adapters``, field ``placement_concurrency``.
    """
    known_sections = sorted(
        OrderRelayConfig.model_fields.keys(), key=len, reverse=True
    )
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX):].lower()
        matched_section = None
        matched_field = None
        for section in known_sections:
            section_prefix = section + "_"
            if suffix.startswith(section_prefix):
                matched_section = section
                matched_field = suffix[len(section_prefix):]
                break
        if matched_section is None or not matched_field:
            continue
        section_model = OrderRelayConfig.model_fields[matched_section].annotation
        if matched_field not in getattr(section_model, "model_fields", {}):
            continue
        if not isinstance(data.get(matched_section), dict):
            data[matched_section] = {}
        # Pydantic coerces numeric and boolean strings
        data[matched_section][matched_field] = value
    return data


def load_config(config_path: str | None = None) -> OrderRelayConfig | None:
    """Load OrderRelay configuration from YAML file with env var resolution.

    Args:
        config_path: Explicit path to config file. If None, searches
            standard locations (cwd, then ~/.orderrelay/).

    Returns:
        Parsed and validated OrderRelayConfig, or None if no config found.

    Raises:
        FileNotFoundError: If an explicit config_path does not exist.
    """
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()
        if path is None:
            return None

    logger.info("Loading config from %s", path)

    with open(path) as f:
        raw_data = yaml.safe_load(f) or {}

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    return OrderRelayConfig(**data)


@lru_cache(maxsize=1)
def get_settings() -> OrderRelayConfig:
    """Return the process-wide configuration, loaded once.

    Falls back to defaults (plus env overrides) when no file exists.
    """
    config = load_config(os.environ.get(f"{ENV_PREFIX}CONFIG_PATH") or None)
    if config is None:
        config = OrderRelayConfig(**_apply_env_overrides({}))
    return config
