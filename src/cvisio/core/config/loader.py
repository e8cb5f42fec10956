from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from cvisio.core.config.schema import AppConfig
from cvisio.core.runtime.errors import ConfigurationError


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    content = yaml.safe_load(path.read_text(encoding="utf-8"))
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(f"Config file must contain a mapping: {path}")
    return content


def load_env_file(path: str | Path = ".env") -> dict[str, str]:
    """Export KEY=VALUE lines from ``path`` into ``os.environ``.

    Variables already present in the environment win over the file.
    Returns the keys that were newly set.
    """
    loaded: dict[str, str] = {}
    path = Path(path)
    if not path.exists():
        return loaded
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key or key in os.environ:
            continue
        value = value.strip().strip('"').strip("'")
        os.environ[key] = value
        loaded[key] = value
    return loaded


def load_app_config(
    defaults_path: str | Path = "config/defaults.yaml",
    instance_path: str | Path | None = None,
) -> AppConfig:
    defaults = _load_yaml(Path(defaults_path))

    explicit_instance = instance_path or os.getenv("CVISIO_CONFIG_FILE")
    instance = _load_yaml(Path(explicit_instance)) if explicit_instance else {}

    merged = _deep_merge(defaults, instance)

    env_port = os.getenv("PORT")
    if env_port:
        merged = _deep_merge(merged, {"server": {"port": env_port}})

    env_log_level = os.getenv("CVISIO_LOG_LEVEL")
    if env_log_level:
        merged = _deep_merge(merged, {"telemetry": {"log_level": env_log_level}})

    env_environment = os.getenv("CVISIO_ENVIRONMENT")
    if env_environment:
        merged["environment"] = env_environment

    try:
        return AppConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid cvisio configuration: {exc}") from exc


def resolve_api_key(cfg: AppConfig) -> str:
    gemini = cfg.providers.gemini
    for env_name in [gemini.api_key_env, *gemini.fallback_api_key_envs]:
        value = os.getenv(env_name, "").strip()
        if value:
            return value
    raise ConfigurationError(
        f"{gemini.api_key_env} is not set; add it to the environment or to a .env file"
    )
