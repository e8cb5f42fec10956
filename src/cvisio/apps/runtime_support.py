from __future__ import annotations

from dataclasses import dataclass

from cvisio.core.config.loader import load_app_config, resolve_api_key
from cvisio.core.config.schema import AppConfig
from cvisio.core.providers.base import ProviderAdapter
from cvisio.core.providers.gemini_rest import GeminiRestAdapter


@dataclass(slots=True, frozen=True)
class GatewayRuntime:
    cfg: AppConfig
    adapter: ProviderAdapter


def build_adapter(cfg: AppConfig) -> ProviderAdapter:
    return GeminiRestAdapter(
        cfg.providers.gemini,
        api_key=resolve_api_key(cfg),
        timeout_seconds=cfg.runtime.provider_timeout_seconds,
        retry_attempts=cfg.runtime.provider_retry_attempts,
        retry_backoff_seconds=cfg.runtime.retry_backoff_seconds,
    )


def build_gateway_runtime(
    config_path: str | None = None,
    *,
    cfg: AppConfig | None = None,
    adapter: ProviderAdapter | None = None,
) -> GatewayRuntime:
    cfg = cfg or load_app_config(instance_path=config_path)
    return GatewayRuntime(cfg=cfg, adapter=adapter or build_adapter(cfg))
