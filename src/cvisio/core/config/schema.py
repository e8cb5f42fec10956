from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

LEGAL_ASSISTANT_PROMPT = (
    "You are a professional legal assistant. Your task is to find official laws and legal articles "
    "based on the user's query. Use the search tool to find the most accurate and up-to-date information "
    "from official government or legal sources. Provide a clear summary of the law, and you MUST cite "
    "your sources."
)

DEFAULT_MERGE_PROMPT = "Merge these two images."

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
LOG_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class InstanceConfig(_Frozen):
    name: str = "cvisio"


class ServerConfig(_Frozen):
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    static_dir: str | None = None
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    # per multipart request, all parts together
    max_upload_bytes: int = Field(default=20 * 1024 * 1024, gt=0)


class RuntimeConfig(_Frozen):
    provider_timeout_seconds: float = Field(default=120.0, gt=0)
    provider_retry_attempts: int = Field(default=1, ge=1, le=5)
    retry_backoff_seconds: float = Field(default=0.2, ge=0)
    cancel_on_disconnect: bool = True
    disconnect_poll_seconds: float = Field(default=0.5, gt=0)


class TelemetryConfig(_Frozen):
    log_level: str = "INFO"
    json_logs: bool = True

    @field_validator("log_level", mode="before")
    @classmethod
    def _known_level(cls, value: object) -> object:
        # uvicorn and structlog must both accept the level
        if not isinstance(value, str):
            return value
        level = value.strip().upper()
        level = LOG_LEVEL_ALIASES.get(level, level)
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {value!r}")
        return level


class GeminiProviderConfig(_Frozen):
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    api_key_env: str = "GEMINI_API_KEY"
    fallback_api_key_envs: list[str] = Field(default_factory=lambda: ["GOOGLE_AI_API_KEY"])
    image_model: str = "imagen-3.0-generate-002"
    search_model: str = "gemini-2.5-flash-preview-05-20"
    edit_model: str = "gemini-2.5-flash-image-preview"
    sample_count: int = Field(default=1, ge=1, le=4)
    safety_threshold: str = "BLOCK_NONE"
    legal_system_prompt: str = LEGAL_ASSISTANT_PROMPT
    merge_default_prompt: str = DEFAULT_MERGE_PROMPT


class ProvidersConfig(_Frozen):
    gemini: GeminiProviderConfig = Field(default_factory=GeminiProviderConfig)


class AppConfig(_Frozen):
    instance: InstanceConfig = Field(default_factory=InstanceConfig)
    environment: str = "dev"
    server: ServerConfig = Field(default_factory=ServerConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
