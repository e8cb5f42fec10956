from __future__ import annotations

from collections.abc import Awaitable, Callable
from time import perf_counter
from typing import Any

from cvisio.core.config.schema import AppConfig
from cvisio.core.providers.base import ImageAttachment, ProviderAdapter, ProviderResponse
from cvisio.core.runtime.errors import (
    ClientFacingError,
    InputValidationError,
    classify_error,
    compact_error_summary,
)
from cvisio.core.runtime.timeouts import Disconnectable, run_bound_to_request, run_with_timeout
from cvisio.core.telemetry.logging import get_logger
from cvisio.core.telemetry.tracing import RequestContext, trace_event


def require_text(value: str | None, message: str) -> str:
    if value is None or not value.strip():
        raise InputValidationError(message)
    return value


def describe_uploads(uploads: tuple[ImageAttachment, ...]) -> list[dict[str, Any]]:
    return [{"filename": item.filename, "mime_type": item.mime_type, "bytes": len(item.data)} for item in uploads]


class GatewayService:
    """Validates gateway input and relays it to the provider adapter.

    Every adapter failure is logged with its full detail and replaced by a
    fixed, client-safe message. Input errors are raised before the adapter is
    touched.
    """

    def __init__(self, *, cfg: AppConfig, adapter: ProviderAdapter) -> None:
        self.cfg = cfg
        self.adapter = adapter
        self.logger = get_logger("cvisio.gateway")

    async def _relay(
        self,
        ctx: RequestContext,
        request: Disconnectable | None,
        capability: str,
        failure_message: str,
        call: Callable[[], Awaitable[ProviderResponse]],
        uploads: tuple[ImageAttachment, ...] = (),
    ) -> ProviderResponse:
        runtime = self.cfg.runtime
        started = perf_counter()
        try:
            if request is not None and runtime.cancel_on_disconnect:
                result = await run_bound_to_request(
                    call(),
                    request,
                    timeout_seconds=runtime.provider_timeout_seconds,
                    poll_seconds=runtime.disconnect_poll_seconds,
                )
            else:
                result = await run_with_timeout(call(), runtime.provider_timeout_seconds)
        except Exception as exc:  # noqa: BLE001
            info = classify_error(exc, category="provider", component=capability)
            extra: dict[str, Any] = {
                "provider": self.adapter.name,
                "capability": capability,
                "error": compact_error_summary(exc),
                "error_type": info.error_type,
                "provider_status": info.http_status,
                "provider_detail": getattr(exc, "detail", None),
                "latency_ms": round((perf_counter() - started) * 1000, 2),
            }
            if uploads:
                extra["uploads"] = describe_uploads(uploads)
            trace_event(self.logger, ctx, event="provider_call_failed", status="error", extra=extra)
            raise ClientFacingError(failure_message, status_code=500) from exc

        trace_event(
            self.logger,
            ctx,
            event="provider_call_ok",
            status="ok",
            extra={
                "provider": self.adapter.name,
                "capability": capability,
                "latency_ms": round((perf_counter() - started) * 1000, 2),
            },
        )
        return result

    async def generate_image(
        self, prompt: str | None, *, ctx: RequestContext, request: Disconnectable | None = None
    ) -> dict[str, Any]:
        text = require_text(prompt, "Prompt is required")
        data = await self._relay(
            ctx, request, "generate_image", "Failed to generate image", lambda: self.adapter.generate_image(text)
        )
        return {"success": True, "data": data}

    async def legal_search(
        self, query: str | None, *, ctx: RequestContext, request: Disconnectable | None = None
    ) -> ProviderResponse:
        text = require_text(query, "Query is required")
        return await self._relay(
            ctx, request, "grounded_search", "Failed to perform legal search", lambda: self.adapter.grounded_search(text)
        )

    async def edit_image(
        self,
        prompt: str | None,
        image: ImageAttachment | None,
        *,
        ctx: RequestContext,
        request: Disconnectable | None = None,
    ) -> ProviderResponse:
        if image is None or prompt is None or not prompt.strip():
            raise InputValidationError("Prompt and image file are required")
        return await self._relay(
            ctx,
            request,
            "edit_image",
            "Failed to edit image",
            lambda: self.adapter.edit_image(prompt, image),
            uploads=(image,),
        )

    async def merge_images(
        self,
        prompt: str | None,
        first: ImageAttachment | None,
        second: ImageAttachment | None,
        *,
        ctx: RequestContext,
        request: Disconnectable | None = None,
    ) -> ProviderResponse:
        if first is None or second is None:
            raise InputValidationError("Two image files are required")
        return await self._relay(
            ctx,
            request,
            "merge_images",
            "Failed to merge images",
            lambda: self.adapter.merge_images(prompt, first, second),
            uploads=(first, second),
        )
