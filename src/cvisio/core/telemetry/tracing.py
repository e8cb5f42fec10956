from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

import structlog


@dataclass(slots=True, frozen=True)
class RequestContext:
    request_id: str
    endpoint: str


def new_request_id(incoming: str | None = None) -> str:
    candidate = (incoming or "").strip()
    if candidate and len(candidate) <= 128:
        return candidate
    return uuid.uuid4().hex


def bind_request_context(ctx: RequestContext) -> None:
    """Attach the request identity to every log event emitted by this task."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=ctx.request_id, endpoint=ctx.endpoint)


def trace_event(logger, ctx: RequestContext, event: str, status: str, extra: dict[str, Any] | None = None) -> None:
    payload: dict[str, Any] = {
        "request_id": ctx.request_id,
        "endpoint": ctx.endpoint,
        "status": status,
    }
    if extra:
        payload.update(extra)
    if status == "error":
        logger.error(event, **payload)
    else:
        logger.info(event, **payload)
