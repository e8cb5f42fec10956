from __future__ import annotations

import re
from dataclasses import dataclass

import httpx


class GatewayError(Exception):
    """Base class for every error raised inside the gateway."""


class ClientFacingError(GatewayError):
    """An error whose message is safe to send back to the HTTP client."""

    def __init__(self, message: str, *, status_code: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InputValidationError(ClientFacingError):
    """A required request field is missing or empty."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400)


class ConfigurationError(GatewayError):
    """The process cannot serve requests with the current configuration."""


class ProviderError(GatewayError):
    """The outbound call to the generative AI provider failed.

    ``detail`` holds whatever the provider said about the failure. It is meant
    for server-side logs only and must never be copied into a client response.
    """

    def __init__(self, message: str, *, status_code: int | None = None, detail: object | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class ProviderTimeout(ProviderError):
    pass


class RequestCancelled(ProviderError):
    pass


@dataclass(slots=True)
class ErrorInfo:
    category: str
    component: str
    error_type: str
    message_signature: str
    retryable: bool
    http_status: int | None = None


def _normalize_message(message: str, max_len: int = 180) -> str:
    msg = message.lower()
    msg = re.sub(r"\s+", " ", msg)
    msg = re.sub(r"\d+", "#", msg)
    return msg.strip()[:max_len]


def _compact_message(message: str, max_len: int = 220) -> str:
    msg = message.lower()
    msg = re.sub(r"\s+", " ", msg)
    return msg.strip()[:max_len]


def _status_of(exc: Exception) -> int | None:
    if isinstance(exc, ProviderError):
        return exc.status_code
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


def classify_error(exc: Exception, *, category: str, component: str) -> ErrorInfo:
    name = exc.__class__.__name__.lower()
    msg = str(exc)
    normalized = _normalize_message(msg)

    # a cancelled request has nobody left to retry for
    retryable = not isinstance(exc, RequestCancelled)
    lowered = f"{name} {normalized}"
    if any(k in lowered for k in ["auth", "unauthorized", "forbidden", "invalidrequest", "badrequest", "permission"]):
        retryable = False
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, ProviderTimeout)):
        retryable = True

    status = _status_of(exc)
    if status is None:
        m = re.search(r"\b(?:http|status)\D{0,3}(4\d\d|5\d\d)\b", msg.lower())
        if m:
            status = int(m.group(1))
    if status is not None and 400 <= status < 500 and status not in {408, 429}:
        retryable = False

    return ErrorInfo(
        category=category,
        component=component,
        error_type=exc.__class__.__name__,
        message_signature=normalized,
        retryable=retryable,
        http_status=status,
    )


def compact_error_summary(exc: Exception, max_len: int = 220) -> str:
    return f"{exc.__class__.__name__}: {_compact_message(str(exc), max_len=max_len)}"
