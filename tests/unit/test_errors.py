from __future__ import annotations

import httpx

from cvisio.core.runtime.errors import (
    ClientFacingError,
    InputValidationError,
    ProviderError,
    ProviderTimeout,
    RequestCancelled,
    classify_error,
    compact_error_summary,
)


def test_provider_status_drives_retryability():
    server_side = classify_error(ProviderError("HTTP 503", status_code=503), category="provider", component="edit_image")
    assert server_side.retryable is True
    assert server_side.http_status == 503

    rate_limited = classify_error(ProviderError("slow down", status_code=429), category="provider", component="c")
    assert rate_limited.retryable is True

    rejected = classify_error(ProviderError("bad prompt", status_code=400), category="provider", component="c")
    assert rejected.retryable is False
    assert rejected.http_status == 400


def test_auth_failures_and_cancellations_are_not_retryable():
    assert classify_error(ValueError("unauthorized auth error"), category="provider", component="c").retryable is False
    assert classify_error(RequestCancelled("client left"), category="provider", component="c").retryable is False


def test_timeouts_are_retryable():
    assert classify_error(ProviderTimeout("timed out"), category="provider", component="c").retryable is True
    assert classify_error(httpx.ReadTimeout("read"), category="provider", component="c").retryable is True


def test_status_is_parsed_from_message_when_not_attached():
    info = classify_error(RuntimeError("upstream said HTTP 404"), category="provider", component="c")
    assert info.http_status == 404
    assert info.retryable is False
    assert info.message_signature == "upstream said http #"


def test_compact_summary_and_client_facing_status():
    assert compact_error_summary(KeyError("Predictions   Missing")) == "KeyError: 'predictions missing'"
    assert InputValidationError("Prompt is required").status_code == 400
    assert ClientFacingError("Failed to edit image").status_code == 500
