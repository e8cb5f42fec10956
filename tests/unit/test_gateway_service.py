from __future__ import annotations

import pytest

from cvisio.core.config.schema import AppConfig
from cvisio.core.gateway.service import GatewayService, describe_uploads, require_text
from cvisio.core.providers.base import ImageAttachment
from cvisio.core.runtime.errors import ClientFacingError, InputValidationError, ProviderError
from cvisio.core.telemetry.tracing import RequestContext

CTX = RequestContext(request_id="r1", endpoint="/test")
IMAGE = ImageAttachment(data=b"img", mime_type="image/png")


def test_require_text_rejects_blank_values():
    assert require_text("hi", "Prompt is required") == "hi"
    for value in [None, "", " \n "]:
        with pytest.raises(InputValidationError, match="Prompt is required"):
            require_text(value, "Prompt is required")


def test_describe_uploads_keeps_names_and_sizes_but_not_bytes():
    named = ImageAttachment(data=b"12345", mime_type="image/jpeg", filename="photo.jpg")
    assert describe_uploads((IMAGE, named)) == [
        {"filename": None, "mime_type": "image/png", "bytes": 3},
        {"filename": "photo.jpg", "mime_type": "image/jpeg", "bytes": 5},
    ]


@pytest.mark.asyncio
async def test_generate_image_wraps_result_without_request_binding(stub_adapter_factory):
    adapter = stub_adapter_factory(response={"predictions": []})
    service = GatewayService(cfg=AppConfig(), adapter=adapter)

    assert await service.generate_image("a cat", ctx=CTX) == {"success": True, "data": {"predictions": []}}
    assert adapter.calls == [("generate_image", ("a cat",))]


@pytest.mark.asyncio
async def test_merge_passes_missing_prompt_to_adapter(stub_adapter_factory):
    adapter = stub_adapter_factory()
    service = GatewayService(cfg=AppConfig(), adapter=adapter)

    await service.merge_images(None, IMAGE, IMAGE, ctx=CTX)
    assert adapter.calls == [("merge_images", (None, IMAGE, IMAGE))]


@pytest.mark.asyncio
@pytest.mark.parametrize("first,second", [(None, IMAGE), (IMAGE, None), (None, None)])
async def test_merge_requires_two_images(stub_adapter_factory, first, second):
    adapter = stub_adapter_factory()
    service = GatewayService(cfg=AppConfig(), adapter=adapter)

    with pytest.raises(InputValidationError, match="Two image files are required"):
        await service.merge_images("p", first, second, ctx=CTX)
    assert adapter.calls == []


@pytest.mark.asyncio
async def test_adapter_failure_becomes_fixed_client_message(stub_adapter_factory):
    adapter = stub_adapter_factory(error=ProviderError("HTTP 500 from upstream", status_code=500))
    service = GatewayService(cfg=AppConfig(), adapter=adapter)

    with pytest.raises(ClientFacingError) as excinfo:
        await service.legal_search("contract law", ctx=CTX)

    assert excinfo.value.status_code == 500
    assert excinfo.value.message == "Failed to perform legal search"
    assert isinstance(excinfo.value.__cause__, ProviderError)
