from __future__ import annotations

import asyncio
import base64

import pytest

from cvisio.core.providers.base import ImageAttachment, ProviderAdapter


class StubAdapter(ProviderAdapter):
    """Records every call and answers with a fixed body, an error, or an echo."""

    name = "stub"

    def __init__(self, response: dict | None = None, error: Exception | None = None, delay: float = 0.0) -> None:
        self.response = response if response is not None else {"ok": True}
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, tuple]] = []

    async def _answer(self, capability: str, *args) -> dict:
        self.calls.append((capability, args))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response

    async def generate_image(self, prompt: str) -> dict:
        return await self._answer("generate_image", prompt)

    async def grounded_search(self, query: str) -> dict:
        return await self._answer("grounded_search", query)

    async def edit_image(self, prompt: str, image: ImageAttachment) -> dict:
        self.calls.append(("edit_image", (prompt, image)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return {"prompt": prompt, "echo": base64.b64encode(image.data).decode("ascii"), "mime": image.mime_type}

    async def merge_images(self, prompt: str | None, first: ImageAttachment, second: ImageAttachment) -> dict:
        return await self._answer("merge_images", prompt, first, second)


@pytest.fixture
def stub_adapter_factory():
    return StubAdapter


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + bytes(range(64))
JPEG_BYTES = b"\xff\xd8\xff\xe0" + bytes(range(64, 128))


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def jpeg_bytes() -> bytes:
    return JPEG_BYTES
