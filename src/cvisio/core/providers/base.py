from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True, frozen=True)
class ImageAttachment:
    data: bytes
    mime_type: str
    filename: str | None = None


@dataclass(slots=True, frozen=True)
class GenerationRequest:
    prompt: str
    attachments: tuple[ImageAttachment, ...] = field(default_factory=tuple)


ProviderResponse = dict[str, Any]


class ProviderAdapter(ABC):
    """One method per capability the gateway exposes.

    Implementations own the provider's request/response shapes. Every method
    returns the provider's decoded response body untouched and raises
    ``ProviderError`` (or any other exception) on failure.
    """

    name: str

    @abstractmethod
    async def generate_image(self, prompt: str) -> ProviderResponse:
        raise NotImplementedError

    @abstractmethod
    async def grounded_search(self, query: str) -> ProviderResponse:
        raise NotImplementedError

    @abstractmethod
    async def edit_image(self, prompt: str, image: ImageAttachment) -> ProviderResponse:
        raise NotImplementedError

    @abstractmethod
    async def merge_images(
        self,
        prompt: str | None,
        first: ImageAttachment,
        second: ImageAttachment,
    ) -> ProviderResponse:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None
