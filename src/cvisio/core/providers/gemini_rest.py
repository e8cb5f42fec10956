from __future__ import annotations

from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_fixed

from cvisio.core.config.schema import GeminiProviderConfig
from cvisio.core.providers.base import GenerationRequest, ImageAttachment, ProviderAdapter, ProviderResponse
from cvisio.core.providers.inline_data import text_part, to_inline_part
from cvisio.core.runtime.errors import ProviderError, ProviderTimeout, classify_error

HARM_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


def _error_detail(resp: httpx.Response) -> Any:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:500]
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"]
    return body


class GeminiRestAdapter(ProviderAdapter):
    """Talks to the Generative Language REST API directly.

    The API key travels in the ``x-goog-api-key`` header so that it never
    shows up in request URLs, httpx exception messages or logs.
    """

    name = "gemini_rest"

    def __init__(
        self,
        settings: GeminiProviderConfig,
        *,
        api_key: str,
        timeout_seconds: float = 120.0,
        retry_attempts: int = 1,
        retry_backoff_seconds: float = 0.2,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff_seconds = retry_backoff_seconds
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    def _headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self._api_key, "Content-Type": "application/json"}

    def _url(self, model: str, method: str) -> str:
        return f"{self.base_url}/models/{model}:{method}"

    def _safety_settings(self) -> list[dict[str, str]]:
        return [{"category": c, "threshold": self.settings.safety_threshold} for c in HARM_CATEGORIES]

    def _is_retryable(self, exc: BaseException) -> bool:
        if not isinstance(exc, Exception):
            return False
        return classify_error(exc, category="provider", component=self.name).retryable

    async def _post_once(self, model: str, method: str, payload: dict[str, Any]) -> ProviderResponse:
        try:
            resp = await self._client.post(self._url(model, method), json=payload, headers=self._headers())
        except httpx.TimeoutException as exc:
            raise ProviderTimeout(f"{model}:{method} timed out", detail=str(exc)) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"{model}:{method} transport failure: {exc.__class__.__name__}", detail=str(exc)) from exc

        if resp.status_code >= 400:
            raise ProviderError(
                f"{model}:{method} returned HTTP {resp.status_code}",
                status_code=resp.status_code,
                detail=_error_detail(resp),
            )
        try:
            body = resp.json()
        except ValueError as exc:
            raise ProviderError(
                f"{model}:{method} returned a non-JSON body",
                status_code=resp.status_code,
                detail=resp.text[:500],
            ) from exc
        if not isinstance(body, dict):
            raise ProviderError(f"{model}:{method} returned {type(body).__name__}, expected an object", detail=body)
        return body

    async def _post(self, model: str, method: str, payload: dict[str, Any]) -> ProviderResponse:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_fixed(self.retry_backoff_seconds),
            retry=retry_if_exception(self._is_retryable),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._post_once(model, method, payload)
        raise ProviderError(f"{model}:{method} made no attempt")  # pragma: no cover

    def build_image_payload(self, prompt: str) -> dict[str, Any]:
        return {"instances": [{"prompt": prompt}], "parameters": {"sampleCount": self.settings.sample_count}}

    def build_search_payload(self, query: str) -> dict[str, Any]:
        return {
            "contents": [{"parts": [text_part(query)]}],
            "tools": [{"google_search": {}}],
            "systemInstruction": {"parts": [text_part(self.settings.legal_system_prompt)]},
        }

    def build_multimodal_payload(self, request: GenerationRequest) -> dict[str, Any]:
        parts: list[dict[str, Any]] = [text_part(request.prompt)]
        parts.extend(to_inline_part(image) for image in request.attachments)
        return {"contents": [{"parts": parts}], "safetySettings": self._safety_settings()}

    async def generate_image(self, prompt: str) -> ProviderResponse:
        return await self._post(self.settings.image_model, "predict", self.build_image_payload(prompt))

    async def grounded_search(self, query: str) -> ProviderResponse:
        return await self._post(self.settings.search_model, "generateContent", self.build_search_payload(query))

    async def edit_image(self, prompt: str, image: ImageAttachment) -> ProviderResponse:
        payload = self.build_multimodal_payload(GenerationRequest(prompt=prompt, attachments=(image,)))
        return await self._post(self.settings.edit_model, "generateContent", payload)

    async def merge_images(
        self,
        prompt: str | None,
        first: ImageAttachment,
        second: ImageAttachment,
    ) -> ProviderResponse:
        text = prompt if prompt and prompt.strip() else self.settings.merge_default_prompt
        payload = self.build_multimodal_payload(GenerationRequest(prompt=text, attachments=(first, second)))
        return await self._post(self.settings.edit_model, "generateContent", payload)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
