from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ImagePromptRequest(BaseModel):
    prompt: str | None = None


class LegalSearchRequest(BaseModel):
    query: str | None = None


class ImageGenerationResponse(BaseModel):
    success: bool = True
    data: dict[str, Any]


class ErrorResponse(BaseModel):
    error: str
