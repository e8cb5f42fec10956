"""Conversion between uploaded images and Gemini inline data parts."""

from __future__ import annotations

import base64
import binascii
from typing import Any

from cvisio.core.providers.base import ImageAttachment


def to_inline_part(image: ImageAttachment) -> dict[str, Any]:
    return {
        "inlineData": {
            "mimeType": image.mime_type,
            "data": base64.b64encode(image.data).decode("ascii"),
        }
    }


def from_inline_part(part: dict[str, Any]) -> ImageAttachment:
    inline = part.get("inlineData") or part.get("inline_data")
    if not isinstance(inline, dict):
        raise ValueError("part has no inlineData")
    mime_type = inline.get("mimeType") or inline.get("mime_type")
    if not mime_type:
        raise ValueError("inlineData has no mimeType")
    try:
        data = base64.b64decode(inline.get("data", ""), validate=True)
    except (binascii.Error, TypeError) as exc:
        raise ValueError(f"inlineData is not valid base64: {exc}") from exc
    return ImageAttachment(data=data, mime_type=mime_type)


def text_part(text: str) -> dict[str, str]:
    return {"text": text}
