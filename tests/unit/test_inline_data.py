from __future__ import annotations

import pytest

from cvisio.core.providers.base import ImageAttachment
from cvisio.core.providers.inline_data import from_inline_part, to_inline_part


def test_inline_part_is_lossless_for_arbitrary_bytes():
    original = ImageAttachment(data=bytes(range(256)) * 3, mime_type="image/webp")
    part = to_inline_part(original)

    assert set(part) == {"inlineData"}
    assert part["inlineData"]["mimeType"] == "image/webp"
    assert isinstance(part["inlineData"]["data"], str)
    assert from_inline_part(part) == original


def test_inline_part_accepts_snake_case_keys():
    part = {"inline_data": {"mime_type": "image/png", "data": "AAEC"}}
    assert from_inline_part(part) == ImageAttachment(data=b"\x00\x01\x02", mime_type="image/png")


@pytest.mark.parametrize(
    "part,message",
    [
        ({"text": "hello"}, "no inlineData"),
        ({"inlineData": {"data": "AAEC"}}, "no mimeType"),
        ({"inlineData": {"mimeType": "image/png", "data": "not base64!"}}, "not valid base64"),
    ],
)
def test_malformed_inline_parts_are_rejected(part, message):
    with pytest.raises(ValueError, match=message):
        from_inline_part(part)
