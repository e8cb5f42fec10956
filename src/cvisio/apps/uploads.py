from __future__ import annotations

import io
from dataclasses import dataclass, field

from fastapi import Request
from python_multipart import MultipartParser
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import parse_options_header

from cvisio.core.providers.base import ImageAttachment
from cvisio.core.runtime.errors import ClientFacingError, InputValidationError

MULTIPART_FORM = b"multipart/form-data"
URLENCODED_FORM = b"application/x-www-form-urlencoded"
DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(slots=True)
class UploadedForm:
    fields: dict[str, str] = field(default_factory=dict)
    files: dict[str, ImageAttachment] = field(default_factory=dict)

    def attachment(self, name: str) -> ImageAttachment | None:
        """Return the uploaded file ``name``; an empty upload counts as missing."""
        upload = self.files.get(name)
        if upload is None or not upload.data:
            return None
        return upload


@dataclass(slots=True)
class _Part:
    headers: dict[bytes, bytes] = field(default_factory=dict)
    body: io.BytesIO = field(default_factory=io.BytesIO)


class _PartCollector:
    """python-multipart callbacks that buffer every part in a ``BytesIO``."""

    def __init__(self, form: UploadedForm) -> None:
        self.form = form
        self._part = _Part()
        self._header_field = b""
        self._header_value = b""

    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
        }

    def on_part_begin(self) -> None:
        self._part = _Part()

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._part.body.write(data[start:end])

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._part.headers[self._header_field.lower()] = self._header_value
        self._header_field = b""
        self._header_value = b""

    def on_part_end(self) -> None:
        _disposition, options = parse_options_header(self._part.headers.get(b"content-disposition"))
        raw_name = options.get(b"name")
        if raw_name is None:
            return
        name = raw_name.decode("utf-8", errors="replace")
        # first occurrence wins for repeated names
        if b"filename" in options:
            if name not in self.form.files:
                mime_type, _params = parse_options_header(self._part.headers.get(b"content-type"))
                self.form.files[name] = ImageAttachment(
                    data=self._part.body.getvalue(),
                    mime_type=mime_type.decode("latin-1") or DEFAULT_MIME_TYPE,
                    filename=options[b"filename"].decode("utf-8", errors="replace") or None,
                )
        else:
            self.form.fields.setdefault(name, self._part.body.getvalue().decode("utf-8", errors="replace"))


def _too_large(max_bytes: int) -> ClientFacingError:
    return ClientFacingError(f"Uploaded files exceed the {max_bytes} byte limit", status_code=413)


async def read_upload_form(request: Request, *, max_bytes: int) -> UploadedForm:
    """Read a form body into memory.

    ``multipart/form-data`` parts are streamed through python-multipart into
    ``BytesIO`` buffers, so uploads never reach a temporary file whatever
    their size. Bodies above ``max_bytes`` are refused with 413. A body of any
    other type yields an empty form, which the gateway reports as missing
    input.
    """
    form = UploadedForm()
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes:
        raise _too_large(max_bytes)

    content_type, params = parse_options_header(request.headers.get("content-type"))
    if content_type == URLENCODED_FORM:
        submitted = await request.form()
        for name, value in submitted.multi_items():
            if isinstance(value, str):
                form.fields.setdefault(name, value)
        return form
    if content_type != MULTIPART_FORM:
        return form

    boundary = params.get(b"boundary")
    if not boundary:
        raise InputValidationError("Malformed multipart body")

    parser = MultipartParser(boundary, _PartCollector(form).callbacks())
    received = 0
    try:
        async for chunk in request.stream():
            received += len(chunk)
            if received > max_bytes:
                raise _too_large(max_bytes)
            parser.write(chunk)
        parser.finalize()
    except MultipartParseError as exc:
        raise InputValidationError("Malformed multipart body") from exc
    return form
