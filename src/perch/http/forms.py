"""Request body parsing: URL-encoded and multipart.

URL-encoded forms use stdlib ``urllib.parse``. Multipart bodies are
parsed with ``python-multipart``; each uploaded file is written to its
own temporary file and described by an ``UploadedFile``, ready for
``FileBag.move()``. Whatever is not moved is removed by
``FileBag.cleanup()`` at the end of the request.
"""

import tempfile
from typing import Any
from urllib.parse import parse_qs

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from perch.errors import InvalidInput
from perch.http.files import UploadedFile, UploadError, discard_temporary

type Fields = dict[str, str | list[str]]


def collapse(parsed: dict[str, list[str]]) -> Fields:
    """Single values become plain strings; repeated keys stay lists."""
    return {key: values[0] if len(values) == 1 else values for key, values in parsed.items()}


def parse_urlencoded(raw: str) -> Fields:
    return collapse(parse_qs(raw, keep_blank_values=True))


def parse_body(body: bytes, content_type: str) -> tuple[Fields, dict[str, UploadedFile]]:
    """Parse a request body into form fields and uploaded files.

    Unknown content types yield no fields: the body stays unread by the
    typed views, like any other opaque payload.

    Raises:
        InvalidInput: If a multipart body is missing its boundary or is malformed.
    """
    ct_lower = content_type.lower().split(";")[0].strip()

    if ct_lower == "application/x-www-form-urlencoded":
        return parse_urlencoded(body.decode("utf-8", errors="replace")), {}

    if ct_lower == "multipart/form-data":
        return _parse_multipart(body, content_type)

    return {}, {}


def _spool(content: bytes) -> str:
    """Write upload content to a fresh temporary file and return its path."""
    with tempfile.NamedTemporaryFile(prefix="perch-upload-", delete=False) as handle:
        handle.write(content)
        return handle.name


def _parse_multipart(body: bytes, content_type: str) -> tuple[Fields, dict[str, UploadedFile]]:
    _, options = parse_options_header(content_type.encode("latin-1"))
    boundary = options.get(b"boundary")
    if boundary is None:
        msg = "Multipart form data missing boundary parameter"
        raise InvalidInput(msg)

    data: dict[str, list[str]] = {}
    files: dict[str, UploadedFile] = {}

    # Track current part state
    current_headers: dict[str, str] = {}
    current_data = bytearray()
    current_field_name: str | None = None
    current_filename: str | None = None

    def on_part_begin() -> None:
        nonlocal current_headers, current_data, current_field_name, current_filename
        current_headers = {}
        current_data = bytearray()
        current_field_name = None
        current_filename = None

    def on_part_data(data_chunk: bytes, start: int, end: int) -> None:
        current_data.extend(data_chunk[start:end])

    def on_part_end() -> None:
        if current_field_name is None:
            return

        if current_filename is None:
            value = current_data.decode("utf-8", errors="replace")
            data.setdefault(current_field_name, []).append(value)
            return

        # Browsers send an empty filename for an untouched file input
        if not current_filename and not current_data:
            files[current_field_name] = UploadedFile(
                name="", size=0, tmp_name="", error=UploadError.NO_FILE
            )
            return

        content = bytes(current_data)
        files[current_field_name] = UploadedFile(
            name=current_filename,
            size=len(content),
            tmp_name=_spool(content),
            error=UploadError.OK,
            content_type=current_headers.get("content-type", "application/octet-stream"),
        )

    def on_header_field(hdata: bytes, start: int, end: int) -> None:
        current_headers["_pending_field"] = hdata[start:end].decode("latin-1").lower()

    def on_header_value(hdata: bytes, start: int, end: int) -> None:
        nonlocal current_field_name, current_filename
        field = current_headers.pop("_pending_field", "")
        value = hdata[start:end].decode("latin-1")
        current_headers[field] = value

        if field == "content-disposition":
            _, params = parse_options_header(value.encode("latin-1"))
            name = params.get(b"name")
            if name is not None:
                current_field_name = name.decode("utf-8")
            fname = params.get(b"filename")
            if fname is not None:
                current_filename = fname.decode("utf-8")

    callbacks: dict[str, Any] = {
        "on_part_begin": on_part_begin,
        "on_part_data": on_part_data,
        "on_part_end": on_part_end,
        "on_header_field": on_header_field,
        "on_header_value": on_header_value,
    }

    parser = MultipartParser(boundary, callbacks)
    try:
        parser.write(body)
        parser.finalize()
    except MultipartParseError as exc:
        discard_temporary(files.values())
        msg = "Malformed multipart form data"
        raise InvalidInput(msg) from exc

    return collapse(data), files
