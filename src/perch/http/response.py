"""HTTP response with chainable mutators and emitter-based sending.

A Response belongs to exactly one request. Middleware mutates it in
place on the way out of the pipeline; every mutator returns the
response so calls chain.
"""

from __future__ import annotations

import json as json_module
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from perch.http.cookies import SetCookie

if TYPE_CHECKING:
    from perch.server.sender import Emitter


@dataclass(slots=True)
class Response:
    """An HTTP response: content, status code, headers and cookies.

    Headers hold a single value per name. Setting a header replaces any
    existing header with the same name, compared case-insensitively::

        response = Response("hello").set_status(201).set_header("X-Id", "7")
        response.header("x-id")   # "7"
    """

    content: str | bytes = ""
    status: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    cookies: list[SetCookie] = field(default_factory=list)

    def __post_init__(self) -> None:
        initial, self.headers = self.headers, {}
        for name, value in initial.items():
            self.set_header(name, value)

    # -- Mutators --

    def set_content(self, content: str | bytes) -> Response:
        self.content = content
        return self

    def append(self, content: str | bytes) -> Response:
        """Append to the body, keeping its current str/bytes type."""
        if isinstance(self.content, bytes):
            extra = content.encode("utf-8") if isinstance(content, str) else content
            self.content += extra
        else:
            extra = content.decode("utf-8") if isinstance(content, bytes) else content
            self.content += extra
        return self

    def set_status(self, status: int) -> Response:
        self.status = status
        return self

    def set_header(self, name: str, value: str) -> Response:
        """Set a header, replacing any same-named header (last write wins)."""
        self.remove_header(name)
        self.headers[name] = value
        return self

    def set_headers(self, headers: Mapping[str, str]) -> Response:
        for name, value in headers.items():
            self.set_header(name, value)
        return self

    def remove_header(self, name: str) -> Response:
        lowered = name.lower()
        for existing in [k for k in self.headers if k.lower() == lowered]:
            del self.headers[existing]
        return self

    def add_cookie(self, cookie: SetCookie) -> Response:
        self.cookies.append(cookie)
        return self

    def add_cookies(self, cookies: Iterable[SetCookie]) -> Response:
        self.cookies.extend(cookies)
        return self

    # -- Accessors --

    def header(self, name: str, default: str | None = None) -> str | None:
        """Return a header value by case-insensitive name."""
        lowered = name.lower()
        for existing, value in self.headers.items():
            if existing.lower() == lowered:
                return value
        return default

    @property
    def content_type(self) -> str | None:
        return self.header("Content-Type")

    @property
    def body_bytes(self) -> bytes:
        """Body as bytes."""
        if isinstance(self.content, str):
            return self.content.encode("utf-8")
        return self.content

    @property
    def text(self) -> str:
        """Body as string."""
        if isinstance(self.content, bytes):
            return self.content.decode("utf-8")
        return self.content

    # -- Emission --

    def send_headers(self, emitter: Emitter) -> Response:
        """Emit header lines, ``Set-Cookie`` lines, then the status.

        Does nothing if the emitter reports headers were already sent.
        """
        if emitter.headers_sent:
            return self
        for name, value in self.headers.items():
            emitter.header(name, value)
        for cookie in self.cookies:
            emitter.header("Set-Cookie", cookie.to_header_value())
        emitter.status(self.status)
        return self

    def send_content(self, emitter: Emitter) -> Response:
        emitter.write(self.body_bytes)
        return self

    def send(self, emitter: Emitter) -> Response:
        """Send headers (if not already sent) followed by the body."""
        return self.send_headers(emitter).send_content(emitter)

    # -- Factories --

    @classmethod
    def json(cls, data: Any, status: int = 200) -> Response:
        """Build an ``application/json`` response. Serialization errors propagate."""
        body = json_module.dumps(data, ensure_ascii=False)
        return cls(body, status, {"Content-Type": "application/json"})
