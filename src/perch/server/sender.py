"""Response emission targets.

``Response.send()`` talks to an ``Emitter``: the host-side sink for
header lines, the status code and body bytes. The emitter owns the
"headers already sent" signal; the response checks it before emitting
headers.
"""

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Protocol, runtime_checkable


@runtime_checkable
class Emitter(Protocol):
    """Host sink for one response."""

    @property
    def headers_sent(self) -> bool: ...
    def header(self, name: str, value: str) -> None: ...
    def status(self, code: int) -> None: ...
    def write(self, data: bytes) -> None: ...


def status_line(code: int) -> str:
    """``404`` -> ``"404 Not Found"``; unknown codes get no phrase."""
    try:
        return f"{code} {HTTPStatus(code).phrase}"
    except ValueError:
        return str(code)


def body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


@dataclass(slots=True)
class BufferedEmitter:
    """In-memory emitter that records everything in order.

    Headers count as sent once the status has been emitted. Useful in
    tests and for hosts that write the response out in one piece.
    """

    header_lines: list[tuple[str, str]] = field(default_factory=list)
    status_code: int | None = None
    body: bytearray = field(default_factory=bytearray)
    events: list[str] = field(default_factory=list)

    @property
    def headers_sent(self) -> bool:
        return self.status_code is not None

    def header(self, name: str, value: str) -> None:
        self.header_lines.append((name, value))
        self.events.append("header")

    def status(self, code: int) -> None:
        self.status_code = code
        self.events.append("status")

    def write(self, data: bytes) -> None:
        self.body.extend(data)
        self.events.append("body")
