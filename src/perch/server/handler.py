"""WSGI handler: the host boundary.

The only component that touches the WSGI environ and ``start_response``
directly. Builds a Request, dispatches through the middleware stack,
translates failures, attaches issued cookies and emits the Response.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from perch.config import HttpConfig
from perch.http.request import Request
from perch.http.response import Response
from perch.middleware.stack import MiddlewareStack
from perch.server.errors import ErrorTranslator
from perch.server.sender import body_allowed, status_line

logger = logging.getLogger("perch.server")

type StartResponse = Callable[[str, list[tuple[str, str]]], Any]

DEFAULT_CONTENT_TYPE = "text/html; charset=utf-8"


class WSGIEmitter:
    """Emitter backed by a WSGI ``start_response`` callable.

    Header lines and the status are buffered; ``start_response`` is
    called on the first body write, after which headers count as sent.
    """

    __slots__ = ("_headers", "_start_response", "_started", "_status", "chunks")

    def __init__(self, start_response: StartResponse) -> None:
        self._start_response = start_response
        self._headers: list[tuple[str, str]] = []
        self._status = 200
        self._started = False
        self.chunks: list[bytes] = []

    @property
    def headers_sent(self) -> bool:
        return self._started

    def header(self, name: str, value: str) -> None:
        self._headers.append((name, value))

    def status(self, code: int) -> None:
        self._status = code

    def write(self, data: bytes) -> None:
        if not self._started:
            self._start_response(status_line(self._status), self._headers)
            self._started = True
        if data:
            self.chunks.append(data)


class WSGIApp:
    """WSGI application wrapping a ``MiddlewareStack``.

    Usage::

        stack = MiddlewareStack().add_middleware(app_handler)
        application = WSGIApp(stack)
    """

    __slots__ = ("_config", "_stack", "_translator")

    def __init__(
        self,
        stack: MiddlewareStack,
        config: HttpConfig | None = None,
        translator: ErrorTranslator | None = None,
    ) -> None:
        self._config = config or HttpConfig()
        self._stack = stack
        self._translator = translator or ErrorTranslator(self._config)

    def dispatch(self, environ: Mapping[str, Any]) -> Response:
        """Build the request and run it through the stack; failures become responses.

        Uploads left in their temporary location are deleted once the
        response exists.
        """
        try:
            request = Request.from_wsgi(environ, self._config)
        except Exception as exc:
            return self._translator.handle(exc)

        try:
            response = self._stack.handle(request)
        except Exception as exc:
            response = self._translator.handle(exc)
        finally:
            request.files.cleanup()

        return response.add_cookies(request.cookies.outgoing())

    def __call__(self, environ: Mapping[str, Any], start_response: StartResponse) -> Iterable[bytes]:
        response = self.dispatch(environ)

        if not body_allowed(response.status):
            response.set_content(b"")
        if response.content_type is None:
            response.set_header("Content-Type", DEFAULT_CONTENT_TYPE)
        response.set_header("Content-Length", str(len(response.body_bytes)))

        emitter = WSGIEmitter(start_response)
        response.send(emitter)
        logger.debug("%d %s", response.status, environ.get("PATH_INFO", "/"))
        return emitter.chunks
