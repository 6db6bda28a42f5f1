"""Ordered middleware composition.

Units run as an onion: the first one added is the outermost. It sees
the request first and the response last::

    stack = MiddlewareStack()
    stack.add_middleware(outer).add_middleware(inner)

    outer(pre) -> inner(pre) -> unhandled 404 -> inner(post) -> outer(post)

Any unit may return without calling ``next``; the units added after it
never run.
"""

import logging
from typing import Self

from perch.config import HttpConfig
from perch.http.request import Request
from perch.http.response import Response
from perch.middleware.protocol import Middleware, Next

logger = logging.getLogger("perch.middleware")


class MiddlewareStack:
    """An append-only sequence of middleware with a fixed terminal response.

    ``handle`` builds a fresh continuation chain from a snapshot of the
    registered units on every call, so one stack can serve any number of
    requests, concurrently included.
    """

    __slots__ = ("_config", "_middleware")

    def __init__(self, config: HttpConfig | None = None) -> None:
        self._config = config or HttpConfig()
        self._middleware: list[Middleware] = []

    def add_middleware(self, middleware: Middleware) -> Self:
        """Append *middleware* as the new innermost unit."""
        self._middleware.append(middleware)
        return self

    def __len__(self) -> int:
        return len(self._middleware)

    def _unhandled(self, request: Request) -> Response:
        logger.debug("No middleware handled %s %s", request.method, request.uri)
        return Response(self._config.unhandled_body, self._config.unhandled_status)

    def handle(self, request: Request) -> Response:
        """Run *request* through every unit and return the resulting response."""
        handler: Next = self._unhandled
        for mw in reversed(tuple(self._middleware)):
            handler = _link(mw, handler)
        return handler(request)


def _link(middleware: Middleware, next_handler: Next) -> Next:
    """Bind one unit to the continuation it wraps."""

    def call(request: Request) -> Response:
        return middleware(request, next_handler)

    return call
