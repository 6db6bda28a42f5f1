"""Middleware protocol and Next type alias.

A middleware is any callable matching::

    def my_mw(request: Request, next: Next) -> Response: ...

No base class required. The stack checks the shape, not the lineage.

Calling ``next`` is a plain synchronous delegation to the rest of the
chain. Not calling it short-circuits the chain.
"""

from collections.abc import Callable
from typing import Protocol

from perch.http.request import Request
from perch.http.response import Response

# The rest of the middleware chain, as seen from one unit
type Next = Callable[[Request], Response]


class Middleware(Protocol):
    """Protocol for perch middleware.

    Accepts both functions and callable objects::

        # Function middleware
        def timing(request: Request, next: Next) -> Response:
            start = time.monotonic()
            response = next(request)
            elapsed = time.monotonic() - start
            return response.set_header("X-Time", f"{elapsed:.3f}")

        # Class middleware
        class Maintenance:
            def __call__(self, request: Request, next: Next) -> Response:
                return Response("Back soon", 503)

    Keep units free of unsynchronized mutable state: one stack serves
    many requests, possibly from several threads at once. Per-request
    state belongs in ``request.attributes``.
    """

    def __call__(self, request: Request, next: Next) -> Response: ...
