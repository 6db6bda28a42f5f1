"""Middleware: Protocol-based, no inheritance required.

A middleware is any callable matching:
    def mw(request: Request, next: Next) -> Response

MiddlewareStack composes them in onion order.

Built-in middleware:
    SessionMiddleware -- Signed cookie sessions (itsdangerous)
"""

from perch.middleware.protocol import Middleware, Next
from perch.middleware.sessions import Session, SessionMiddleware, SessionState, get_session
from perch.middleware.stack import MiddlewareStack

__all__ = [
    "Middleware",
    "MiddlewareStack",
    "Next",
    "Session",
    "SessionMiddleware",
    "SessionState",
    "get_session",
]
