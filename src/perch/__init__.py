"""Perch: HTTP requests, responses and a synchronous middleware stack.

Basic usage::

    from perch import MiddlewareStack, Next, Request, Response

    def hello(request: Request, next: Next) -> Response:
        name = request.query.get("name", "world")
        return Response(f"Hello, {name}!")

    stack = MiddlewareStack().add_middleware(hello)
    response = stack.handle(Request.create(query={"name": "perch"}))

Serve it with any WSGI server::

    from perch import WSGIApp
    application = WSGIApp(stack)
"""

__version__ = "0.1.0"
__all__ = [
    "ConfigurationError",
    "ErrorTranslator",
    "HttpConfig",
    "InvalidInput",
    "Middleware",
    "MiddlewareStack",
    "Next",
    "NotFound",
    "PerchError",
    "Request",
    "Response",
    "StorageError",
    "WSGIApp",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "HttpConfig":
        from perch.config import HttpConfig

        return HttpConfig

    if name == "Request":
        from perch.http.request import Request

        return Request

    if name == "Response":
        from perch.http.response import Response

        return Response

    if name in ("Middleware", "MiddlewareStack", "Next"):
        from perch import middleware

        return getattr(middleware, name)

    if name == "ErrorTranslator":
        from perch.server.errors import ErrorTranslator

        return ErrorTranslator

    if name == "WSGIApp":
        from perch.server.handler import WSGIApp

        return WSGIApp

    if name in ("ConfigurationError", "InvalidInput", "NotFound", "PerchError", "StorageError"):
        from perch import errors

        return getattr(errors, name)

    msg = f"module 'perch' has no attribute {name!r}"
    raise AttributeError(msg)
