"""Failure-to-response translation.

The single place where an exception becomes a client-visible Response.
Every translated error has the same JSON shape::

    {"error": {"code": 0, "kind": "InvalidInput", "message": "..."}}
"""

import logging

from perch.config import HttpConfig
from perch.errors import InvalidInput, NotFound, PerchError
from perch.http.response import Response

logger = logging.getLogger("perch.server")

INTERNAL_ERROR_MESSAGE = "Internal Server Error"


def status_for(exc: BaseException) -> int:
    """Map an exception to its HTTP status code."""
    if isinstance(exc, InvalidInput):
        return 400
    if isinstance(exc, NotFound):
        return 404
    return 500


class ErrorTranslator:
    """Turn a caught exception into a structured JSON ``Response``.

    ``InvalidInput`` maps to 400, ``NotFound`` to 404, anything else to
    500. Perch errors keep their message. Other exceptions are reported
    as "Internal Server Error" unless ``config.debug`` is set, so file
    paths or internals from arbitrary errors do not reach the client.
    Serialization failures are not caught: there is no fallback body.
    """

    __slots__ = ("_config",)

    def __init__(self, config: HttpConfig | None = None) -> None:
        self._config = config or HttpConfig()

    def handle(self, exc: Exception) -> Response:
        status = status_for(exc)
        if status == 500:
            logger.error("500 %s", type(exc).__name__, exc_info=exc)
        else:
            logger.debug("%d %s: %s", status, type(exc).__name__, exc)

        return Response.json({"error": self._describe(exc)}, status)

    def _describe(self, exc: Exception) -> dict[str, object]:
        if isinstance(exc, PerchError):
            return {"code": exc.code, "kind": type(exc).__name__, "message": exc.message}
        message = str(exc) if self._config.debug else INTERNAL_ERROR_MESSAGE
        return {"code": 0, "kind": type(exc).__name__, "message": message}
