"""Perch exception hierarchy.

Shared across the typed request views, the middleware stack and the
error translator so every module raises and catches the same types.
"""


class PerchError(Exception):
    """Base for all perch-specific errors.

    ``code`` is an application-defined integer carried into the JSON
    error body by ``ErrorTranslator``. It is not the HTTP status.
    """

    def __init__(self, message: str = "", *, code: int = 0) -> None:
        super().__init__(message)
        self.code = code

    @property
    def message(self) -> str:
        return str(self)


class ConfigurationError(PerchError):
    """Raised when configuration is invalid.

    Typically raised from a constructor, before any request is handled.
    """


class InvalidInput(PerchError):  # noqa: N818
    """400: a client-supplied value has the wrong shape or type."""


class NotFound(PerchError):  # noqa: N818
    """404: a logical resource does not exist. Raised by callers."""

    def __init__(self, message: str = "Not Found", *, code: int = 0) -> None:
        super().__init__(message, code=code)


class StorageError(PerchError):
    """A filesystem precondition or operation failed during upload relocation.

    The message includes ``path``. Exposing it in error bodies is accepted
    policy for this error kind only.
    """

    def __init__(self, message: str, path: str, *, code: int = 0) -> None:
        super().__init__(message, code=code)
        self.path = path


class SessionError(PerchError):
    """An illegal session lifecycle transition (e.g. starting a destroyed session)."""
