"""Server and execution environment parameters.

Keys follow CGI/WSGI environment naming (``REQUEST_METHOD``,
``REMOTE_ADDR``, ``HTTP_USER_AGENT``...). Everything higher level
(client IP, scheme, canonical header names) is derived on access and
never written back into the bag.
"""

import ipaddress
from collections.abc import Iterable, Mapping
from typing import Any, Self

from perch.errors import InvalidInput
from perch.http.parameters import ParameterBag

METHOD_GET = "GET"

_HEADER_PREFIX = "HTTP_"

# CGI passes these two headers without the HTTP_ prefix
_UNPREFIXED_HEADERS = frozenset({"CONTENT_TYPE", "CONTENT_LENGTH"})


def header_name(environ_key: str) -> str:
    """``HTTP_X_FORWARDED_FOR`` -> ``X-Forwarded-For``."""
    if environ_key.startswith(_HEADER_PREFIX):
        environ_key = environ_key[len(_HEADER_PREFIX) :]
    return "-".join(part.capitalize() for part in environ_key.lower().split("_"))


def environ_key(name: str) -> str:
    """``x-forwarded-for`` -> ``HTTP_X_FORWARDED_FOR``."""
    key = name.upper().replace("-", "_")
    if key in _UNPREFIXED_HEADERS:
        return key
    return _HEADER_PREFIX + key


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


class ServerBag(ParameterBag):
    """Server and environment variables for one request.

    Values are strings, sequences of strings, or ``None``.

    *trusted_proxies* lists peer addresses allowed to report the real
    client address through ``X-Forwarded-For``; see ``client_ip``.
    """

    __slots__ = ("trusted_proxies",)

    def __init__(
        self,
        parameters: Mapping[str, Any] | None = None,
        *,
        trusted_proxies: Iterable[str] = (),
    ) -> None:
        super().__init__(parameters)
        self.trusted_proxies = frozenset(trusted_proxies)

    def set(self, key: str, value: Any) -> Self:
        if value is not None and not isinstance(value, str):
            if not (
                isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value)
            ):
                msg = (
                    f'Server parameter "{key}" must be a string, a sequence of strings, '
                    f'or None. Received type: "{type(value).__name__}".'
                )
                raise InvalidInput(msg)
        return super().set(key, value)

    # -- Request line --

    @property
    def request_method(self) -> str:
        """The request method, ``GET`` when unset."""
        return self.get("REQUEST_METHOD") or METHOD_GET

    @property
    def request_uri(self) -> str:
        """The request target (path plus query string), ``/`` when unset."""
        return self.get("REQUEST_URI") or "/"

    @property
    def protocol(self) -> str:
        """``https`` if ``HTTPS`` is set to anything but ``off``, else ``http``."""
        https = self.get("HTTPS")
        return "https" if https and https != "off" else "http"

    # -- Client --

    @property
    def client_ip(self) -> str | None:
        """The client address, honouring ``X-Forwarded-For`` from trusted proxies only.

        When ``REMOTE_ADDR`` is a trusted proxy, the first comma-separated
        ``X-Forwarded-For`` entry is returned if it is a well-formed IP
        literal. Otherwise the peer address itself is returned.
        """
        remote_addr = self.get("REMOTE_ADDR")
        if remote_addr in self.trusted_proxies:
            forwarded = self.get("HTTP_X_FORWARDED_FOR") or ""
            if isinstance(forwarded, (list, tuple)):
                forwarded = ",".join(forwarded)
            candidate = forwarded.split(",")[0].strip()
            if _is_ip(candidate):
                return candidate
        return remote_addr

    @property
    def host(self) -> str | None:
        return self.get("HTTP_HOST")

    @property
    def server_port(self) -> str | None:
        return self.get("SERVER_PORT")

    @property
    def user_agent(self) -> str | None:
        return self.get("HTTP_USER_AGENT")

    @property
    def referer(self) -> str | None:
        return self.get("HTTP_REFERER")

    @property
    def script_name(self) -> str | None:
        return self.get("SCRIPT_NAME")

    @property
    def server_address(self) -> str | None:
        return self.get("SERVER_ADDR")

    # -- Headers --

    def default_headers(self) -> dict[str, str]:
        """Headers assumed before any request header is applied."""
        return {
            "Content-Type": "text/html",
            "Cache-Control": "no-cache, no-store, must-revalidate",
        }

    def headers(self) -> dict[str, Any]:
        """Request headers by canonical name, overlaid on ``default_headers()``."""
        headers: dict[str, Any] = self.default_headers()
        for key in self:
            if key.startswith(_HEADER_PREFIX):
                headers[header_name(key)] = self.get(key)
        return headers

    def header(self, name: str, default: str | None = None) -> Any:
        """Look up one request header by name, case-insensitively."""
        return self.get(environ_key(name), default)
