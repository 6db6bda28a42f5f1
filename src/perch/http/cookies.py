"""Cookie parsing, SetCookie serialization and the request cookie jar.

Consolidates the read side (parse_cookies, used by Request), the write
side (SetCookie, emitted by the jar and sent with the Response) and the
jar itself in one module.
"""

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from email.utils import formatdate
from typing import Any, Self
from urllib.parse import quote, unquote

from perch.errors import InvalidInput
from perch.http.parameters import ParameterBag
from perch.http.values import is_scalar

# Deleted cookies are re-sent with an expiry this far in the past
EXPIRED_OFFSET = 3600


def parse_cookies(header: str) -> dict[str, str]:
    """Parse a ``Cookie`` header value into a name-value dict.

    Returns an empty dict for empty or missing headers. Values are kept
    as received (still percent-encoded).
    """
    if not header:
        return {}
    cookies: dict[str, str] = {}
    for pair in header.split(";"):
        pair = pair.strip()
        if "=" in pair:
            key, _, value = pair.partition("=")
            cookies[key.strip()] = value.strip()
    return cookies


@dataclass(frozen=True, slots=True)
class SetCookie:
    """A ``Set-Cookie`` directive handed to the transport.

    ``expires`` is an absolute Unix timestamp; ``None`` makes a session
    cookie.
    """

    name: str
    value: str
    expires: float | None = None
    max_age: int | None = None
    path: str = "/"
    domain: str | None = None
    secure: bool = True
    httponly: bool = True
    samesite: str = "Strict"

    def to_header_value(self) -> str:
        """Serialize to a ``Set-Cookie`` header value string."""
        parts = [f"{self.name}={self.value}"]
        if self.expires is not None:
            parts.append(f"Expires={formatdate(self.expires, usegmt=True)}")
        if self.max_age is not None:
            parts.append(f"Max-Age={self.max_age}")
        if self.path:
            parts.append(f"Path={self.path}")
        if self.domain:
            parts.append(f"Domain={self.domain}")
        if self.secure:
            parts.append("Secure")
        if self.httponly:
            parts.append("HttpOnly")
        if self.samesite:
            parts.append(f"SameSite={self.samesite}")
        return "; ".join(parts)


@dataclass(frozen=True, slots=True)
class CookieRecord:
    """What the jar remembers about a cookie it set during this request."""

    value: str
    expires: float | None
    path: str
    domain: str
    secure: bool
    httponly: bool
    samesite: str


def _render(value: Any) -> str:
    """Cookie text for a scalar. Booleans follow the form convention: ``"1"`` or ``""``."""
    if isinstance(value, bool):
        return "1" if value else ""
    return str(value)


type CookieTransport = Callable[[SetCookie], None]


class CookieJar(ParameterBag):
    """Request cookies plus the ``Set-Cookie`` directives issued against them.

    Reading decodes percent-encoding; writing validates, encodes, records
    the attributes and emits a directive through the transport. Metadata
    lives on the jar instance, so two requests never share cookie state.

    Defaults are the secure posture (``secure=True``, ``httponly=True``,
    ``samesite="Strict"``); callers opt out explicitly::

        jar.set("theme", "dark", expires=3600, samesite="Lax")
        jar.get("theme")   # "dark"
        jar.delete("theme")

    Without an explicit *transport* the directives collect in the jar and
    are available from ``outgoing()``.
    """

    __slots__ = ("_clock", "_outbox", "_records", "_transport")

    def __init__(
        self,
        parameters: Mapping[str, Any] | None = None,
        *,
        transport: CookieTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(parameters)
        self._records: dict[str, CookieRecord] = {}
        self._outbox: list[SetCookie] = []
        self._transport = transport or self._outbox.append
        self._clock = clock

    def set(
        self,
        key: str,
        value: Any,
        expires: int = 0,
        path: str = "/",
        domain: str = "",
        secure: bool = True,
        httponly: bool = True,
        samesite: str = "Strict",
    ) -> Self:
        """Set a cookie. *expires* is a lifetime in seconds; 0 means session cookie."""
        if not is_scalar(value):
            msg = f'Cookie value for "{key}" must be a scalar value.'
            raise InvalidInput(msg)

        encoded = quote(_render(value), safe="")
        expires_at = self._clock() + expires if expires else None
        self._records[key] = CookieRecord(
            value=encoded,
            expires=expires_at,
            path=path,
            domain=domain,
            secure=secure,
            httponly=httponly,
            samesite=samesite,
        )
        super().set(key, encoded)

        self._transport(
            SetCookie(
                name=key,
                value=encoded,
                expires=expires_at,
                path=path,
                domain=domain or None,
                secure=secure,
                httponly=httponly,
                samesite=samesite,
            )
        )
        return self

    def get(self, key: str, default: Any = None) -> Any:
        """Return the percent-decoded cookie value, or *default* if missing."""
        value = super().get(key)
        if value is None:
            return default
        return unquote(str(value))

    def raw(self, key: str) -> CookieRecord | None:
        """Return the attributes recorded when *key* was set, if it was."""
        return self._records.get(key)

    def delete(self, key: str) -> None:
        """Expire a cookie on the client and forget it locally.

        Reuses the path, domain and flags recorded at set time so the
        browser matches the cookie it holds. A cookie the client sent but
        this jar never set is expired with the default attributes. Unknown
        names are a no-op.
        """
        record = self._records.pop(key, None)
        if record is None and not self.has(key):
            return

        self._transport(
            SetCookie(
                name=key,
                value="",
                expires=self._clock() - EXPIRED_OFFSET,
                path=record.path if record else "/",
                domain=(record.domain if record else "") or None,
                secure=record.secure if record else True,
                httponly=record.httponly if record else True,
                samesite=record.samesite if record else "Strict",
            )
        )
        self.remove(key)

    def outgoing(self) -> tuple[SetCookie, ...]:
        """Directives collected by the default transport, in emission order."""
        return tuple(self._outbox)
