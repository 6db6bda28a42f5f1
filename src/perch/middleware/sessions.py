"""Session middleware: signed cookie sessions with an explicit lifecycle.

Session data is serialized as JSON and signed using ``itsdangerous``.
The session object lives in ``request.attributes["session"]`` and is
reachable via ``get_session(request)`` from any handler or middleware.

A ``Session`` moves through ``NOT_STARTED -> ACTIVE -> DESTROYED``.
Starting an active session is a no-op; starting a destroyed one raises
``SessionError``.
"""

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any, Self

from itsdangerous import BadSignature, URLSafeTimedSerializer

from perch.config import HttpConfig
from perch.errors import ConfigurationError, SessionError
from perch.http.parameters import ParameterBag
from perch.http.request import Request
from perch.http.response import Response
from perch.middleware.protocol import Next

logger = logging.getLogger("perch.sessions")

SESSION_ATTRIBUTE = "session"


class SessionState(Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    DESTROYED = "destroyed"


class Session(ParameterBag):
    """Key-value session data with lifecycle state.

    Writes are only allowed while the session is active.
    """

    __slots__ = ("_state",)

    def __init__(self, parameters: Mapping[str, Any] | None = None) -> None:
        super().__init__(parameters)
        self._state = SessionState.NOT_STARTED

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    def start(self) -> None:
        if self._state is SessionState.DESTROYED:
            msg = "Cannot start a destroyed session."
            raise SessionError(msg)
        self._state = SessionState.ACTIVE

    def _require_active(self) -> None:
        if self._state is not SessionState.ACTIVE:
            msg = f"Session is not active (state: {self._state.value})."
            raise SessionError(msg)

    def set(self, key: str, value: Any) -> Self:
        self._require_active()
        return super().set(key, value)

    def remove(self, key: str) -> None:
        self._require_active()
        super().remove(key)

    def clear(self) -> None:
        """Drop all session data. Also used to rotate a session after login."""
        self._require_active()
        self._parameters.clear()

    def destroy(self) -> None:
        """Drop all data; the middleware expires the session cookie."""
        self._parameters.clear()
        self._state = SessionState.DESTROYED


def get_session(request: Request) -> Session:
    """Return the session attached to *request*.

    Raises ``LookupError`` if ``SessionMiddleware`` did not run for
    this request.
    """
    session = request.attributes.get(SESSION_ATTRIBUTE)
    if not isinstance(session, Session):
        msg = (
            "No active session. Ensure SessionMiddleware is added "
            "to the stack before accessing the session."
        )
        raise LookupError(msg)
    return session


class SessionMiddleware:
    """Signed cookie session middleware.

    Reads the session cookie, verifies the signature, attaches a started
    ``Session`` to the request, then writes the signed data back through
    the request's cookie jar (or expires the cookie if the session was
    destroyed).

    Usage::

        stack.add_middleware(SessionMiddleware(HttpConfig(session_secret_key="...")))

        def dashboard(request: Request, next: Next) -> Response:
            session = get_session(request)
            session.set("visits", session.get("visits", 0) + 1)
            return Response(f"Visits: {session.get('visits')}")
    """

    __slots__ = ("_config", "_serializer")

    def __init__(self, config: HttpConfig) -> None:
        if not config.session_secret_key:
            msg = "HttpConfig.session_secret_key must not be empty."
            raise ConfigurationError(msg)

        self._config = config
        self._serializer = URLSafeTimedSerializer(config.session_secret_key, salt="perch.session")

    def _load_session(self, request: Request) -> Session:
        """Deserialize and verify the session cookie."""
        cookie_value = request.cookies.get(self._config.session_cookie_name)
        if not cookie_value:
            return Session()

        try:
            data = self._serializer.loads(cookie_value, max_age=self._config.session_max_age)
        except BadSignature:
            logger.debug("Discarding session cookie with a bad or expired signature")
            return Session()

        if not isinstance(data, dict):
            return Session()
        return Session(data)

    def _save_session(self, request: Request, session: Session) -> None:
        cfg = self._config
        if session.state is SessionState.DESTROYED:
            request.cookies.delete(cfg.session_cookie_name)
            return
        request.cookies.set(
            cfg.session_cookie_name,
            self._serializer.dumps(session.all()),
            expires=cfg.session_max_age,
        )

    def __call__(self, request: Request, next: Next) -> Response:
        """Load session, dispatch, then save session through the cookie jar."""
        session = self._load_session(request)
        session.start()
        request.attributes.set(SESSION_ATTRIBUTE, session)

        response = next(request)

        # Always re-sign (refreshes the timestamp for sliding expiration)
        self._save_session(request, session)
        return response
