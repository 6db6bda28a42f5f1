"""Tests for perch.middleware.sessions: lifecycle and signed cookies."""

import pytest
from itsdangerous import URLSafeTimedSerializer

from perch.config import HttpConfig
from perch.errors import ConfigurationError, SessionError
from perch.http.request import Request
from perch.http.response import Response
from perch.middleware import (
    MiddlewareStack,
    Next,
    Session,
    SessionMiddleware,
    SessionState,
    get_session,
)

SECRET = "test-secret-key"
CONFIG = HttpConfig(session_secret_key=SECRET)


def _signed(data: dict) -> str:
    return URLSafeTimedSerializer(SECRET, salt="perch.session").dumps(data)


def _session_cookie(request: Request):
    return [c for c in request.cookies.outgoing() if c.name == CONFIG.session_cookie_name]


class TestSession:
    def test_starts_not_started(self) -> None:
        assert Session().state is SessionState.NOT_STARTED

    def test_start_activates(self) -> None:
        session = Session()
        session.start()
        assert session.is_active

    def test_start_twice_is_noop(self) -> None:
        session = Session({"a": 1})
        session.start()
        session.start()
        assert session.is_active
        assert session.get("a") == 1

    def test_write_requires_active(self) -> None:
        with pytest.raises(SessionError):
            Session().set("a", 1)

    def test_read_allowed_before_start(self) -> None:
        assert Session({"a": 1}).get("a") == 1

    def test_clear(self) -> None:
        session = Session({"a": 1})
        session.start()
        session.clear()
        assert session.count() == 0
        assert session.is_active

    def test_destroy(self) -> None:
        session = Session({"a": 1})
        session.start()
        session.destroy()
        assert session.state is SessionState.DESTROYED
        assert session.count() == 0
        with pytest.raises(SessionError):
            session.set("a", 2)

    def test_cannot_restart_destroyed(self) -> None:
        session = Session()
        session.destroy()
        with pytest.raises(SessionError):
            session.start()


class TestGetSession:
    def test_missing(self) -> None:
        with pytest.raises(LookupError, match="SessionMiddleware"):
            get_session(Request.create())


class TestSessionMiddleware:
    def test_requires_secret(self) -> None:
        with pytest.raises(ConfigurationError):
            SessionMiddleware(HttpConfig())

    def test_new_session_is_saved(self) -> None:
        def handler(request: Request, next: Next) -> Response:
            session = get_session(request)
            assert session.is_active
            session.set("user", "alice")
            return Response("ok")

        stack = MiddlewareStack().add_middleware(SessionMiddleware(CONFIG)).add_middleware(handler)
        request = Request.create()
        stack.handle(request)

        [cookie] = _session_cookie(request)
        assert cookie.expires is not None
        data = URLSafeTimedSerializer(SECRET, salt="perch.session").loads(
            request.cookies.get(CONFIG.session_cookie_name)
        )
        assert data == {"user": "alice"}

    def test_existing_session_loaded(self) -> None:
        seen: dict = {}

        def handler(request: Request, next: Next) -> Response:
            seen.update(get_session(request).all())
            return Response("ok")

        stack = MiddlewareStack().add_middleware(SessionMiddleware(CONFIG)).add_middleware(handler)
        stack.handle(Request.create(cookies={CONFIG.session_cookie_name: _signed({"n": 3})}))
        assert seen == {"n": 3}

    def test_bad_signature_starts_fresh(self) -> None:
        seen: dict = {}

        def handler(request: Request, next: Next) -> Response:
            seen.update(get_session(request).all())
            return Response("ok")

        forged = URLSafeTimedSerializer("other", salt="perch.session").dumps({"admin": True})
        stack = MiddlewareStack().add_middleware(SessionMiddleware(CONFIG)).add_middleware(handler)
        stack.handle(Request.create(cookies={CONFIG.session_cookie_name: forged}))
        assert seen == {}

    def test_destroyed_session_expires_cookie(self) -> None:
        def logout(request: Request, next: Next) -> Response:
            get_session(request).destroy()
            return Response("bye")

        stack = MiddlewareStack().add_middleware(SessionMiddleware(CONFIG)).add_middleware(logout)
        request = Request.create(cookies={CONFIG.session_cookie_name: _signed({"user": "a"})})
        stack.handle(request)

        [cookie] = _session_cookie(request)
        assert cookie.value == ""
        assert "Expires=" in cookie.to_header_value()
        assert request.cookies.has(CONFIG.session_cookie_name) is False

    def test_response_passes_through(self) -> None:
        stack = MiddlewareStack().add_middleware(SessionMiddleware(CONFIG))
        response = stack.handle(Request.create())
        assert response.status == 404
