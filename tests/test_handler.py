"""Tests for perch.server.handler: the WSGI boundary end to end."""

import io
import tempfile
from pathlib import Path
from typing import Any

import pytest

from perch.config import HttpConfig
from perch.errors import InvalidInput, NotFound
from perch.http.request import Request
from perch.http.response import Response
from perch.middleware import MiddlewareStack, Next
from perch.server.handler import DEFAULT_CONTENT_TYPE, WSGIApp, WSGIEmitter


def _environ(**overrides: Any) -> dict[str, Any]:
    base: dict[str, Any] = {
        "REQUEST_METHOD": "GET",
        "PATH_INFO": "/",
        "QUERY_STRING": "",
        "SERVER_NAME": "localhost",
        "SERVER_PORT": "8000",
        "REMOTE_ADDR": "127.0.0.1",
        "wsgi.input": io.BytesIO(b""),
    }
    base.update(overrides)
    return base


class StartResponse:
    def __init__(self) -> None:
        self.calls: list[tuple[str, list[tuple[str, str]]]] = []

    def __call__(self, status: str, headers: list[tuple[str, str]]) -> None:
        self.calls.append((status, headers))

    @property
    def status(self) -> str:
        return self.calls[0][0]

    @property
    def headers(self) -> dict[str, str]:
        return {name.lower(): value for name, value in self.calls[0][1]}


def _call(app: WSGIApp, **environ: Any) -> tuple[StartResponse, bytes]:
    start = StartResponse()
    body = b"".join(app(_environ(**environ), start))
    return start, body


class TestWSGIEmitter:
    def test_start_response_on_first_write(self) -> None:
        start = StartResponse()
        emitter = WSGIEmitter(start)
        emitter.header("X-A", "1")
        emitter.status(201)
        assert start.calls == []
        assert emitter.headers_sent is False

        emitter.write(b"hi")
        emitter.write(b"!")
        assert start.calls == [("201 Created", [("X-A", "1")])]
        assert emitter.headers_sent is True
        assert emitter.chunks == [b"hi", b"!"]


class TestWSGIApp:
    def test_success(self) -> None:
        def hello(request: Request, next: Next) -> Response:
            return Response(f"hello {request.query.get('name')}")

        start, body = _call(WSGIApp(MiddlewareStack().add_middleware(hello)), QUERY_STRING="name=ann")
        assert start.status == "200 OK"
        assert body == b"hello ann"
        assert start.headers["content-type"] == DEFAULT_CONTENT_TYPE
        assert start.headers["content-length"] == str(len(body))

    def test_unhandled(self) -> None:
        start, body = _call(WSGIApp(MiddlewareStack()))
        assert start.status == "404 Not Found"
        assert body == b"No middleware processed the request"

    def test_explicit_content_type_kept(self) -> None:
        def api(request: Request, next: Next) -> Response:
            return Response.json({"ok": True})

        start, _ = _call(WSGIApp(MiddlewareStack().add_middleware(api)))
        assert start.headers["content-type"] == "application/json"

    def test_errors_translated(self) -> None:
        def missing(request: Request, next: Next) -> Response:
            raise NotFound("no such page")

        start, body = _call(WSGIApp(MiddlewareStack().add_middleware(missing)))
        assert start.status == "404 Not Found"
        assert b"no such page" in body

    def test_invalid_input_translated(self) -> None:
        def strict(request: Request, next: Next) -> Response:
            raise InvalidInput("bad")

        start, _ = _call(WSGIApp(MiddlewareStack().add_middleware(strict)))
        assert start.status == "400 Bad Request"

    def test_unexpected_errors_hidden(self) -> None:
        def crash(request: Request, next: Next) -> Response:
            raise RuntimeError("db password is hunter2")

        start, body = _call(WSGIApp(MiddlewareStack().add_middleware(crash)))
        assert start.status == "500 Internal Server Error"
        assert b"hunter2" not in body

    def test_malformed_body_translated(self) -> None:
        start, _ = _call(
            WSGIApp(MiddlewareStack()),
            REQUEST_METHOD="POST",
            CONTENT_TYPE="multipart/form-data",
            CONTENT_LENGTH="4",
            **{"wsgi.input": io.BytesIO(b"data")},
        )
        assert start.status == "400 Bad Request"

    def test_cookies_attached(self) -> None:
        def login(request: Request, next: Next) -> Response:
            request.cookies.set("theme", "dark", samesite="Lax")
            return Response("ok")

        start, _ = _call(WSGIApp(MiddlewareStack().add_middleware(login)))
        [(_, headers)] = start.calls
        cookies = [value for name, value in headers if name == "Set-Cookie"]
        assert len(cookies) == 1
        assert cookies[0].startswith("theme=dark")
        assert "SameSite=Lax" in cookies[0]

    def test_no_body_for_304(self) -> None:
        def cached(request: Request, next: Next) -> Response:
            return Response("stale", 304)

        start, body = _call(WSGIApp(MiddlewareStack().add_middleware(cached)))
        assert start.status == "304 Not Modified"
        assert body == b""
        assert start.headers["content-length"] == "0"

    def test_config_reaches_request(self) -> None:
        def whoami(request: Request, next: Next) -> Response:
            return Response(request.server.client_ip or "")

        app = WSGIApp(
            MiddlewareStack().add_middleware(whoami),
            HttpConfig(trusted_proxies=("127.0.0.1",)),
        )
        _, body = _call(app, HTTP_X_FORWARDED_FOR="198.51.100.4")
        assert body == b"198.51.100.4"


def _upload_environ(filename: str = "a.txt") -> dict[str, Any]:
    boundary = "perchtest"
    body = (
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="doc"; filename="{filename}"\r\n'
        "Content-Type: text/plain\r\n\r\n"
        "file body\r\n"
        f"--{boundary}--\r\n"
    ).encode()
    return {
        "REQUEST_METHOD": "POST",
        "CONTENT_TYPE": f"multipart/form-data; boundary={boundary}",
        "CONTENT_LENGTH": str(len(body)),
        "wsgi.input": io.BytesIO(body),
    }


class TestUploadCleanup:
    @pytest.fixture(autouse=True)
    def _spool_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
        spool = tmp_path / "spool"
        spool.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(spool))
        return spool

    def test_unmoved_upload_removed(self, tmp_path: Path) -> None:
        seen: list[str] = []

        def ignore(request: Request, next: Next) -> Response:
            upload = request.files.metadata("doc")
            assert upload is not None
            seen.append(upload.tmp_name)
            return Response("x")

        start, _ = _call(WSGIApp(MiddlewareStack().add_middleware(ignore)), **_upload_environ())
        assert start.status == "200 OK"
        assert len(seen) == 1
        assert not Path(seen[0]).exists()
        assert list((tmp_path / "spool").iterdir()) == []

    def test_rejected_upload_removed(self, tmp_path: Path) -> None:
        def store(request: Request, next: Next) -> Response:
            moved = request.files.move("doc", tmp_path / "dest")
            return Response(str(moved))

        _, body = _call(
            WSGIApp(MiddlewareStack().add_middleware(store)), **_upload_environ("a.exe")
        )
        assert body == b"False"
        assert list((tmp_path / "spool").iterdir()) == []

    def test_upload_removed_when_handler_fails(self, tmp_path: Path) -> None:
        def crash(request: Request, next: Next) -> Response:
            raise RuntimeError("boom")

        start, _ = _call(WSGIApp(MiddlewareStack().add_middleware(crash)), **_upload_environ())
        assert start.status == "500 Internal Server Error"
        assert list((tmp_path / "spool").iterdir()) == []

    def test_moved_upload_kept(self, tmp_path: Path) -> None:
        def store(request: Request, next: Next) -> Response:
            request.files.move("doc", tmp_path / "dest")
            return Response("stored")

        _call(WSGIApp(MiddlewareStack().add_middleware(store)), **_upload_environ())
        assert (tmp_path / "dest" / "a.txt").read_bytes() == b"file body"
        assert list((tmp_path / "spool").iterdir()) == []
