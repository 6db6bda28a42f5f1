"""HTTP request: one typed view per request section.

The request itself is frozen: it never swaps a view for another.
The views are mutable bags, so middleware can still normalise input
or stash per-request state in ``attributes``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from perch.config import HttpConfig
from perch.http.cookies import CookieJar, parse_cookies
from perch.http.files import FileBag
from perch.http.forms import parse_body, parse_urlencoded
from perch.http.parameters import ParameterBag
from perch.http.server import ServerBag
from perch.http.values import InputBag


@dataclass(frozen=True, slots=True)
class Request:
    """An HTTP request.

    Attributes:
        query: Query string parameters.
        body: Form body parameters.
        cookies: Request cookies; also issues ``Set-Cookie`` directives.
        files: Uploaded file descriptors.
        server: Server and environment variables, request headers included.
        attributes: Free-form per-request state for middleware (e.g. the session).
    """

    query: InputBag
    body: InputBag
    cookies: CookieJar
    files: FileBag
    server: ServerBag
    attributes: ParameterBag = field(default_factory=ParameterBag)

    @property
    def uri(self) -> str:
        """The request target, e.g. ``/search?q=perch``."""
        return self.server.request_uri

    @property
    def method(self) -> str:
        return self.server.request_method

    # -- Factories --

    @classmethod
    def create(
        cls,
        query: Mapping[str, Any] | None = None,
        body: Mapping[str, Any] | None = None,
        cookies: Mapping[str, Any] | None = None,
        files: Mapping[str, Any] | None = None,
        server: Mapping[str, Any] | None = None,
        *,
        config: HttpConfig | None = None,
    ) -> Request:
        """Build a Request from plain mappings. Never validates, never fails."""
        cfg = config or HttpConfig()
        return cls(
            query=InputBag(query),
            body=InputBag(body),
            cookies=CookieJar(cookies),
            files=FileBag(
                files,
                allowed_extensions=cfg.upload_extensions,
                max_size=cfg.upload_max_size,
            ),
            server=ServerBag(server, trusted_proxies=cfg.trusted_proxies),
        )

    @classmethod
    def from_wsgi(cls, environ: Mapping[str, Any], config: HttpConfig | None = None) -> Request:
        """Create a Request from a WSGI environ.

        String-valued environ keys become the server view. ``REQUEST_URI``
        is rebuilt from ``SCRIPT_NAME``, ``PATH_INFO`` and ``QUERY_STRING``
        when the server did not provide it.

        Raises:
            InvalidInput: If a multipart body cannot be parsed.
        """
        server = {key: value for key, value in environ.items() if isinstance(value, str)}
        query_string = server.get("QUERY_STRING", "")
        if "REQUEST_URI" not in server:
            path = quote(server.get("SCRIPT_NAME", "") + server.get("PATH_INFO", "")) or "/"
            server["REQUEST_URI"] = f"{path}?{query_string}" if query_string else path

        fields: dict[str, Any] = {}
        uploads: dict[str, Any] = {}
        stream = environ.get("wsgi.input")
        length = _content_length(server.get("CONTENT_LENGTH"))
        if stream is not None and length:
            fields, uploads = parse_body(stream.read(length), server.get("CONTENT_TYPE", ""))

        return cls.create(
            query=parse_urlencoded(query_string),
            body=fields,
            cookies=parse_cookies(server.get("HTTP_COOKIE", "")),
            files=uploads,
            server=server,
            config=config,
        )


def _content_length(value: str | None) -> int:
    if not value:
        return 0
    try:
        return max(int(value), 0)
    except ValueError:
        return 0
