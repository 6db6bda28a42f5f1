"""HTTP layer configuration.

HttpConfig is a frozen dataclass: immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass

DEFAULT_UPLOAD_EXTENSIONS = frozenset({"jpg", "png", "gif", "pdf", "txt", "zip"})


@dataclass(frozen=True, slots=True)
class HttpConfig:
    """Configuration shared by requests, the middleware stack and the translator.

    All fields have secure defaults. Override what you need::

        config = HttpConfig(trusted_proxies=("10.0.0.1",), session_secret_key="s3cr3t")
    """

    debug: bool = False

    # Client IP resolution. Only these peers may supply X-Forwarded-For.
    trusted_proxies: tuple[str, ...] = ()

    # Uploads
    upload_extensions: frozenset[str] = DEFAULT_UPLOAD_EXTENSIONS
    upload_max_size: int = 5 * 1024 * 1024  # 5 MiB

    # Terminal response when no middleware produces one
    unhandled_body: str = "No middleware processed the request"
    unhandled_status: int = 404

    # Sessions
    session_secret_key: str = ""
    session_cookie_name: str = "perch_session"
    session_max_age: int = 86400  # 24 hours
