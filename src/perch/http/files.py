"""Uploaded file descriptors, validation and relocation.

The host's upload mechanism (or ``Request.from_wsgi``) leaves each file
in a temporary location and describes it with an ``UploadedFile``. The
``FileBag`` decides whether a file is acceptable and moves it to its
final directory.

Path safety: the destination name is the basename of the client-declared
filename. Directory components are stripped and nothing else is
sanitized. Callers that need stricter names must rename before moving.
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Any

from perch.config import DEFAULT_UPLOAD_EXTENSIONS
from perch.errors import StorageError
from perch.http.parameters import ParameterBag

logger = logging.getLogger("perch.files")


class UploadError(IntEnum):
    """Transfer status of an uploaded file. Values follow the CGI upload codes."""

    OK = 0
    INI_SIZE = 1
    FORM_SIZE = 2
    PARTIAL = 3
    NO_FILE = 4
    NO_TMP_DIR = 6
    CANT_WRITE = 7
    EXTENSION = 8


@dataclass(frozen=True, slots=True)
class UploadedFile:
    """Descriptor of one uploaded file, as declared by the client."""

    name: str
    size: int
    tmp_name: str
    error: int = UploadError.OK
    content_type: str = "application/octet-stream"

    @property
    def basename(self) -> str:
        """Client filename without any directory components (``/`` or ``\\``)."""
        return PurePosixPath(PureWindowsPath(self.name).name).name

    @property
    def extension(self) -> str:
        """Lowercase extension without the dot, ``""`` if none."""
        suffix = PurePosixPath(self.basename).suffix
        return suffix[1:].lower()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> UploadedFile:
        """Build a descriptor from the raw ``{name, size, tmp_name, error, type}`` form."""
        return cls(
            name=str(data.get("name", "")),
            size=int(data.get("size", 0)),
            tmp_name=str(data.get("tmp_name", "")),
            error=int(data.get("error", UploadError.NO_FILE)),
            content_type=str(data.get("type", "application/octet-stream")),
        )


class FileBag(ParameterBag):
    """Uploaded files by form field name.

    Values may be ``UploadedFile`` instances or their raw mapping form.
    Validity is never stored; ``is_valid`` recomputes it from the current
    descriptor on every call::

        if request.files.is_valid("avatar"):
            request.files.move("avatar", "/srv/uploads")
    """

    __slots__ = ("allowed_extensions", "max_size")

    def __init__(
        self,
        parameters: Mapping[str, Any] | None = None,
        *,
        allowed_extensions: frozenset[str] = DEFAULT_UPLOAD_EXTENSIONS,
        max_size: int = 5 * 1024 * 1024,
    ) -> None:
        super().__init__(parameters)
        self.allowed_extensions = allowed_extensions
        self.max_size = max_size

    def metadata(self, key: str) -> UploadedFile | None:
        """Return the descriptor for *key*, or ``None`` if no such upload."""
        value = self.get(key)
        if isinstance(value, UploadedFile):
            return value
        if isinstance(value, Mapping):
            try:
                return UploadedFile.from_mapping(value)
            except (TypeError, ValueError):
                logger.debug("Ignoring malformed upload descriptor for %r", key)
                return None
        return None

    def is_valid(self, key: str) -> bool:
        """True if the upload exists, has an allowed extension and size, and arrived intact."""
        upload = self.metadata(key)
        if upload is None:
            return False
        return (
            upload.extension in self.allowed_extensions
            and upload.size <= self.max_size
            and upload.error == UploadError.OK
        )

    def move(self, key: str, target_dir: str | os.PathLike[str]) -> bool:
        """Move a valid upload into *target_dir*, keeping its basename.

        Returns ``False`` without touching the filesystem if the upload is
        not valid. Creates *target_dir* (with parents) when missing.

        Raises:
            StorageError: If the directory cannot be created or written,
                the temporary file is gone, or the move itself fails.
        """
        upload = self.metadata(key)
        if upload is None or not self.is_valid(key):
            return False

        target = Path(target_dir)
        destination = target / upload.basename

        if not target.is_dir():
            try:
                target.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                msg = f"Cannot create or write to directory: {target}"
                raise StorageError(msg, str(target)) from exc

        if not os.access(target, os.W_OK):
            msg = f"Target directory is not writable: {target}"
            raise StorageError(msg, str(target))

        if not Path(upload.tmp_name).is_file():
            msg = f"Temporary file does not exist: {upload.tmp_name}"
            raise StorageError(msg, upload.tmp_name)

        try:
            _relocate(Path(upload.tmp_name), destination)
        except OSError as exc:
            msg = f"Failed to move uploaded file to: {destination}"
            raise StorageError(msg, str(destination)) from exc

        logger.info("Moved upload %r to %s", key, destination)
        return True

    def cleanup(self) -> None:
        """Delete the temporary files of uploads that were never moved.

        Called by the host at the end of a request. Moved uploads are
        already gone from their temporary location and are skipped.
        """
        discard_temporary(
            upload for key in self if (upload := self.metadata(key)) is not None
        )


def _relocate(source: Path, destination: Path) -> None:
    """Atomic rename; copy-then-unlink when crossing filesystems."""
    try:
        os.replace(source, destination)
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise
        shutil.move(source, destination)


def discard_temporary(uploads: Iterable[UploadedFile]) -> None:
    """Unlink the temporary file behind each upload, if it still exists."""
    for upload in uploads:
        if not upload.tmp_name:
            continue
        try:
            Path(upload.tmp_name).unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove temporary upload %s", upload.tmp_name, exc_info=True)
