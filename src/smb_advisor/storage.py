# SMB Advisor - Financial ratios & recommendations for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Object store for uploaded documents.

Files are stored on the local filesystem under ``<root>/<bucket>/`` with a
generated path ``<user_id>/<timestamp_ms>_<safe_filename>``. The generated
path is what the extraction adapter receives.
"""

import logging
import re
import time
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class StorageError(Exception):
    """Raised when a file cannot be stored or retrieved."""


def _safe_filename(filename: str) -> str:
    name = PurePosixPath(filename.replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "document"


class ObjectStore:
    """Local directory-backed object store with one bucket."""

    def __init__(self, root: Path, bucket: str = "documents") -> None:
        self.root = Path(root)
        self.bucket = bucket

    @property
    def bucket_dir(self) -> Path:
        return self.root / self.bucket

    def _resolve(self, path: str) -> Path:
        base = self.bucket_dir.resolve()
        target = (base / path).resolve()
        if base not in target.parents:
            raise StorageError(f"Invalid object path: {path!r}")
        return target

    def upload(self, user_id: str, filename: str, content: bytes) -> str:
        """
        Store ``content`` and return its generated object path.

        Raises:
            StorageError: if the file cannot be written.
        """
        object_path = f"{user_id}/{int(time.time() * 1000)}_{_safe_filename(filename)}"
        target = self._resolve(object_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as exc:
            raise StorageError(f"Failed to store {filename!r}") from exc

        logger.info("Stored %d bytes at %s/%s", len(content), self.bucket, object_path)
        return object_path

    def download(self, path: str) -> bytes:
        """
        Return the content stored at ``path``.

        Raises:
            StorageError: if the object does not exist or cannot be read.
        """
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except OSError as exc:
            raise StorageError(f"Failed to download {path!r}") from exc

    def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).is_file()
        except StorageError:
            return False
