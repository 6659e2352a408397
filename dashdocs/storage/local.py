"""
Local filesystem File Store.

Layout under the configured root:
    {owner_id}/{project_id | "personal"}/{uuid4 hex}{extension}

The returned path is relative and always uses forward slashes.
"""

from __future__ import annotations

import hashlib
import logging
import os
import uuid
from pathlib import Path
from typing import BinaryIO, Optional

from dashdocs.engine.errors import DependencyUnavailableError, StoredContentMissingError
from dashdocs.storage.base import FileStore

logger = logging.getLogger("dashdocs.storage.local")

CHUNK_SIZE = 8192


class LocalFileStore(FileStore):
    """File Store backed by a directory on local disk."""

    def __init__(self, root_path: str):
        self._root = Path(root_path).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def _full_path(self, path: str) -> Path:
        full = (self._root / path).resolve()
        if self._root not in full.parents:
            raise StoredContentMissingError(
                "Document content not found.",
                file_path=path,
            )
        return full

    def put(
        self,
        stream: BinaryIO,
        file_name: str,
        content_type: str,
        owner_id: int,
        project_id: Optional[int] = None,
    ) -> str:
        project_segment = str(project_id) if project_id is not None else "personal"
        unique_name = f"{uuid.uuid4().hex}{os.path.splitext(file_name)[1].lower()}"
        relative_path = f"{owner_id}/{project_segment}/{unique_name}"
        physical_path = self._root / str(owner_id) / project_segment / unique_name

        bytes_written = 0
        file_hash = hashlib.sha256()
        try:
            physical_path.parent.mkdir(parents=True, exist_ok=True)
            with open(physical_path, "wb") as f:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    f.write(chunk)
                    file_hash.update(chunk)
                    bytes_written += len(chunk)
        except OSError as e:
            physical_path.unlink(missing_ok=True)
            raise DependencyUnavailableError(
                f"File store write failed: {e}",
                dependency="file_store",
            ) from e

        logger.info(
            f"Stored: {relative_path} ({bytes_written} bytes, "
            f"sha256={file_hash.hexdigest()[:12]}, type={content_type})"
        )
        return relative_path

    def get(self, path: str) -> BinaryIO:
        full = self._full_path(path)
        if not full.is_file():
            raise StoredContentMissingError("Document content not found.", file_path=path)
        try:
            return open(full, "rb")
        except OSError as e:
            raise DependencyUnavailableError(
                f"File store read failed: {e}",
                dependency="file_store",
                file_path=path,
            ) from e

    def delete(self, path: str) -> None:
        try:
            full = self._full_path(path)
        except StoredContentMissingError:
            return
        try:
            full.unlink(missing_ok=True)
        except OSError as e:
            raise DependencyUnavailableError(
                f"File store delete failed: {e}",
                dependency="file_store",
                file_path=path,
            ) from e
        logger.info(f"Deleted stored content: {path}")

    def is_writable(self) -> bool:
        marker = self._root / f".writable-{uuid.uuid4().hex}"
        try:
            marker.write_bytes(b"")
            marker.unlink()
            return True
        except OSError:
            return False

    def __repr__(self) -> str:
        return f"<LocalFileStore root='{self._root}'>"
