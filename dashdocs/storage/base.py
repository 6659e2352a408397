"""File Store port — opaque put/get/delete of document bytes.

The engine only ever sees the opaque path returned by ``put``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import BinaryIO, Optional

from dashdocs.engine.errors import StoredContentMissingError


class FileStore(ABC):
    """Contract for the physical byte store behind documents."""

    @abstractmethod
    def put(
        self,
        stream: BinaryIO,
        file_name: str,
        content_type: str,
        owner_id: int,
        project_id: Optional[int] = None,
    ) -> str:
        """
        Store the stream and return an opaque path.

        Raises:
            DependencyUnavailableError: If the store cannot be written.
        """

    @abstractmethod
    def get(self, path: str) -> BinaryIO:
        """
        Open stored content for reading. Caller closes the stream.

        Raises:
            StoredContentMissingError: If nothing is stored at ``path``.
            DependencyUnavailableError: If the store cannot be read.
        """

    @abstractmethod
    def delete(self, path: str) -> None:
        """Remove stored content. No-op if it is already gone."""

    def exists(self, path: str) -> bool:
        """Whether content is stored at ``path``."""
        try:
            self.get(path).close()
            return True
        except StoredContentMissingError:
            return False
