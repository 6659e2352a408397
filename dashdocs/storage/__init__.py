"""File Store port and adapters."""

from dashdocs.storage.base import FileStore
from dashdocs.storage.local import LocalFileStore

__all__ = ["FileStore", "LocalFileStore"]
