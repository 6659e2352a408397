"""
DashDocs Error Hierarchy — Structured exceptions for the document engine.

Every error carries the acting user, the document and the operation it
belongs to, and serialises to JSON for the structured log files.

Hierarchy:
    DashDocsError
    ├── DocumentValidationError        — Caller-fixable input problem
    │   └── PreviewNotSupportedError   — Content type cannot be previewed
    ├── DocumentAuthorizationError     — Visible, but the action is not permitted
    ├── DocumentNotFoundError          — Absent, tombstoned or not visible
    │   └── StoredContentMissingError  — File Store has no bytes at the path
    ├── ScanGateError                  — Content not releasable yet
    │   ├── ScanNotReadyError          — Scan still pending
    │   └── ScanRejectedError          — Scanner rejected the content
    ├── DependencyUnavailableError     — File Store / Scan Queue / DB unreachable
    ├── ConcurrencyConflictError       — Row changed underneath the operation
    ├── OperationCancelledError        — Caller cancelled the operation
    └── ConfigError                    — Invalid dashdocs.yaml
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class DashDocsError(Exception):
    """
    Base error for all DashDocs engine failures.
    All context is kept serialisable so it can be written to log files.
    """

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.execution_id: Optional[str] = context.get("execution_id")
        self.operation: Optional[str] = context.get("operation")
        self.document_id: Optional[int] = context.get("document_id")
        self.user_id: Optional[int] = context.get("user_id")
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to JSON-compatible dict for logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "execution_id": self.execution_id,
            "operation": self.operation,
            "document_id": self.document_id,
            "user_id": self.user_id,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k not in ("execution_id", "operation", "document_id", "user_id")
            },
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.operation:
            parts.append(f"operation={self.operation}")
        if self.document_id is not None:
            parts.append(f"document_id={self.document_id}")
        return " | ".join(parts)


class DocumentValidationError(DashDocsError):
    """
    Input validation failed (title, category, extension, size, tags).
    Never retried; the caller has to fix the request.
    """

    def __init__(self, message: str, **context: Any):
        self.field: Optional[str] = context.get("field")
        self.validation_errors: Optional[List[str]] = context.get("validation_errors")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["field"] = self.field
        d["validation_errors"] = self.validation_errors
        return d


class PreviewNotSupportedError(DocumentValidationError):
    """The document's content type is not in the previewable set."""

    def __init__(self, message: str, **context: Any):
        self.content_type: Optional[str] = context.get("content_type")
        super().__init__(message, **context)


class DocumentAuthorizationError(DashDocsError):
    """
    Resolved access is insufficient (manage rights or project access).
    Only raised once the caller is known to be allowed to see the document,
    so it never reveals the existence of a hidden document.
    """

    def __init__(self, message: str, **context: Any):
        self.required_permission: Optional[str] = context.get("required_permission")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["required_permission"] = self.required_permission
        return d


class DocumentNotFoundError(DashDocsError):
    """Document is absent, soft-deleted, or not visible to the caller."""
    pass


class StoredContentMissingError(DocumentNotFoundError):
    """The File Store has nothing at the requested path."""

    def __init__(self, message: str, **context: Any):
        self.file_path: Optional[str] = context.get("file_path")
        super().__init__(message, **context)


class ScanGateError(DashDocsError):
    """Content exists but has not been released by the malware scanner."""

    def __init__(self, message: str, **context: Any):
        self.scan_status: Optional[str] = context.get("scan_status")
        super().__init__(message, **context)


class ScanNotReadyError(ScanGateError):
    """Scan is still pending."""
    pass


class ScanRejectedError(ScanGateError):
    """The scanner rejected the content."""
    pass


class DependencyUnavailableError(DashDocsError):
    """
    An external collaborator (File Store, Scan Queue, database) failed.
    Fatal to the current operation; the caller may retry the whole request.
    """

    def __init__(self, message: str, **context: Any):
        self.dependency: Optional[str] = context.get("dependency")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["dependency"] = self.dependency
        return d


class ConcurrencyConflictError(DashDocsError):
    """The document row was modified by a concurrent operation."""
    pass


class OperationCancelledError(DashDocsError):
    """The caller cancelled the operation; nothing was committed."""
    pass


class ConfigError(DashDocsError):
    """Configuration error — invalid dashdocs.yaml."""
    pass
