"""
DashDocs Operation Context — per-operation identity and cancellation.

Each engine operation runs under an OperationContext (acting user,
execution id, operation name) stored in a ContextVar so collaborators can
tag their log lines, and honours a CancellationToken supplied by the caller.

Usage:
    token = CancellationToken()
    service.upload_document(user_id, request, stream, ..., cancel=token)
    token.cancel()   # from another thread
"""

from __future__ import annotations

import threading
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, Optional

from dashdocs.engine.errors import OperationCancelledError

current_operation_context: ContextVar[Optional["OperationContext"]] = ContextVar(
    "operation_context", default=None
)


class CancellationToken:
    """
    Thread-safe cancellation flag.

    The engine calls raise_if_cancelled() before every store, File Store and
    Scan Queue call, and before committing.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def raise_if_cancelled(self, **context: Any) -> None:
        if self._event.is_set():
            raise OperationCancelledError(
                self._reason or "Operation cancelled",
                **context,
            )


@dataclass
class OperationContext:
    """Identity of the engine operation currently executing."""

    user_id: int
    operation: str
    execution_id: str = field(default_factory=lambda: f"exec_{uuid.uuid4().hex[:12]}")
    cancel: CancellationToken = field(default_factory=CancellationToken)
    document_id: Optional[int] = None

    def checkpoint(self) -> None:
        """Abort if the caller has cancelled."""
        self.cancel.raise_if_cancelled(
            operation=self.operation,
            user_id=self.user_id,
            document_id=self.document_id,
            execution_id=self.execution_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "operation": self.operation,
            "execution_id": self.execution_id,
            "document_id": self.document_id,
            "cancelled": self.cancel.cancelled,
        }


def get_operation_context() -> Optional[OperationContext]:
    """Get the operation context of the current thread/task, if any."""
    return current_operation_context.get()


def execution_tag() -> str:
    """Log line prefix naming the current execution; empty outside an operation."""
    ctx = get_operation_context()
    return f"[{ctx.execution_id}] " if ctx is not None else ""


@contextmanager
def operation_scope(
    user_id: int,
    operation: str,
    cancel: Optional[CancellationToken] = None,
    document_id: Optional[int] = None,
) -> Generator[OperationContext, None, None]:
    """Set an OperationContext for the duration of one engine call."""
    ctx = OperationContext(
        user_id=user_id,
        operation=operation,
        cancel=cancel if cancel is not None else CancellationToken(),
        document_id=document_id,
    )
    reset_token = current_operation_context.set(ctx)
    try:
        yield ctx
    finally:
        current_operation_context.reset(reset_token)
