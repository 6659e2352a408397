"""
DashDocs Document Service — the document lifecycle engine.

Handles:
- Upload with validation, project access check, scan enqueue and project
  notifications
- Scan-gated download and preview with audit logging
- Metadata edit, file replace, soft delete and sharing for managers
- Access-scoped lookups and listings

Every operation:
    1. runs under an OperationContext (identity, execution id, cancellation)
    2. resolves access before doing anything else with the document
    3. mutates inside one session_scope() transaction, appending exactly one
       activity row per affected document or share target
    4. triggers side effects (scan enqueue, notifications) after commit

Hidden documents are reported as DocumentNotFoundError, never as an
authorization failure, so callers cannot discover that they exist.

Stored content layout and transport are owned by the FileStore; scan jobs
by the ScanQueue; user notifications by the NotificationSink.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from datetime import datetime
from typing import BinaryIO, Callable, Dict, Generator, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session, sessionmaker

from dashdocs.db.base import utcnow
from dashdocs.db.session import session_scope
from dashdocs.documents.access import AccessResolver, can_manage, can_view
from dashdocs.documents.models import (
    ActivitySnapshot,
    ActivityType,
    ContentHandle,
    DocumentListing,
    DocumentQuery,
    DocumentShareRequest,
    DocumentSnapshot,
    DocumentUpdateMetadataRequest,
    DocumentUploadRequest,
    NotificationPriority,
    NotificationType,
    ScanJob,
    ScanStatus,
)
from dashdocs.documents.query import apply_query
from dashdocs.documents.repository import DirectoryRepository, DocumentRepository
from dashdocs.documents.validation import (
    is_allowed_category,
    normalize_tags,
    validate_category,
    validate_description,
    validate_file,
    validate_title,
)
from dashdocs.engine.config import DashDocsConfig, DocumentPolicy
from dashdocs.engine.context import CancellationToken, OperationContext, operation_scope
from dashdocs.engine.errors import (
    DashDocsError,
    DependencyUnavailableError,
    DocumentAuthorizationError,
    DocumentNotFoundError,
    DocumentValidationError,
    PreviewNotSupportedError,
    ScanNotReadyError,
    ScanRejectedError,
)
from dashdocs.engine.logging import FileLogger, log_document_operation, log_security_event
from dashdocs.integrations.notifications import HttpNotificationSink, NotificationSink
from dashdocs.integrations.scan_queue import CeleryScanQueue, ScanQueue
from dashdocs.storage.base import FileStore
from dashdocs.storage.local import LocalFileStore

logger = logging.getLogger("dashdocs.documents.service")

_Unit = Tuple[DocumentRepository, DirectoryRepository, AccessResolver]


class DocumentService:
    """
    Document lifecycle engine.

    Holds no per-request state; one instance is shared by all callers. The
    policy is passed by reference so tests can run against alternate
    allow-lists and limits.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        file_store: FileStore,
        scan_queue: ScanQueue,
        notifier: NotificationSink,
        policy: Optional[DocumentPolicy] = None,
        file_logger: Optional[FileLogger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._file_store = file_store
        self._scan_queue = scan_queue
        self._notifier = notifier
        self._policy = policy or DocumentPolicy()
        self._file_logger = file_logger
        self._clock = clock

    @classmethod
    def from_config(cls, config: DashDocsConfig, session_factory: sessionmaker) -> "DocumentService":
        """Wire the engine to the collaborators named in dashdocs.yaml."""
        file_logger = FileLogger(config.logging.directory) if config.logging.directory else None
        return cls(
            session_factory,
            LocalFileStore(config.storage.root_path),
            CeleryScanQueue.from_config(config.celery),
            HttpNotificationSink(config.notifications),
            policy=config.documents,
            file_logger=file_logger,
        )

    @property
    def policy(self) -> DocumentPolicy:
        return self._policy

    # -------------------------------------------------------------------
    # Upload
    # -------------------------------------------------------------------

    def upload_document(
        self,
        user_id: int,
        request: DocumentUploadRequest,
        stream: BinaryIO,
        file_name: str,
        content_type: str,
        file_size: int,
        cancel: Optional[CancellationToken] = None,
    ) -> DocumentSnapshot:
        """
        Validate, store and register a new document, then hand it to the
        scanner. The document stays Pending (not downloadable) until the
        scanning worker writes back Clean.

        Raises:
            DocumentValidationError: bad title/description/category/file/tags
            DocumentAuthorizationError: no access to the target project
            DependencyUnavailableError: File Store or Scan Queue failure
            OperationCancelledError: cancelled before the scan job was queued
        """
        with self._operation(user_id, "upload_document", cancel) as ctx:
            policy = self._policy
            title = validate_title(policy, request.title)
            description = validate_description(policy, request.description)
            category = validate_category(policy, request.category)
            validate_file(policy, file_name, file_size)
            tags = normalize_tags(policy, request.tags)

            stored_path: Optional[str] = None
            try:
                with self._unit_of_work() as (documents, directory, access):
                    project = None
                    if request.project_id is not None:
                        ctx.checkpoint()
                        if not access.can_access_project(request.project_id, user_id):
                            self._deny(ctx, "project_access_denied", project_id=request.project_id)
                            raise DocumentAuthorizationError(
                                "You do not have access to the selected project.",
                                required_permission="project_access",
                                project_id=request.project_id,
                            )
                        project = directory.get_project(request.project_id)

                    ctx.checkpoint()
                    stored_path = self._file_store.put(
                        stream, file_name, content_type, user_id, request.project_id,
                    )

                    ctx.checkpoint()
                    now = self._clock()
                    document = documents.add_document(
                        title=title,
                        description=description,
                        category=category,
                        file_name=file_name,
                        file_path=stored_path,
                        file_type=content_type,
                        file_size_bytes=file_size,
                        uploaded_by_user_id=user_id,
                        project_id=request.project_id,
                        task_id=request.task_id,
                        uploaded_at=now,
                        updated_at=now,
                        scan_status=ScanStatus.PENDING.value,
                        scan_requested_at=now,
                    )
                    ctx.document_id = document.id
                    documents.replace_tags(document.id, tags)
                    documents.add_activity(
                        document.id,
                        user_id,
                        ActivityType.UPLOAD,
                        metadata={"category": category, "project_id": request.project_id},
                        occurred_at=now,
                    )
                    ctx.checkpoint()
            except Exception:
                if stored_path is not None:
                    self._discard_content(stored_path)
                raise

            try:
                ctx.checkpoint()
                self._scan_queue.enqueue(self._scan_job(document))
            except Exception:
                self._compensate_upload(document.id, stored_path)
                raise

            logger.info(
                f"Uploaded document {document.id} '{title}' "
                f"({file_size} bytes) by user {user_id}"
            )

            if project is not None:
                self._notify_many(
                    sorted(project.member_ids - {user_id}),
                    "New Project Document",
                    f"A new document '{title}' was added to your project.",
                    NotificationType.PROJECT_UPDATE,
                    NotificationPriority.INFORMATIONAL,
                )

            return document

    def _compensate_upload(self, document_id: int, stored_path: str) -> None:
        """Remove a committed upload whose scan job could not be queued."""
        with session_scope(self._session_factory) as session:
            DocumentRepository(session).discard_unreleased(document_id)
        self._discard_content(stored_path)
        logger.warning(f"Rolled back upload of document {document_id}: scan job not queued")

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------

    def get_document_by_id(
        self,
        document_id: int,
        user_id: int,
        cancel: Optional[CancellationToken] = None,
    ) -> Optional[DocumentListing]:
        """The document with its tags and names, or None if absent or not viewable."""
        with self._operation(user_id, "get_document_by_id", cancel, document_id) as ctx:
            ctx.checkpoint()
            with self._unit_of_work() as (documents, directory, access):
                document = documents.get_active(document_id)
                if document is None or not access.can_view(document, user_id):
                    return None
                return self._listings(documents, directory, [document])[0]

    def get_documents(
        self,
        user_id: int,
        query: Optional[DocumentQuery] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> List[DocumentListing]:
        """All documents the user may view, filtered and sorted by ``query``."""
        with self._operation(user_id, "get_documents", cancel) as ctx:
            ctx.checkpoint()
            with self._unit_of_work() as (documents, directory, access):
                scope = access.view_scope(user_id)
                if scope.is_administrator:
                    candidates = documents.list_active()
                else:
                    candidates = documents.list_active(
                        uploaded_by=user_id,
                        any_of_ids=scope.shared_document_ids,
                        any_of_projects=scope.project_ids,
                    )
                visible = [d for d in candidates if scope.includes(d)]
                listings = self._listings(documents, directory, visible)
            return apply_query(listings, query, limit=self._policy.list_limit)

    def get_project_documents(
        self,
        project_id: int,
        user_id: int,
        cancel: Optional[CancellationToken] = None,
    ) -> List[DocumentListing]:
        """Documents of one project, newest first. Empty without project access."""
        with self._operation(user_id, "get_project_documents", cancel) as ctx:
            ctx.checkpoint()
            with self._unit_of_work() as (documents, directory, access):
                if not access.can_access_project(project_id, user_id):
                    return []
                found = documents.list_active(
                    project_id=project_id,
                    newest_first=True,
                    limit=self._policy.list_limit,
                )
                return self._listings(documents, directory, found)

    def get_shared_with_me(
        self,
        user_id: int,
        cancel: Optional[CancellationToken] = None,
    ) -> List[DocumentListing]:
        with self._operation(user_id, "get_shared_with_me", cancel) as ctx:
            ctx.checkpoint()
            with self._unit_of_work() as (documents, directory, _):
                found = documents.list_active(
                    any_of_ids=documents.document_ids_shared_with(user_id),
                    newest_first=True,
                    limit=self._policy.list_limit,
                )
                return self._listings(documents, directory, found)

    def get_recent_user_documents(
        self,
        user_id: int,
        top: int = 5,
        cancel: Optional[CancellationToken] = None,
    ) -> List[DocumentListing]:
        """The user's own most recent uploads (dashboard widget)."""
        with self._operation(user_id, "get_recent_user_documents", cancel) as ctx:
            ctx.checkpoint()
            with self._unit_of_work() as (documents, directory, _):
                found = documents.list_active(
                    uploaded_by=user_id,
                    newest_first=True,
                    limit=max(top, 0),
                )
                return self._listings(documents, directory, found)

    def get_user_document_count(
        self,
        user_id: int,
        cancel: Optional[CancellationToken] = None,
    ) -> int:
        with self._operation(user_id, "get_user_document_count", cancel) as ctx:
            ctx.checkpoint()
            with self._unit_of_work() as (documents, _, _):
                return documents.count_active(user_id)

    def get_document_activity(
        self,
        document_id: int,
        user_id: int,
        cancel: Optional[CancellationToken] = None,
    ) -> List[ActivitySnapshot]:
        """Audit trail of a document, oldest first. Managers only."""
        with self._operation(user_id, "get_document_activity", cancel, document_id) as ctx:
            ctx.checkpoint()
            with self._unit_of_work() as unit:
                document = self._load_manageable(unit, ctx)
                return unit[0].list_activities(document.id)

    # -------------------------------------------------------------------
    # Content (scan gated)
    # -------------------------------------------------------------------

    def download_document(
        self,
        document_id: int,
        user_id: int,
        cancel: Optional[CancellationToken] = None,
    ) -> ContentHandle:
        """Open the stored content of a Clean document. The caller closes the handle."""
        return self._fetch_content(document_id, user_id, ActivityType.DOWNLOAD, cancel)

    def preview_document(
        self,
        document_id: int,
        user_id: int,
        cancel: Optional[CancellationToken] = None,
    ) -> ContentHandle:
        """Like download, but only for previewable content types (PDF, JPEG, PNG)."""
        return self._fetch_content(document_id, user_id, ActivityType.PREVIEW, cancel)

    def _fetch_content(
        self,
        document_id: int,
        user_id: int,
        activity_type: ActivityType,
        cancel: Optional[CancellationToken],
    ) -> ContentHandle:
        operation = f"{activity_type.value.lower()}_document"
        with self._operation(user_id, operation, cancel, document_id) as ctx:
            ctx.checkpoint()
            stream: Optional[BinaryIO] = None
            try:
                with self._unit_of_work() as unit:
                    documents = unit[0]
                    document = self._load_viewable(unit, ctx)
                    self._require_clean(document)

                    if activity_type == ActivityType.PREVIEW:
                        content_type = (document.file_type or "").lower()
                        if content_type not in self._policy.preview_mime_types:
                            raise PreviewNotSupportedError(
                                "Preview not supported for this file type.",
                                content_type=document.file_type,
                            )

                    ctx.checkpoint()
                    stream = self._file_store.get(document.file_path)
                    documents.add_activity(document.id, user_id, activity_type)
                    ctx.checkpoint()
            except Exception:
                if stream is not None:
                    stream.close()
                raise

            return ContentHandle(stream, document.file_type, document.file_name)

    def _require_clean(self, document: DocumentSnapshot) -> None:
        if document.scan_status == ScanStatus.PENDING:
            raise ScanNotReadyError(
                "Document is still being scanned. Please try again shortly.",
                scan_status=document.scan_status.value,
            )
        if document.scan_status == ScanStatus.REJECTED:
            raise ScanRejectedError(
                "Document failed the malware scan and cannot be downloaded.",
                scan_status=document.scan_status.value,
                reason=document.scan_failure_reason,
            )

    # -------------------------------------------------------------------
    # Management
    # -------------------------------------------------------------------

    def update_metadata(
        self,
        document_id: int,
        user_id: int,
        request: DocumentUpdateMetadataRequest,
        cancel: Optional[CancellationToken] = None,
    ) -> DocumentSnapshot:
        """
        Apply a partial metadata update.

        Only fields present in the request are considered:
            title        blank leaves the title unchanged
            description  replaces (trimmed); None clears
            category     applied only if allowed, otherwise ignored
            tags         replace the whole tag set; [] clears
        """
        with self._operation(user_id, "update_metadata", cancel, document_id) as ctx:
            ctx.checkpoint()
            supplied = request.model_fields_set
            with self._unit_of_work() as unit:
                documents = unit[0]
                document = self._load_manageable(unit, ctx)

                changes: Dict[str, object] = {}
                if "title" in supplied and request.title is not None and request.title.strip():
                    changes["title"] = validate_title(self._policy, request.title)
                if "description" in supplied:
                    changes["description"] = validate_description(self._policy, request.description)
                if "category" in supplied and is_allowed_category(self._policy, request.category):
                    changes["category"] = request.category
                tags = None
                if "tags" in supplied and request.tags is not None:
                    tags = normalize_tags(self._policy, request.tags)

                ctx.checkpoint()
                now = self._clock()
                updated = documents.update_document(
                    document.id,
                    document.row_version,
                    updated_at=now,
                    **changes,
                )
                if tags is not None:
                    documents.replace_tags(document.id, tags)

                edited = sorted(changes) + (["tags"] if tags is not None else [])
                documents.add_activity(
                    document.id,
                    user_id,
                    ActivityType.METADATA_EDIT,
                    metadata={"fields": edited} if edited else None,
                    occurred_at=now,
                )
                ctx.checkpoint()

            logger.info(f"Updated metadata of document {document_id} by user {user_id}: {edited}")
            return updated

    def replace_file(
        self,
        document_id: int,
        user_id: int,
        stream: BinaryIO,
        file_name: str,
        content_type: str,
        file_size: int,
        cancel: Optional[CancellationToken] = None,
    ) -> DocumentSnapshot:
        """
        Swap the stored content of a document and send it back through the
        scanner. The document is Pending again until the new verdict lands.
        """
        with self._operation(user_id, "replace_file", cancel, document_id) as ctx:
            ctx.checkpoint()
            new_path: Optional[str] = None
            try:
                with self._unit_of_work() as unit:
                    documents = unit[0]
                    document = self._load_manageable(unit, ctx)
                    validate_file(self._policy, file_name, file_size)

                    ctx.checkpoint()
                    new_path = self._file_store.put(
                        stream, file_name, content_type, user_id, document.project_id,
                    )

                    ctx.checkpoint()
                    now = self._clock()
                    updated = documents.update_document(
                        document.id,
                        document.row_version,
                        file_name=file_name,
                        file_path=new_path,
                        file_type=content_type,
                        file_size_bytes=file_size,
                        scan_status=ScanStatus.PENDING.value,
                        scan_requested_at=now,
                        scan_completed_at=None,
                        scan_failure_reason=None,
                        updated_at=now,
                    )
                    activity_id = documents.add_activity(
                        document.id,
                        user_id,
                        ActivityType.REPLACE,
                        metadata={"file_name": file_name, "file_size_bytes": file_size},
                        occurred_at=now,
                    )
                    ctx.checkpoint()
            except Exception:
                if new_path is not None:
                    self._discard_content(new_path)
                raise

            try:
                ctx.checkpoint()
                self._scan_queue.enqueue(self._scan_job(updated))
            except Exception:
                self._compensate_replace(document, updated, activity_id)
                raise

            # Old bytes go only once the new content is on its way to the scanner.
            self._discard_content(document.file_path)

            logger.info(f"Replaced content of document {document_id} by user {user_id}")
            return updated

    def _compensate_replace(
        self,
        previous: DocumentSnapshot,
        replaced: DocumentSnapshot,
        activity_id: int,
    ) -> None:
        """Put back the content a committed replace swapped out when its scan job was not queued."""
        try:
            with session_scope(self._session_factory) as session:
                DocumentRepository(session).restore_content(previous, replaced.row_version, activity_id)
        except DashDocsError as e:
            # The row still points at the new content; keep it for a later scan.
            logger.error(f"Could not roll back replace of document {previous.id}: {e}")
            return
        self._discard_content(replaced.file_path)
        logger.warning(f"Rolled back replace of document {previous.id}: scan job not queued")

    def delete_document(
        self,
        document_id: int,
        user_id: int,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        """Soft-delete a document. A second delete raises DocumentNotFoundError."""
        with self._operation(user_id, "delete_document", cancel, document_id) as ctx:
            ctx.checkpoint()
            with self._unit_of_work() as unit:
                documents = unit[0]
                document = self._load_manageable(unit, ctx)

                ctx.checkpoint()
                now = self._clock()
                documents.update_document(
                    document.id,
                    document.row_version,
                    is_deleted=True,
                    deleted_at=now,
                    deleted_by=user_id,
                    updated_at=now,
                )
                documents.add_activity(document.id, user_id, ActivityType.DELETE, occurred_at=now)
                ctx.checkpoint()

            self._discard_content(document.file_path)
            logger.info(f"Deleted document {document_id} by user {user_id}")

    def share_document(
        self,
        document_id: int,
        user_id: int,
        request: DocumentShareRequest,
        cancel: Optional[CancellationToken] = None,
    ) -> List[int]:
        """
        Grant read access to the requested users. Additive only.

        Returns the de-duplicated target ids (the actor excluded). Every
        target gets a Share activity and a notification on every call, even
        when a share row already existed.
        """
        with self._operation(user_id, "share_document", cancel, document_id) as ctx:
            ctx.checkpoint()
            targets = list(dict.fromkeys(uid for uid in request.user_ids if uid != user_id))

            with self._unit_of_work() as unit:
                documents, directory, _ = unit
                document = self._load_manageable(unit, ctx)

                unknown = sorted(set(targets) - directory.existing_user_ids(targets))
                if unknown:
                    raise DocumentValidationError(
                        "One or more users could not be found.",
                        field="user_ids",
                        unknown_user_ids=unknown,
                    )

                for target_id in targets:
                    ctx.checkpoint()
                    if not documents.share_exists(document.id, target_id):
                        documents.add_share(document.id, target_id, user_id)
                    documents.add_activity(
                        document.id,
                        user_id,
                        ActivityType.SHARE,
                        target_user_id=target_id,
                    )
                ctx.checkpoint()

            if targets:
                logger.info(f"Shared document {document_id} with users {targets}")
            self._notify_many(
                targets,
                "Document Shared",
                f"{document.title} was shared with you.",
                NotificationType.PROJECT_UPDATE,
                NotificationPriority.IMPORTANT,
            )
            return targets

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------

    @contextmanager
    def _unit_of_work(self) -> Generator[_Unit, None, None]:
        with session_scope(self._session_factory) as session:
            yield self._repositories(session)

    @staticmethod
    def _repositories(session: Session) -> _Unit:
        documents = DocumentRepository(session)
        directory = DirectoryRepository(session)
        return documents, directory, AccessResolver(documents, directory)

    def _load_viewable(self, unit: _Unit, ctx: OperationContext) -> DocumentSnapshot:
        documents, _, access = unit
        document = documents.get_active(ctx.document_id)
        if document is None:
            raise DocumentNotFoundError("Document not found.")
        if not access.can_view(document, ctx.user_id):
            self._deny(ctx, "hidden_document_access", reason="not viewable")
            raise DocumentNotFoundError("Document not found.")
        return document

    def _load_manageable(self, unit: _Unit, ctx: OperationContext) -> DocumentSnapshot:
        documents, _, access = unit
        document = documents.get_active(ctx.document_id)
        if document is None:
            raise DocumentNotFoundError("Document not found.")
        facts = access.facts_for(document, ctx.user_id)
        if not can_view(document, facts):
            self._deny(ctx, "hidden_document_access", reason="not viewable")
            raise DocumentNotFoundError("Document not found.")
        if not can_manage(document, facts):
            self._deny(ctx, "manage_denied", project_id=document.project_id, reason="view only")
            raise DocumentAuthorizationError(
                "You do not have permission to modify this document.",
                required_permission="manage",
            )
        return document

    def _listings(
        self,
        documents: DocumentRepository,
        directory: DirectoryRepository,
        found: List[DocumentSnapshot],
    ) -> List[DocumentListing]:
        ids = [d.id for d in found]
        tags = documents.tags_for(ids)
        names = directory.display_names(d.uploaded_by_user_id for d in found)
        projects = directory.projects(d.project_id for d in found)
        listings = []
        for d in found:
            project = projects.get(d.project_id) if d.project_id is not None else None
            listings.append(DocumentListing(
                document=d,
                tags=tags.get(d.id, []),
                uploader_name=names.get(d.uploaded_by_user_id, ""),
                project_name=project.name if project else None,
            ))
        return listings

    @staticmethod
    def _scan_job(document: DocumentSnapshot) -> ScanJob:
        return ScanJob(
            document_id=document.id,
            file_path=document.file_path,
            file_type=document.file_type,
            uploaded_by_user_id=document.uploaded_by_user_id,
            project_id=document.project_id,
        )

    def _discard_content(self, path: str) -> None:
        """Best-effort removal of stored bytes the store no longer references."""
        try:
            self._file_store.delete(path)
        except DependencyUnavailableError as e:
            logger.error(f"Could not remove stored content '{path}': {e}")

    def _notify_many(
        self,
        user_ids: Iterable[int],
        title: str,
        message: str,
        notification_type: NotificationType,
        priority: NotificationPriority,
    ) -> None:
        for target_id in user_ids:
            try:
                self._notifier.notify(target_id, title, message, notification_type, priority)
            except Exception as e:
                logger.warning(f"Notification '{title}' to user {target_id} failed: {e}")

    def _deny(
        self,
        ctx: OperationContext,
        event: str,
        project_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        logger.warning(
            f"{event}: user {ctx.user_id} {ctx.operation} "
            f"document={ctx.document_id} project={project_id}"
        )
        if self._file_logger is not None:
            self._file_logger.write(log_security_event(
                event,
                ctx.user_id,
                ctx.operation,
                document_id=ctx.document_id,
                project_id=project_id,
                execution_id=ctx.execution_id,
                reason=reason,
            ))

    @contextmanager
    def _operation(
        self,
        user_id: int,
        operation: str,
        cancel: Optional[CancellationToken],
        document_id: Optional[int] = None,
    ) -> Generator[OperationContext, None, None]:
        """Run one engine call under an OperationContext and record its outcome."""
        start = time.monotonic()
        with operation_scope(user_id, operation, cancel, document_id) as ctx:
            try:
                yield ctx
            except DashDocsError as e:
                e.execution_id = e.execution_id or ctx.execution_id
                e.operation = e.operation or ctx.operation
                e.user_id = e.user_id if e.user_id is not None else ctx.user_id
                if e.document_id is None:
                    e.document_id = ctx.document_id
                self._record(ctx, False, start, e.to_dict())
                raise
            except Exception as e:
                self._record(ctx, False, start, {"error_type": type(e).__name__, "message": str(e)})
                raise
            self._record(ctx, True, start)

    def _record(
        self,
        ctx: OperationContext,
        success: bool,
        start: float,
        error: Optional[dict] = None,
    ) -> None:
        duration_ms = (time.monotonic() - start) * 1000
        if not success:
            logger.info(
                f"{ctx.operation} failed for user {ctx.user_id} "
                f"(document={ctx.document_id}): {error.get('error_type') if error else ''}"
            )
        if self._file_logger is not None:
            self._file_logger.write(log_document_operation(
                ctx.operation,
                ctx.user_id,
                ctx.document_id,
                success,
                duration_ms,
                execution_id=ctx.execution_id,
                error=error,
            ))
