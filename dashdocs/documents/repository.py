"""
DashDocs Repositories — flat snapshots over the document store.

DocumentRepository owns documents, tags, shares and activity rows.
DirectoryRepository is the read-only role/membership source (users,
projects, project members).

Both wrap a Session supplied by the caller's unit of work; neither commits.
Relations are resolved with explicit lookups, never by lazy traversal.
"""

from __future__ import annotations

import json
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from dashdocs.db.base import as_utc, utcnow
from dashdocs.db.models import (
    Document,
    DocumentActivity,
    DocumentShare,
    DocumentTag,
    Project,
    ProjectMember,
    User,
)
from dashdocs.documents.models import (
    ActivitySnapshot,
    ActivityType,
    DocumentSnapshot,
    ProjectSnapshot,
    ScanStatus,
    UserRole,
    UserSnapshot,
)
from dashdocs.engine.errors import ConcurrencyConflictError, DocumentNotFoundError

_DATETIME_FIELDS = (
    "uploaded_at", "updated_at", "scan_requested_at", "scan_completed_at", "deleted_at",
)


def _to_snapshot(row: Document) -> DocumentSnapshot:
    data = {c.name: getattr(row, c.name) for c in Document.__table__.columns}
    for name in _DATETIME_FIELDS:
        data[name] = as_utc(data[name])
    data["scan_status"] = ScanStatus(data["scan_status"])
    return DocumentSnapshot(**data)


class DocumentRepository:
    """Document aggregate persistence. Reads exclude tombstoned rows."""

    def __init__(self, session: Session):
        self._session = session

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------

    def get_active(self, document_id: int) -> Optional[DocumentSnapshot]:
        row = self._session.execute(
            select(Document).where(Document.id == document_id, Document.is_deleted.is_(False))
        ).scalar_one_or_none()
        return _to_snapshot(row) if row is not None else None

    def list_active(
        self,
        *,
        uploaded_by: Optional[int] = None,
        project_id: Optional[int] = None,
        any_of_ids: Optional[Iterable[int]] = None,
        any_of_projects: Optional[Iterable[int]] = None,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> List[DocumentSnapshot]:
        """
        List non-deleted documents.

        ``uploaded_by``, ``any_of_ids`` and ``any_of_projects`` are OR-ed
        together when more than one is given (a view scope); ``project_id``
        is an AND filter.
        """
        stmt = select(Document).where(Document.is_deleted.is_(False))

        alternatives = []
        if uploaded_by is not None:
            alternatives.append(Document.uploaded_by_user_id == uploaded_by)
        if any_of_ids is not None:
            ids = list(any_of_ids)
            if ids:
                alternatives.append(Document.id.in_(ids))
        if any_of_projects is not None:
            projects = list(any_of_projects)
            if projects:
                alternatives.append(Document.project_id.in_(projects))
        if uploaded_by is not None or any_of_ids is not None or any_of_projects is not None:
            if not alternatives:
                return []
            stmt = stmt.where(or_(*alternatives))

        if project_id is not None:
            stmt = stmt.where(Document.project_id == project_id)

        if newest_first:
            stmt = stmt.order_by(Document.uploaded_at.desc(), Document.id.desc())
        else:
            stmt = stmt.order_by(Document.id)
        if limit is not None:
            stmt = stmt.limit(limit)

        return [_to_snapshot(row) for row in self._session.execute(stmt).scalars()]

    def count_active(self, uploaded_by: int) -> int:
        return self._session.execute(
            select(func.count(Document.id)).where(
                Document.is_deleted.is_(False),
                Document.uploaded_by_user_id == uploaded_by,
            )
        ).scalar_one()

    def tags_for(self, document_ids: Iterable[int]) -> Dict[int, List[str]]:
        ids = list(document_ids)
        result: Dict[int, List[str]] = defaultdict(list)
        if not ids:
            return result
        rows = self._session.execute(
            select(DocumentTag.document_id, DocumentTag.tag_value)
            .where(DocumentTag.document_id.in_(ids))
            .order_by(DocumentTag.id)
        )
        for document_id, tag_value in rows:
            result[document_id].append(tag_value)
        return result

    def shared_user_ids(self, document_id: int) -> FrozenSet[int]:
        rows = self._session.execute(
            select(DocumentShare.shared_with_user_id).where(
                DocumentShare.document_id == document_id,
                DocumentShare.shared_with_user_id.is_not(None),
            )
        ).scalars()
        return frozenset(rows)

    def document_ids_shared_with(self, user_id: int) -> FrozenSet[int]:
        rows = self._session.execute(
            select(DocumentShare.document_id).where(DocumentShare.shared_with_user_id == user_id)
        ).scalars()
        return frozenset(rows)

    def share_exists(self, document_id: int, user_id: int) -> bool:
        return self._session.execute(
            select(DocumentShare.id).where(
                DocumentShare.document_id == document_id,
                DocumentShare.shared_with_user_id == user_id,
            )
        ).first() is not None

    def list_activities(self, document_id: int) -> List[ActivitySnapshot]:
        rows = self._session.execute(
            select(DocumentActivity)
            .where(DocumentActivity.document_id == document_id)
            .order_by(DocumentActivity.id)
        ).scalars()
        return [
            ActivitySnapshot(
                id=r.id,
                document_id=r.document_id,
                actor_user_id=r.actor_user_id,
                activity_type=ActivityType(r.activity_type),
                target_user_id=r.target_user_id,
                metadata_json=r.metadata_json,
                occurred_at=as_utc(r.occurred_at),
            )
            for r in rows
        ]

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------

    def add_document(self, **fields: Any) -> DocumentSnapshot:
        """Insert a document row and flush so its id is assigned."""
        row = Document(**fields)
        self._session.add(row)
        self._session.flush()
        return _to_snapshot(row)

    def update_document(
        self,
        document_id: int,
        expected_version: int,
        **fields: Any,
    ) -> DocumentSnapshot:
        """
        Apply ``fields`` to a live document row.

        The row must still carry ``expected_version``; the version column is
        also checked by the UPDATE itself, so a concurrent writer that slips
        in between surfaces as StaleDataError at flush.
        """
        row = self._session.get(Document, document_id, populate_existing=True)
        if row is None or row.is_deleted:
            raise DocumentNotFoundError("Document not found.", document_id=document_id)
        if row.row_version != expected_version:
            raise ConcurrencyConflictError(
                "Document was modified by a concurrent operation",
                document_id=document_id,
                expected_version=expected_version,
                actual_version=row.row_version,
            )
        for name, value in fields.items():
            setattr(row, name, value)
        self._session.flush()
        return _to_snapshot(row)

    def replace_tags(self, document_id: int, tags: List[str]) -> None:
        self._session.execute(delete(DocumentTag).where(DocumentTag.document_id == document_id))
        now = utcnow()
        for tag in tags:
            self._session.add(DocumentTag(document_id=document_id, tag_value=tag, created_at=now))
        self._session.flush()

    def add_share(self, document_id: int, shared_with_user_id: int, shared_by_user_id: int) -> None:
        self._session.add(DocumentShare(
            document_id=document_id,
            shared_with_user_id=shared_with_user_id,
            shared_by_user_id=shared_by_user_id,
            shared_at=utcnow(),
        ))
        self._session.flush()

    def add_activity(
        self,
        document_id: int,
        actor_user_id: int,
        activity_type: ActivityType,
        target_user_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        occurred_at: Optional[datetime] = None,
    ) -> int:
        row = DocumentActivity(
            document_id=document_id,
            actor_user_id=actor_user_id,
            activity_type=activity_type.value,
            target_user_id=target_user_id,
            metadata_json=json.dumps(metadata, default=str) if metadata else None,
            occurred_at=occurred_at or utcnow(),
        )
        self._session.add(row)
        self._session.flush()
        return row.id

    def restore_content(
        self,
        previous: DocumentSnapshot,
        expected_version: int,
        activity_id: int,
    ) -> DocumentSnapshot:
        """
        Undo a committed file replacement whose scan job was never queued:
        put back the prior content and scan fields and drop its Replace row.
        """
        self._session.execute(delete(DocumentActivity).where(DocumentActivity.id == activity_id))
        return self.update_document(
            previous.id,
            expected_version,
            file_name=previous.file_name,
            file_path=previous.file_path,
            file_type=previous.file_type,
            file_size_bytes=previous.file_size_bytes,
            scan_status=previous.scan_status.value,
            scan_requested_at=previous.scan_requested_at,
            scan_completed_at=previous.scan_completed_at,
            scan_failure_reason=previous.scan_failure_reason,
            updated_at=previous.updated_at,
        )

    def discard_unreleased(self, document_id: int) -> None:
        """
        Remove a document whose upload could not be handed to the scanner.
        Only used to compensate a failed upload; the row was never scanned
        and its content never released.
        """
        self._session.execute(delete(DocumentActivity).where(DocumentActivity.document_id == document_id))
        self._session.execute(delete(DocumentTag).where(DocumentTag.document_id == document_id))
        self._session.execute(delete(DocumentShare).where(DocumentShare.document_id == document_id))
        self._session.execute(delete(Document).where(Document.id == document_id))
        self._session.flush()


class DirectoryRepository:
    """Read-only user, role and project membership lookups."""

    def __init__(self, session: Session):
        self._session = session

    def get_user(self, user_id: int) -> Optional[UserSnapshot]:
        row = self._session.get(User, user_id)
        if row is None:
            return None
        return UserSnapshot(id=row.id, display_name=row.display_name, role=UserRole(row.role))

    def is_administrator(self, user_id: int) -> bool:
        role = self._session.execute(select(User.role).where(User.id == user_id)).scalar_one_or_none()
        return role == UserRole.ADMINISTRATOR.value

    def existing_user_ids(self, user_ids: Iterable[int]) -> Set[int]:
        ids = list(user_ids)
        if not ids:
            return set()
        return set(self._session.execute(select(User.id).where(User.id.in_(ids))).scalars())

    def display_names(self, user_ids: Iterable[int]) -> Dict[int, str]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        rows = self._session.execute(select(User.id, User.display_name).where(User.id.in_(ids)))
        return {uid: name for uid, name in rows}

    def get_project(self, project_id: int) -> Optional[ProjectSnapshot]:
        return self.projects([project_id]).get(project_id)

    def projects(self, project_ids: Iterable[int]) -> Dict[int, ProjectSnapshot]:
        ids = list({pid for pid in project_ids if pid is not None})
        if not ids:
            return {}
        members: Dict[int, Set[int]] = defaultdict(set)
        for project_id, user_id in self._session.execute(
            select(ProjectMember.project_id, ProjectMember.user_id)
            .where(ProjectMember.project_id.in_(ids))
        ):
            members[project_id].add(user_id)
        return {
            row.id: ProjectSnapshot(
                id=row.id,
                name=row.name,
                manager_id=row.project_manager_id,
                member_ids=frozenset(members.get(row.id, set())),
            )
            for row in self._session.execute(select(Project).where(Project.id.in_(ids))).scalars()
        }

    def project_ids_for_user(self, user_id: int) -> FrozenSet[int]:
        """Projects the user manages or is a member of."""
        managed = frozenset(self._session.execute(
            select(Project.id).where(Project.project_manager_id == user_id)
        ).scalars())
        member_of = frozenset(self._session.execute(
            select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
        ).scalars())
        return managed | member_of
