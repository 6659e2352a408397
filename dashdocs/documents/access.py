"""
DashDocs Access Resolver — who may view or manage a document.

Two predicates, deliberately not nested:

    view   = uploader | shared with user | project manager/member | Administrator
    manage = uploader | project manager | Administrator

Project membership grants view but never manage.

The predicates are pure functions over an AccessFacts snapshot. The
AccessResolver gathers those facts from the repositories; it never writes.
ViewScope expresses the same view formula as set membership for listings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from dashdocs.documents.models import DocumentSnapshot, ProjectSnapshot
from dashdocs.documents.repository import DirectoryRepository, DocumentRepository

logger = logging.getLogger("dashdocs.documents.access")


@dataclass(frozen=True)
class AccessFacts:
    """Everything the predicates need to judge one (document, user) pair."""

    user_id: int
    is_administrator: bool = False
    project: Optional[ProjectSnapshot] = None
    shared_with: FrozenSet[int] = frozenset()


def is_project_participant(project: Optional[ProjectSnapshot], user_id: int) -> bool:
    if project is None:
        return False
    return project.manager_id == user_id or user_id in project.member_ids


def can_view(document: DocumentSnapshot, facts: AccessFacts) -> bool:
    if document.is_deleted:
        return False
    if document.uploaded_by_user_id == facts.user_id:
        return True
    if facts.user_id in facts.shared_with:
        return True
    if document.project_id is not None and is_project_participant(facts.project, facts.user_id):
        return True
    return facts.is_administrator


def can_manage(document: DocumentSnapshot, facts: AccessFacts) -> bool:
    if document.is_deleted:
        return False
    if document.uploaded_by_user_id == facts.user_id:
        return True
    if (
        document.project_id is not None
        and facts.project is not None
        and facts.project.manager_id == facts.user_id
    ):
        return True
    return facts.is_administrator


def can_access_project(project: Optional[ProjectSnapshot], user_id: int, is_administrator: bool) -> bool:
    """A project that does not exist grants nobody access."""
    if project is None:
        return False
    return is_project_participant(project, user_id) or is_administrator


@dataclass(frozen=True)
class ViewScope:
    """The view predicate for one user, as explicit sets over the catalog."""

    user_id: int
    is_administrator: bool = False
    project_ids: FrozenSet[int] = field(default_factory=frozenset)
    shared_document_ids: FrozenSet[int] = field(default_factory=frozenset)

    def includes(self, document: DocumentSnapshot) -> bool:
        if document.is_deleted:
            return False
        if self.is_administrator:
            return True
        return (
            document.uploaded_by_user_id == self.user_id
            or document.id in self.shared_document_ids
            or (document.project_id is not None and document.project_id in self.project_ids)
        )


class AccessResolver:
    """
    Gathers access facts from the store and applies the predicates.

    Bound to the repositories of one unit of work, so every answer comes from
    the same snapshot the operation then acts on.
    """

    def __init__(self, documents: DocumentRepository, directory: DirectoryRepository):
        self._documents = documents
        self._directory = directory

    def facts_for(self, document: DocumentSnapshot, user_id: int) -> AccessFacts:
        project = (
            self._directory.get_project(document.project_id)
            if document.project_id is not None
            else None
        )
        return AccessFacts(
            user_id=user_id,
            is_administrator=self._directory.is_administrator(user_id),
            project=project,
            shared_with=self._documents.shared_user_ids(document.id),
        )

    def can_view(self, document: DocumentSnapshot, user_id: int) -> bool:
        return can_view(document, self.facts_for(document, user_id))

    def can_manage(self, document: DocumentSnapshot, user_id: int) -> bool:
        return can_manage(document, self.facts_for(document, user_id))

    def can_access_project(self, project_id: int, user_id: int) -> bool:
        return can_access_project(
            self._directory.get_project(project_id),
            user_id,
            self._directory.is_administrator(user_id),
        )

    def view_scope(self, user_id: int) -> ViewScope:
        return ViewScope(
            user_id=user_id,
            is_administrator=self._directory.is_administrator(user_id),
            project_ids=self._directory.project_ids_for_user(user_id),
            shared_document_ids=self._documents.document_ids_shared_with(user_id),
        )
