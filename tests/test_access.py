"""Unit tests for dashdocs.documents.access — view/manage predicates and the resolver."""

from datetime import datetime, timezone

import pytest

from dashdocs.documents.access import (
    AccessFacts,
    AccessResolver,
    ViewScope,
    can_access_project,
    can_manage,
    can_view,
)
from dashdocs.documents.models import DocumentSnapshot, ProjectSnapshot, ScanStatus
from dashdocs.documents.repository import DirectoryRepository, DocumentRepository

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

UPLOADER, MEMBER, MANAGER, OUTSIDER, ADMIN, SHARED = 1, 2, 3, 4, 5, 6

APOLLO = ProjectSnapshot(id=10, name="Apollo", manager_id=MANAGER, member_ids=frozenset({UPLOADER, MEMBER}))


def make_document(project_id=10, is_deleted=False):
    return DocumentSnapshot(
        id=7,
        title="Budget",
        category="Reports",
        file_name="Budget.xlsx",
        file_path="1/10/abc.xlsx",
        file_type="application/octet-stream",
        file_size_bytes=100,
        uploaded_by_user_id=UPLOADER,
        project_id=project_id,
        uploaded_at=NOW,
        updated_at=NOW,
        scan_status=ScanStatus.CLEAN,
        scan_requested_at=NOW,
        is_deleted=is_deleted,
    )


def facts(user_id, project=APOLLO, shared=(SHARED,)):
    return AccessFacts(
        user_id=user_id,
        is_administrator=user_id == ADMIN,
        project=project,
        shared_with=frozenset(shared),
    )


class TestViewAndManage:
    @pytest.mark.parametrize("user_id, viewable, manageable", [
        (UPLOADER, True, True),
        (MEMBER, True, False),
        (MANAGER, True, True),
        (SHARED, True, False),
        (ADMIN, True, True),
        (OUTSIDER, False, False),
    ])
    def test_project_document(self, user_id, viewable, manageable):
        doc = make_document()
        assert can_view(doc, facts(user_id)) is viewable
        assert can_manage(doc, facts(user_id)) is manageable

    def test_manage_implies_view(self):
        doc = make_document()
        for user_id in (UPLOADER, MEMBER, MANAGER, OUTSIDER, ADMIN, SHARED):
            if can_manage(doc, facts(user_id)):
                assert can_view(doc, facts(user_id))

    def test_personal_document_ignores_project_facts(self):
        doc = make_document(project_id=None)
        assert can_view(doc, facts(MEMBER)) is False
        assert can_manage(doc, facts(MANAGER)) is False
        assert can_view(doc, facts(UPLOADER, project=None)) is True

    @pytest.mark.parametrize("user_id", [UPLOADER, MANAGER, ADMIN, SHARED])
    def test_deleted_document_denied_to_everyone(self, user_id):
        doc = make_document(is_deleted=True)
        assert can_view(doc, facts(user_id)) is False
        assert can_manage(doc, facts(user_id)) is False


class TestProjectAccess:
    def test_manager_member_and_admin(self):
        assert can_access_project(APOLLO, MANAGER, False)
        assert can_access_project(APOLLO, MEMBER, False)
        assert can_access_project(APOLLO, OUTSIDER, True)
        assert not can_access_project(APOLLO, OUTSIDER, False)

    def test_missing_project_grants_nobody(self):
        assert not can_access_project(None, ADMIN, True)


class TestViewScope:
    def test_includes(self):
        scope = ViewScope(user_id=MEMBER, project_ids=frozenset({10}), shared_document_ids=frozenset({99}))
        assert scope.includes(make_document())
        assert not scope.includes(make_document(project_id=None))
        assert not scope.includes(make_document(is_deleted=True))

    def test_administrator_includes_everything_live(self):
        scope = ViewScope(user_id=ADMIN, is_administrator=True)
        assert scope.includes(make_document(project_id=None))
        assert not scope.includes(make_document(is_deleted=True))


class TestAccessResolver:
    def test_resolves_from_store(self, service, upload, ids, session_factory):
        doc = upload(ids.alice, project_id=ids.apollo)
        with session_factory() as session:
            documents = DocumentRepository(session)
            resolver = AccessResolver(documents, DirectoryRepository(session))
            snapshot = documents.get_active(doc.id)

            assert resolver.can_view(snapshot, ids.bob)
            assert not resolver.can_manage(snapshot, ids.bob)
            assert resolver.can_manage(snapshot, ids.carol)
            assert resolver.can_manage(snapshot, ids.erin)
            assert not resolver.can_view(snapshot, ids.dave)
            assert resolver.can_access_project(ids.zephyr, ids.frank)
            assert not resolver.can_access_project(ids.zephyr, ids.alice)

    def test_view_scope_collects_projects_and_shares(self, service, upload, ids, session_factory):
        from dashdocs.documents.models import DocumentShareRequest

        doc = upload(ids.frank, project_id=ids.zephyr)
        service.share_document(doc.id, ids.frank, DocumentShareRequest(user_ids=[ids.alice]))
        with session_factory() as session:
            resolver = AccessResolver(DocumentRepository(session), DirectoryRepository(session))
            scope = resolver.view_scope(ids.alice)

        assert scope.project_ids == frozenset({ids.apollo})
        assert scope.shared_document_ids == frozenset({doc.id})
        assert scope.is_administrator is False
