"""Listing tests for dashdocs.documents.service — view scope, filters, sorting, caps."""

from datetime import date, datetime, timezone

import pytest

from dashdocs.documents.models import DocumentQuery, DocumentShareRequest
from dashdocs.documents.service import DocumentService
from dashdocs.engine.config import DocumentPolicy


@pytest.fixture
def catalog(service, upload, ids, clock):
    """
    Five documents spread over owners, projects and dates:

        personal   alice  Reports         2026-01-05
        apollo     bob    Presentations   2026-01-10   tags: kickoff
        apollo     alice  Reports         2026-01-20
        zephyr     frank  Other           2026-02-01   shared with dave
        personal   frank  Reports         2026-02-15
    """
    def at(day: date):
        clock.set(datetime(day.year, day.month, day.day, 8, 0, tzinfo=timezone.utc))

    at(date(2026, 1, 5))
    personal = upload(ids.alice, title="Expense notes", category="Reports", content=b"a" * 30)
    at(date(2026, 1, 10))
    kickoff = upload(ids.bob, title="Kickoff deck", category="Presentations", project_id=ids.apollo,
                     file_name="kickoff.pptx", content=b"b" * 10, tags=["kickoff"])
    at(date(2026, 1, 20))
    budget = upload(ids.alice, title="budget", category="Reports", project_id=ids.apollo,
                    content=b"c" * 20)
    at(date(2026, 2, 1))
    roadmap = upload(ids.frank, title="Roadmap", category="Other", project_id=ids.zephyr,
                     file_name="roadmap.pdf", content=b"d" * 40)
    at(date(2026, 2, 15))
    private = upload(ids.frank, title="Appraisal", category="Reports", content=b"e" * 5)

    service.share_document(roadmap.id, ids.frank, DocumentShareRequest(user_ids=[ids.dave]))
    return {
        "personal": personal.id,
        "kickoff": kickoff.id,
        "budget": budget.id,
        "roadmap": roadmap.id,
        "private": private.id,
    }


def titles(listings):
    return [item.document.title for item in listings]


class TestViewScope:
    def test_member_sees_own_and_project_documents(self, service, ids, catalog):
        assert titles(service.get_documents(ids.alice)) == ["budget", "Kickoff deck", "Expense notes"]

    def test_project_manager_sees_project_documents(self, service, ids, catalog):
        assert titles(service.get_documents(ids.carol)) == ["budget", "Kickoff deck"]

    def test_outsider_sees_only_shared(self, service, ids, catalog):
        assert titles(service.get_documents(ids.dave)) == ["Roadmap"]

    def test_administrator_sees_everything(self, service, ids, catalog):
        assert len(service.get_documents(ids.erin)) == 5

    def test_deleted_documents_never_listed(self, service, ids, catalog):
        service.delete_document(catalog["budget"], ids.alice)
        assert "budget" not in titles(service.get_documents(ids.erin))
        assert "budget" not in titles(service.get_documents(ids.alice))


class TestQueryThroughService:
    def test_default_sort_is_newest_first(self, service, ids, catalog):
        assert titles(service.get_documents(ids.erin)) == [
            "Appraisal", "Roadmap", "budget", "Kickoff deck", "Expense notes",
        ]

    def test_title_sort_is_case_insensitive(self, service, ids, catalog):
        result = service.get_documents(ids.erin, DocumentQuery(sort_by="title", sort_dir="asc"))
        assert titles(result) == ["Appraisal", "budget", "Expense notes", "Kickoff deck", "Roadmap"]

    def test_size_sort(self, service, ids, catalog):
        result = service.get_documents(ids.erin, DocumentQuery(sort_by="fileSizeBytes", sort_dir="desc"))
        assert [item.document.file_size_bytes for item in result] == [40, 30, 20, 10, 5]

    def test_unknown_sort_key_falls_back_to_upload_date(self, service, ids, catalog):
        result = service.get_documents(ids.erin, DocumentQuery(sort_by="owner"))
        assert titles(result) == titles(service.get_documents(ids.erin))

    def test_category_ties_broken_by_id(self, service, ids, catalog):
        result = service.get_documents(ids.erin, DocumentQuery(category="Reports", sort_by="category"))
        assert [item.id for item in result] == sorted(
            [catalog["personal"], catalog["budget"], catalog["private"]]
        )

    def test_category_filter(self, service, ids, catalog):
        result = service.get_documents(ids.erin, DocumentQuery(category="Reports"))
        assert titles(result) == ["Appraisal", "budget", "Expense notes"]

    def test_project_filter(self, service, ids, catalog):
        result = service.get_documents(ids.erin, DocumentQuery(project_id=ids.apollo))
        assert titles(result) == ["budget", "Kickoff deck"]

    def test_date_range_inclusive(self, service, ids, catalog):
        result = service.get_documents(
            ids.erin, DocumentQuery(from_date=date(2026, 1, 10), to_date=date(2026, 2, 1)),
        )
        assert titles(result) == ["Roadmap", "budget", "Kickoff deck"]

    @pytest.mark.parametrize("needle, expected", [
        ("BUDGET", ["budget"]),
        ("kickoff", ["Kickoff deck"]),
        ("frank", ["Appraisal", "Roadmap"]),
        ("zephyr", ["Roadmap"]),
        ("no such thing", []),
    ])
    def test_search_spans_title_tags_uploader_and_project(self, service, ids, catalog, needle, expected):
        assert titles(service.get_documents(ids.erin, DocumentQuery(search=needle))) == expected

    def test_search_respects_view_scope(self, service, ids, catalog):
        assert service.get_documents(ids.dave, DocumentQuery(search="Appraisal")) == []

    def test_result_capped_by_policy(self, session_factory, file_store, scan_queue, notifier, ids, catalog):
        capped = DocumentService(
            session_factory, file_store, scan_queue, notifier,
            policy=DocumentPolicy(list_limit=2),
        )
        assert titles(capped.get_documents(ids.erin)) == ["Appraisal", "Roadmap"]


class TestDashboardQueries:
    def test_project_documents_newest_first(self, service, ids, catalog):
        assert titles(service.get_project_documents(ids.apollo, ids.bob)) == ["budget", "Kickoff deck"]

    def test_project_documents_empty_without_access(self, service, ids, catalog):
        assert service.get_project_documents(ids.apollo, ids.dave) == []
        assert service.get_project_documents(999, ids.erin) == []

    def test_recent_user_documents(self, service, ids, catalog):
        assert titles(service.get_recent_user_documents(ids.alice)) == ["budget", "Expense notes"]
        assert titles(service.get_recent_user_documents(ids.alice, top=1)) == ["budget"]

    def test_user_document_count(self, service, ids, catalog):
        assert service.get_user_document_count(ids.alice) == 2
        assert service.get_user_document_count(ids.dave) == 0
