"""
DashDocs Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v

The relational store is an in-memory SQLite database (StaticPool); the
File Store, Scan Queue and Notification Sink are in-memory fakes.
"""

from __future__ import annotations

import io
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import BinaryIO, Callable, Dict, List, Optional

import pytest
from sqlalchemy import update
from sqlalchemy.orm import sessionmaker

from dashdocs.db.base import Base, create_db_engine
from dashdocs.db.models import Document, Project, ProjectMember, Task, User
from dashdocs.documents.models import DocumentUploadRequest, ScanJob, ScanStatus
from dashdocs.documents.service import DocumentService
from dashdocs.engine.config import DocumentPolicy
from dashdocs.engine.errors import DependencyUnavailableError, StoredContentMissingError
from dashdocs.engine.logging import FileLogger
from dashdocs.integrations.notifications import NotificationSink
from dashdocs.integrations.scan_queue import ScanQueue
from dashdocs.storage.base import FileStore


# ---------------------------------------------------------------------------
# Global singletons
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch):
    """Reset global singletons between tests."""
    import dashdocs.engine.config as cfg_mod
    import dashdocs.integrations.scan_queue as queue_mod

    monkeypatch.delenv("DASHDOCS_CONFIG", raising=False)
    cfg_mod._config = None
    queue_mod._celery_app = None


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------

class FakeFileStore(FileStore):
    """Dict-backed File Store with failure switches and a put hook."""

    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        self.fail_put = False
        self.on_put: Optional[Callable[[str], None]] = None
        self._counter = 0

    def put(self, stream, file_name, content_type, owner_id, project_id=None) -> str:
        if self.fail_put:
            raise DependencyUnavailableError("File store down", dependency="file_store")
        self._counter += 1
        segment = project_id if project_id is not None else "personal"
        path = f"{owner_id}/{segment}/{self._counter:04d}-{file_name}"
        self.files[path] = stream.read()
        if self.on_put is not None:
            self.on_put(path)
        return path

    def get(self, path: str) -> BinaryIO:
        if path not in self.files:
            raise StoredContentMissingError("Document content not found.", file_path=path)
        return io.BytesIO(self.files[path])

    def delete(self, path: str) -> None:
        self.deleted.append(path)
        self.files.pop(path, None)


class FakeScanQueue(ScanQueue):
    def __init__(self):
        self.jobs: List[ScanJob] = []
        self.fail = False
        self.error: Optional[Exception] = None

    def enqueue(self, job: ScanJob) -> None:
        if self.error is not None:
            raise self.error
        if self.fail:
            raise DependencyUnavailableError("Broker unreachable", dependency="scan_queue")
        self.jobs.append(job)


class RecordingNotifier(NotificationSink):
    def __init__(self):
        self.sent: List[SimpleNamespace] = []
        self.fail = False

    def notify(self, user_id, title, message, notification_type, priority) -> None:
        if self.fail:
            raise RuntimeError("notification service exploded")
        self.sent.append(SimpleNamespace(
            user_id=user_id,
            title=title,
            message=message,
            type=notification_type,
            priority=priority,
        ))

    def to(self, user_id: int) -> List[SimpleNamespace]:
        return [n for n in self.sent if n.user_id == user_id]


class FakeClock:
    """Deterministic clock; every call advances one second."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


# ---------------------------------------------------------------------------
# Relational store
# ---------------------------------------------------------------------------

@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def ids(session_factory):
    """
    Seed the directory and return the ids.

    Project "Apollo" is managed by carol; alice and bob are members.
    Project "Zephyr" is managed by frank and has no members.
    dave belongs to nothing; erin is an Administrator.
    """
    people = [
        (1, "Alice Adams", "Employee"),
        (2, "Bob Brown", "Employee"),
        (3, "Carol Chen", "ProjectManager"),
        (4, "Dave Diaz", "Employee"),
        (5, "Erin Evans", "Administrator"),
        (6, "Frank Fox", "TeamLead"),
    ]
    with session_factory() as session:
        for user_id, name, role in people:
            first = name.split()[0].lower()
            session.add(User(id=user_id, display_name=name, email=f"{first}@contoso.test", role=role))
        session.add(Project(id=10, name="Apollo", project_manager_id=3))
        session.add(Project(id=20, name="Zephyr", project_manager_id=6))
        session.add(ProjectMember(project_id=10, user_id=1))
        session.add(ProjectMember(project_id=10, user_id=2))
        session.add(Task(id=100, project_id=10, title="Quarterly budget"))
        session.commit()

    return SimpleNamespace(
        alice=1, bob=2, carol=3, dave=4, erin=5, frank=6,
        apollo=10, zephyr=20, budget_task=100,
    )


# ---------------------------------------------------------------------------
# Engine under test
# ---------------------------------------------------------------------------

@pytest.fixture
def policy():
    return DocumentPolicy()


@pytest.fixture
def file_store():
    return FakeFileStore()


@pytest.fixture
def scan_queue():
    return FakeScanQueue()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def file_logger(tmp_path):
    return FileLogger(str(tmp_path / "logs"))


@pytest.fixture
def service(session_factory, ids, file_store, scan_queue, notifier, policy, file_logger, clock):
    return DocumentService(
        session_factory,
        file_store,
        scan_queue,
        notifier,
        policy=policy,
        file_logger=file_logger,
        clock=clock,
    )


@pytest.fixture
def upload(service):
    """Upload helper with sensible defaults."""

    def _upload(
        user_id: int,
        title: str = "Budget",
        category: str = "Reports",
        file_name: str = "Budget.xlsx",
        content: bytes = b"quarterly numbers",
        content_type: str = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        project_id: Optional[int] = None,
        tags: Optional[List[str]] = None,
        description: Optional[str] = None,
        **kwargs,
    ):
        request = DocumentUploadRequest(
            title=title,
            description=description,
            category=category,
            project_id=project_id,
            tags=tags or [],
        )
        return service.upload_document(
            user_id,
            request,
            io.BytesIO(content),
            file_name,
            content_type,
            len(content),
            **kwargs,
        )

    return _upload


@pytest.fixture
def set_scan_status(session_factory):
    """Simulate the scanning worker writing its verdict back."""

    def _set(document_id: int, status: ScanStatus, reason: Optional[str] = None) -> None:
        with session_factory() as session:
            session.execute(
                update(Document)
                .where(Document.id == document_id)
                .values(
                    scan_status=status.value,
                    scan_completed_at=datetime.now(timezone.utc),
                    scan_failure_reason=reason,
                    row_version=Document.row_version + 1,
                )
            )
            session.commit()

    return _set
