"""Unit tests for dashdocs.integrations — Celery scan queue and HTTP notification sink."""

import json
import logging
from datetime import datetime, timezone
from unittest.mock import MagicMock

import httpx
import pytest
from kombu.exceptions import OperationalError

from dashdocs.documents.models import NotificationPriority, NotificationType, ScanJob
from dashdocs.engine.config import CeleryConfig, NotificationConfig
from dashdocs.engine.context import operation_scope
from dashdocs.engine.errors import DependencyUnavailableError
from dashdocs.integrations.notifications import HttpNotificationSink
from dashdocs.integrations.scan_queue import CeleryScanQueue, create_celery_app, get_celery_app

JOB = ScanJob(
    document_id=7,
    file_path="1/10/abc.xlsx",
    file_type="application/pdf",
    uploaded_by_user_id=1,
    project_id=10,
    enqueued_at=datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc),
)


def mock_celery(broker="redis://localhost:6379/0"):
    app = MagicMock()
    app.conf.broker_url = broker
    app.send_task.return_value = MagicMock(id="task-1")
    return app


class TestScanJob:
    def test_message_is_json_safe(self):
        message = JOB.to_message()
        assert message["document_id"] == 7
        assert message["enqueued_at"].startswith("2026-03-02T09:00:00")
        json.dumps(message)


class TestCeleryScanQueue:
    def test_publishes_task(self):
        app = mock_celery()
        CeleryScanQueue(app, queue="scans", task_name="dashdocs.scan_document").enqueue(JOB)

        args, kwargs = app.send_task.call_args
        assert args == ("dashdocs.scan_document",)
        assert kwargs["queue"] == "scans"
        assert kwargs["kwargs"] == JOB.to_message()
        assert kwargs["retry"] is True

    def test_broker_error_is_dependency_error(self):
        app = mock_celery()
        app.send_task.side_effect = OperationalError("Connection refused")
        with pytest.raises(DependencyUnavailableError) as exc_info:
            CeleryScanQueue(app).enqueue(JOB)
        assert exc_info.value.dependency == "scan_queue"
        assert exc_info.value.document_id == 7

    def test_unconfigured_broker(self):
        app = mock_celery(broker=None)
        with pytest.raises(DependencyUnavailableError):
            CeleryScanQueue(app).enqueue(JOB)
        app.send_task.assert_not_called()

    def test_log_lines_carry_execution_id(self, caplog):
        caplog.set_level(logging.INFO, logger="dashdocs")
        with operation_scope(1, "upload_document") as ctx:
            CeleryScanQueue(mock_celery()).enqueue(JOB)
        assert f"[{ctx.execution_id}] Enqueued scan job for document 7" in caplog.text

    def test_from_config(self):
        config = CeleryConfig(broker="memory://", scan_queue="q1", scan_task="t1")
        queue = CeleryScanQueue.from_config(config)
        assert "q1" in repr(queue)
        assert get_celery_app() is get_celery_app(config)


class TestCeleryApp:
    def test_routes_scan_task(self):
        app = create_celery_app(CeleryConfig(broker="memory://", scan_queue="scans", scan_task="scan"))
        assert app.conf.task_routes == {"scan": {"queue": "scans"}}
        assert app.conf.task_serializer == "json"


class TestHttpNotificationSink:
    def _sink(self, handler, **overrides):
        config = NotificationConfig(base_url="http://notify.test", api_key="k-123", **overrides)
        client = httpx.Client(
            base_url="http://notify.test",
            headers={"X-API-Key": "k-123"},
            transport=httpx.MockTransport(handler),
        )
        return HttpNotificationSink(config, client=client)

    def test_posts_notification(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json={"id": 1})

        self._sink(handler).notify(
            4, "Document Shared", "Budget was shared with you.",
            NotificationType.PROJECT_UPDATE, NotificationPriority.IMPORTANT,
        )

        [request] = seen
        assert request.method == "POST"
        assert request.url.path == "/api/v1/notifications"
        assert request.headers["X-API-Key"] == "k-123"
        assert json.loads(request.content) == {
            "user_id": 4,
            "title": "Document Shared",
            "message": "Budget was shared with you.",
            "type": "ProjectUpdate",
            "priority": "Important",
        }

    def test_server_error_is_swallowed(self):
        sink = self._sink(lambda request: httpx.Response(503))
        sink.notify(4, "t", "m", NotificationType.PROJECT_UPDATE, NotificationPriority.URGENT)

    def test_connection_error_is_swallowed(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        self._sink(handler).notify(4, "t", "m", NotificationType.PROJECT_UPDATE, NotificationPriority.URGENT)

    def test_failure_log_carries_execution_id(self, caplog):
        caplog.set_level(logging.INFO, logger="dashdocs")
        sink = self._sink(lambda request: httpx.Response(503))
        with operation_scope(3, "share_document") as ctx:
            sink.notify(4, "Document Shared", "m", NotificationType.PROJECT_UPDATE, NotificationPriority.IMPORTANT)
        assert f"[{ctx.execution_id}] Notification 'Document Shared' to user 4 failed" in caplog.text

    def test_disabled_sends_nothing(self):
        handler = MagicMock()
        self._sink(handler, enabled=False).notify(
            4, "t", "m", NotificationType.PROJECT_UPDATE, NotificationPriority.INFORMATIONAL,
        )
        handler.assert_not_called()

    def test_builds_client_lazily(self):
        sink = HttpNotificationSink(NotificationConfig(api_key="secret"))
        client = sink._get_client()
        assert client.headers["X-API-Key"] == "secret"
        sink.close()
        assert sink._client is None
