"""
DashDocs Scan Queue — hands ScanJobs to the malware scanning worker.

The engine only publishes; the worker that consumes the queue and writes
the scan verdict back is an external process. Publishing is synchronous so
a broker outage surfaces to the operation that triggered it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from celery import Celery
from kombu.exceptions import OperationalError as KombuOperationalError

from dashdocs.documents.models import ScanJob
from dashdocs.engine.config import CeleryConfig
from dashdocs.engine.context import execution_tag
from dashdocs.engine.errors import DependencyUnavailableError

logger = logging.getLogger("dashdocs.integrations.scan_queue")


class ScanQueue(ABC):
    """Port for the asynchronous scan job queue."""

    @abstractmethod
    def enqueue(self, job: ScanJob) -> None:
        """Publish one scan job. Raises DependencyUnavailableError on failure."""


# ---------------------------------------------------------------------------
# Celery app (configured at startup from dashdocs.yaml)
# ---------------------------------------------------------------------------

_celery_app: Optional[Celery] = None


def create_celery_app(config: CeleryConfig) -> Celery:
    """Create and configure the Celery application used for publishing."""
    app = Celery("dashdocs", broker=config.broker, backend=config.result_backend)
    app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_default_queue=config.scan_queue,
        task_routes={config.scan_task: {"queue": config.scan_queue}},
        task_acks_late=True,
        worker_prefetch_multiplier=1,
    )
    return app


def get_celery_app(config: Optional[CeleryConfig] = None) -> Celery:
    """Get or create the Celery app singleton."""
    global _celery_app
    if _celery_app is None:
        if config is None:
            from dashdocs.engine.config import get_config
            config = get_config().celery
        _celery_app = create_celery_app(config)
    return _celery_app


class CeleryScanQueue(ScanQueue):
    """
    Publishes ScanJobs as Celery task messages.

    Only the task name is referenced; the scanning worker registers the task
    under that name on its side.
    """

    def __init__(
        self,
        celery_app: Celery,
        queue: str = "document-scan-jobs",
        task_name: str = "dashdocs.scan_document",
        max_retries: int = 1,
    ):
        self._app = celery_app
        self._queue = queue
        self._task_name = task_name
        self._max_retries = max_retries

    @classmethod
    def from_config(cls, config: CeleryConfig) -> "CeleryScanQueue":
        return cls(
            get_celery_app(config),
            queue=config.scan_queue,
            task_name=config.scan_task,
            max_retries=config.publish_max_retries,
        )

    def enqueue(self, job: ScanJob) -> None:
        if not self._app.conf.broker_url:
            raise DependencyUnavailableError(
                "Scan queue broker is not configured",
                dependency="scan_queue",
                document_id=job.document_id,
            )

        try:
            result = self._app.send_task(
                self._task_name,
                kwargs=job.to_message(),
                queue=self._queue,
                retry=True,
                retry_policy={
                    "max_retries": self._max_retries,
                    "interval_start": 0,
                    "interval_step": 0.5,
                    "interval_max": 1,
                },
            )
        except KombuOperationalError as e:
            logger.error(f"{execution_tag()}Scan job publish failed for document {job.document_id}: {e}")
            raise DependencyUnavailableError(
                f"Scan queue unavailable: {e}",
                dependency="scan_queue",
                document_id=job.document_id,
            ) from e

        logger.info(
            f"{execution_tag()}Enqueued scan job for document {job.document_id} "
            f"(queue={self._queue}, task_id={result.id})"
        )

    def __repr__(self) -> str:
        return f"<CeleryScanQueue queue='{self._queue}' task='{self._task_name}'>"
