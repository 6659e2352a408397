"""
DashDocs Notification Sink — user notifications emitted after commit.

Notifications are fire-and-forget: the document operation has already
committed when they are sent, so a delivery failure is logged and never
propagated to the caller.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from dashdocs.documents.models import NotificationPriority, NotificationType
from dashdocs.engine.config import NotificationConfig
from dashdocs.engine.context import execution_tag

logger = logging.getLogger("dashdocs.integrations.notifications")


class NotificationSink(ABC):
    """Port for the user notification service."""

    @abstractmethod
    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        notification_type: NotificationType,
        priority: NotificationPriority,
    ) -> None:
        """Deliver one notification."""


class HttpNotificationSink(NotificationSink):
    """
    POSTs notifications as JSON to the notification service.

    A single httpx.Client is kept for the lifetime of the sink (connection
    pooled). Call close() during shutdown.
    """

    def __init__(self, config: NotificationConfig, client: Optional[httpx.Client] = None):
        self._config = config
        self._client = client

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self._config.api_key:
                headers["X-API-Key"] = self._config.api_key
            self._client = httpx.Client(
                base_url=self._config.base_url.rstrip("/"),
                headers=headers,
                timeout=httpx.Timeout(self._config.timeout, connect=5.0),
            )
            logger.debug(f"Created httpx client for {self._config.base_url}")
        return self._client

    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        notification_type: NotificationType,
        priority: NotificationPriority,
    ) -> None:
        if not self._config.enabled:
            logger.debug(f"Notifications disabled; dropping '{title}' for user {user_id}")
            return

        payload: Dict[str, Any] = {
            "user_id": user_id,
            "title": title,
            "message": message,
            "type": notification_type.value,
            "priority": priority.value,
        }
        try:
            response = self._get_client().post(self._config.path, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"{execution_tag()}Notification '{title}' to user {user_id} failed: {e}")
            return

        logger.info(f"{execution_tag()}Notified user {user_id}: {title}")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
