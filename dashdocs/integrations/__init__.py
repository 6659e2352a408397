from dashdocs.integrations.notifications import HttpNotificationSink, NotificationSink
from dashdocs.integrations.scan_queue import CeleryScanQueue, ScanQueue

__all__ = ["CeleryScanQueue", "HttpNotificationSink", "NotificationSink", "ScanQueue"]
