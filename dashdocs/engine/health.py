"""
DashDocs Health Check — connectivity checks for the engine's collaborators.

Provides:
    - HealthCheckService: named sync checks (database, Redis broker, file store)
    - Overall health summary for `dashdocs health` and readiness checks
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import redis
from sqlalchemy.engine import Engine

from dashdocs.db.session import ping
from dashdocs.storage.local import LocalFileStore

logger = logging.getLogger("dashdocs.engine.health")


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Result of a single health check."""
    name: str
    status: HealthStatus
    latency_ms: float = 0.0
    message: str = ""
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
            "message": self.message,
            "checked_at": self.checked_at.isoformat(),
        }


class HealthCheckService:
    """
    Registry of named health checks.

    Usage:
        service = HealthCheckService()
        service.register_database_check(engine)
        service.register_redis_check(redis_url)
        summary = service.get_health()
    """

    def __init__(self):
        self._checks: Dict[str, Callable[[], bool]] = {}
        self._results: Dict[str, HealthCheckResult] = {}

    def register_check(self, name: str, check_fn: Callable[[], bool]) -> None:
        """Register a check. ``check_fn`` returns True when healthy."""
        self._checks[name] = check_fn
        self._results[name] = HealthCheckResult(name=name, status=HealthStatus.UNKNOWN)
        logger.debug(f"Registered health check: {name}")

    def register_database_check(self, engine: Engine, name: str = "database") -> None:
        """SELECT 1 against the document store."""
        self.register_check(name, lambda: ping(engine))

    def register_redis_check(self, redis_url: str, name: str = "redis") -> None:
        """PING the Redis broker behind the scan queue."""
        def redis_check() -> bool:
            try:
                client = redis.from_url(redis_url, socket_timeout=5)
                return bool(client.ping())
            except redis.RedisError as e:
                logger.debug(f"Redis health check failed: {e}")
                return False

        self.register_check(name, redis_check)

    def register_file_store_check(self, store: LocalFileStore, name: str = "file_store") -> None:
        """The file store root must be writable."""
        self.register_check(name, store.is_writable)

    def check(self, name: str) -> HealthCheckResult:
        """Run one registered check and remember its result."""
        if name not in self._checks:
            return HealthCheckResult(
                name=name,
                status=HealthStatus.UNKNOWN,
                message=f"No health check registered for '{name}'",
            )

        start = time.monotonic()
        try:
            healthy = self._checks[name]()
            latency_ms = (time.monotonic() - start) * 1000
            result = HealthCheckResult(
                name=name,
                status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
                latency_ms=latency_ms,
                message="OK" if healthy else "Check returned unhealthy",
            )
        except Exception as e:
            result = HealthCheckResult(
                name=name,
                status=HealthStatus.UNHEALTHY,
                latency_ms=(time.monotonic() - start) * 1000,
                message=str(e),
            )

        self._results[name] = result
        return result

    def check_all(self) -> Dict[str, HealthCheckResult]:
        for name in self._checks:
            self.check(name)
        return dict(self._results)

    def get_health(self) -> Dict[str, Any]:
        """
        Run every check and summarise.

        Returns:
            Dict with overall status ("healthy" only when every check is) and
            the individual results.
        """
        results = self.check_all()
        if all(r.status == HealthStatus.HEALTHY for r in results.values()):
            overall = "healthy"
        else:
            overall = "unhealthy"
        return {
            "status": overall,
            "checks": {name: r.to_dict() for name, r in results.items()},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @property
    def registered_checks(self) -> List[str]:
        return list(self._checks.keys())
