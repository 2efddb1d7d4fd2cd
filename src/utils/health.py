"""Service health: host resources, generation outcomes and backend reachability."""

import logging
import threading
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Deque, Dict, List, Optional

import psutil

logger = logging.getLogger(__name__)


class HealthStatus(Enum):
    """Health status levels, ordered from best to worst."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


_SEVERITY = [HealthStatus.HEALTHY, HealthStatus.DEGRADED, HealthStatus.UNHEALTHY]


def _worst(statuses: List[HealthStatus]) -> HealthStatus:
    return max(statuses, key=_SEVERITY.index, default=HealthStatus.HEALTHY)


class Outcome(str, Enum):
    """How a generate request ended."""

    SUCCEEDED = "succeeded"
    REJECTED = "rejected"
    MISCONFIGURED = "misconfigured"
    UPSTREAM_FAILED = "upstream_failed"
    INTERNAL_ERROR = "internal_error"

    @classmethod
    def from_status(cls, http_status: Optional[int]) -> "Outcome":
        """Classify a request by the HTTP status it was answered with."""
        if http_status is None or http_status < 400:
            return cls.SUCCEEDED
        if http_status < 500:
            return cls.REJECTED
        if http_status == 500:
            return cls.MISCONFIGURED
        return cls.UPSTREAM_FAILED


@dataclass
class HealthReport:
    """Result of a health check."""
    status: HealthStatus
    message: str
    details: Dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict:
        return {
            "status": self.status.value,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class HealthChecker:
    """Grades the service from host load and recent generation outcomes.

    Outcomes are kept in a bounded window so that an upstream outage shows
    up quickly and clears once generations succeed again. Requests rejected
    for bad input never affect the grade.

    Example:
        checker = HealthChecker()
        checker.record(Outcome.UPSTREAM_FAILED)
        report = checker.check_health()
    """

    # (degraded, unhealthy) thresholds
    CPU_LIMITS = (80.0, 95.0)
    MEMORY_LIMITS = (85.0, 95.0)
    UPSTREAM_FAILURE_LIMITS = (0.25, 0.75)

    def __init__(self, window: int = 50):
        """Initialize the checker.

        Args:
            window: Number of recent outcomes used to grade upstream health
        """
        self.started_at = time.time()
        self.totals: Counter = Counter()
        self._recent: Deque[Outcome] = deque(maxlen=window)
        self._lock = threading.Lock()

    def record(self, outcome: Outcome) -> None:
        # Requests are served from a thread pool
        with self._lock:
            self.totals[outcome] += 1
            self._recent.append(outcome)

    def snapshot(self) -> Counter:
        """Copy of the outcome totals, taken under the lock."""
        with self._lock:
            return Counter(self.totals)

    @property
    def request_count(self) -> int:
        return sum(self.snapshot().values())

    @property
    def error_count(self) -> int:
        totals = self.snapshot()
        return sum(totals.values()) - totals[Outcome.SUCCEEDED]

    def upstream_failure_rate(self) -> float:
        """Share of recent generations that reached the backend and failed there."""
        with self._lock:
            reached = [o for o in self._recent if o in (Outcome.SUCCEEDED, Outcome.UPSTREAM_FAILED)]
        if not reached:
            return 0.0
        return reached.count(Outcome.UPSTREAM_FAILED) / len(reached)

    def _grade(self, label: str, value: float, limits, issues: List[str]) -> HealthStatus:
        degraded, unhealthy = limits
        if value > unhealthy:
            issues.append(f"critical {label}")
            return HealthStatus.UNHEALTHY
        if value > degraded:
            issues.append(f"high {label}")
            return HealthStatus.DEGRADED
        return HealthStatus.HEALTHY

    def check_health(self, include_details: bool = True) -> HealthReport:
        """Grade host load and the recent upstream failure rate.

        Args:
            include_details: Whether to include the underlying numbers

        Returns:
            HealthReport graded by the worst individual check
        """
        try:
            cpu = psutil.cpu_percent(interval=0.1)
            memory = psutil.virtual_memory().percent
        except Exception as e:
            logger.error(f"Reading host metrics failed: {e}")
            return HealthReport(
                status=HealthStatus.UNHEALTHY,
                message=f"Health check error: {e}",
                details={"error": str(e)},
            )

        failure_rate = self.upstream_failure_rate()
        issues: List[str] = []
        grades = [
            self._grade(f"CPU usage ({cpu:.1f}%)", cpu, self.CPU_LIMITS, issues),
            self._grade(f"memory usage ({memory:.1f}%)", memory, self.MEMORY_LIMITS, issues),
            self._grade(
                f"upstream failure rate ({failure_rate:.0%})",
                failure_rate,
                self.UPSTREAM_FAILURE_LIMITS,
                issues,
            ),
        ]
        totals = self.snapshot()
        if totals[Outcome.MISCONFIGURED]:
            issues.append("requests failed on server misconfiguration")
            grades.append(HealthStatus.UNHEALTHY)

        status = _worst(grades)
        message = "; ".join(issues) if issues else "All systems operational"

        details: Dict = {}
        if include_details:
            uptime = time.time() - self.started_at
            details = {
                "uptime_seconds": round(uptime, 1),
                "uptime_human": self._format_uptime(uptime),
                "cpu_usage_percent": round(cpu, 2),
                "memory_usage_percent": round(memory, 2),
                "requests_total": sum(totals.values()),
                "requests_failed": sum(totals.values()) - totals[Outcome.SUCCEEDED],
                "outcomes": {outcome.value: totals[outcome] for outcome in Outcome},
                "upstream_failure_rate": round(failure_rate, 4),
            }

        return HealthReport(status=status, message=message, details=details)

    def probe_backend(self, backend) -> HealthReport:
        """Ask a backend whether its provider is reachable."""
        started = time.time()
        try:
            reachable = backend.health_check()
        except Exception as e:
            logger.warning(f"Probing {backend.name} raised: {e}")
            reachable = False

        latency_ms = round((time.time() - started) * 1000, 1)
        if reachable:
            return HealthReport(
                status=HealthStatus.HEALTHY,
                message=f"{backend.name} reachable",
                details={"backend": backend.name, "latency_ms": latency_ms},
            )
        return HealthReport(
            status=HealthStatus.UNHEALTHY,
            message=f"{backend.name} unreachable",
            details={"backend": backend.name, "latency_ms": latency_ms},
        )

    @staticmethod
    def _format_uptime(seconds: float) -> str:
        """Format uptime as e.g. ``1d 2h 3m 4s``."""
        remaining = int(seconds)
        parts = []
        for unit, size in (("d", 86400), ("h", 3600), ("m", 60)):
            value, remaining = divmod(remaining, size)
            if value:
                parts.append(f"{value}{unit}")
        if remaining or not parts:
            parts.append(f"{remaining}s")
        return " ".join(parts)

    def __repr__(self) -> str:
        return f"HealthChecker(uptime={self._format_uptime(time.time() - self.started_at)}, requests={self.request_count})"
