"""
API Metrics
Per-adapter counters for upstream HTTP attempts, served by /api/metrics.

Every attempt of an adapter request is recorded, retries included, as one of:
success, error, timeout, rate_limited.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

SLOW_CALL_MS = 2000
RESPONSE_WINDOW = 100

STATUSES = ("success", "error", "timeout", "rate_limited")
FAILURE_LABELS = {"timeout": "Timeout", "rate_limited": "Rate limited"}


@dataclass
class ServiceMetrics:
    """Running counters for one adapter; averages cover the last RESPONSE_WINDOW attempts"""
    counts: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(STATUSES, 0))
    max_response_ms: float = 0.0
    last_error: Optional[str] = None
    last_error_time: Optional[str] = None
    last_success_time: Optional[str] = None
    response_times: Deque[float] = field(default_factory=lambda: deque(maxlen=RESPONSE_WINDOW))

    @property
    def total_calls(self) -> int:
        return sum(self.counts.values())

    def record(self, status: str, response_ms: float, error_message: Optional[str], at: str):
        status = status if status in self.counts else "error"
        self.counts[status] += 1
        self.response_times.append(response_ms)
        self.max_response_ms = max(self.max_response_ms, response_ms)

        if status == "success":
            self.last_success_time = at
        else:
            self.last_error = FAILURE_LABELS.get(status, error_message)
            self.last_error_time = at

    def stats(self, service: str) -> Dict[str, Any]:
        total = self.total_calls
        successes = self.counts["success"]
        average = sum(self.response_times) / len(self.response_times) if self.response_times else 0.0
        return {
            "service": service,
            "total_calls": total,
            "success_count": successes,
            "error_count": self.counts["error"],
            "timeout_count": self.counts["timeout"],
            "rate_limit_count": self.counts["rate_limited"],
            "failure_count": total - successes,
            "success_rate": round(successes / total * 100, 1) if total else 0,
            "avg_response_ms": round(average, 1),
            "max_response_ms": round(self.max_response_ms, 1),
            "last_error": self.last_error,
            "last_error_time": self.last_error_time,
            "last_success_time": self.last_success_time,
        }


class APIMetricsTracker:
    """In-process call metrics for the Orbiter and Hop adapters"""

    SERVICES = ("orbiter", "hop")

    def __init__(self, max_recent_failures: int = 1000):
        self._services: Dict[str, ServiceMetrics] = {}
        self._recent_failures: Deque[Dict[str, Any]] = deque(maxlen=max_recent_failures)

    def record_call(
        self,
        service: str,
        endpoint: str,
        status: str,
        response_time_s: float,
        attempt: int = 1,
        error_message: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        """Record one upstream HTTP attempt"""
        service = service.lower()
        response_ms = response_time_s * 1000
        at = datetime.now(timezone.utc).isoformat()

        self._services.setdefault(service, ServiceMetrics()).record(status, response_ms, error_message, at)

        if status != "success":
            self._recent_failures.append({
                "service": service,
                "endpoint": endpoint,
                "status": status,
                "response_time_ms": round(response_ms, 2),
                "timestamp": at,
                "attempt": attempt,
                "error_message": error_message,
                "status_code": status_code,
            })

        if response_ms > SLOW_CALL_MS:
            logger.warning(f"[APIMetrics] Slow call: {service} {endpoint} took {response_ms:.0f}ms")

    def get_service_stats(self, service: str) -> Dict[str, Any]:
        metrics = self._services.get(service.lower())
        if metrics is None:
            return {"service": service, "status": "no_data", "total_calls": 0}
        return metrics.stats(service)

    def get_all_stats(self) -> Dict[str, Any]:
        services = {
            name: self.get_service_stats(name)
            for name in sorted(set(self._services) | set(self.SERVICES))
        }
        total = sum(s["total_calls"] for s in services.values())
        failures = sum(s.get("failure_count", 0) for s in services.values())
        return {
            "total_api_calls": total,
            "total_errors": failures,
            "overall_success_rate": round((total - failures) / total * 100, 1) if total else 100,
            "services": services,
        }

    def get_recent_errors(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Failed attempts, newest first"""
        return list(reversed(self._recent_failures))[:max(0, limit)]

    def reset(self):
        self._services.clear()
        self._recent_failures.clear()


api_metrics = APIMetricsTracker()
