from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from threading import Lock


@dataclass
class EndpointMetric:
    total_requests: int = 0
    total_duration_ms: float = 0.0
    error_count: int = 0

    def record(self, status_code: int, duration_ms: float) -> None:
        self.total_requests += 1
        self.total_duration_ms += duration_ms
        if status_code >= 400:
            self.error_count += 1

    def as_dict(self) -> dict[str, float | int]:
        avg = self.total_duration_ms / self.total_requests if self.total_requests else 0.0
        return {
            "total_requests": self.total_requests,
            "avg_duration_ms": round(avg, 2),
            "error_count": self.error_count,
        }


class InMemoryRequestMetrics:
    """Contadores por endpoint e por loja, mais eventos de domínio."""

    def __init__(self) -> None:
        self._endpoints: dict[tuple[str, str], EndpointMetric] = {}
        self._stores: dict[str, EndpointMetric] = {}
        self._events: Counter[str] = Counter()
        self._lock = Lock()

    def observe(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        duration_ms: float,
        store_id: str | None = None,
    ) -> None:
        with self._lock:
            self._endpoints.setdefault((endpoint, method), EndpointMetric()).record(status_code, duration_ms)
            if store_id:
                self._stores.setdefault(store_id, EndpointMetric()).record(status_code, duration_ms)

    def incr(self, event_name: str, amount: int = 1) -> None:
        with self._lock:
            self._events[event_name] += amount

    def snapshot(self) -> dict[str, dict]:
        with self._lock:
            return {
                "endpoints": {
                    f"{method} {endpoint}": metric.as_dict()
                    for (endpoint, method), metric in self._endpoints.items()
                },
                "stores": {store_id: metric.as_dict() for store_id, metric in self._stores.items()},
                "events": dict(self._events),
            }


request_metrics = InMemoryRequestMetrics()
