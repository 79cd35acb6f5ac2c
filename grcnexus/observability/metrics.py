"""Lightweight in-process metrics for GRC Nexus.

One instance per application; no Prometheus client required.
"""

from __future__ import annotations

from collections import defaultdict, deque
from threading import Lock
from typing import Optional


class InMemoryMetrics:
    def __init__(self, latency_window: int = 2000) -> None:
        self._lock = Lock()
        self._requests_total = 0
        self._status_counts: dict[str, int] = defaultdict(int)
        self._path_counts: dict[str, int] = defaultdict(int)
        self._tenant_counts: dict[str, int] = defaultdict(int)
        self._denials: dict[str, int] = defaultdict(int)
        self._logins: dict[str, int] = defaultdict(int)
        self._latencies_ms = deque(maxlen=latency_window)

    def observe_request(
        self,
        path: str,
        status_code: int,
        duration_ms: float,
        tenant_id: Optional[str] = None,
    ) -> None:
        bucket = f"{status_code // 100}xx"
        with self._lock:
            self._requests_total += 1
            self._status_counts[bucket] += 1
            self._path_counts[path] += 1
            if tenant_id:
                self._tenant_counts[tenant_id] += 1
            self._latencies_ms.append(float(duration_ms))

    def observe_denial(self, required: str) -> None:
        with self._lock:
            self._denials[required] += 1

    def observe_login(self, outcome: str) -> None:
        """Count a login attempt by outcome (`success` or the rejection reason)."""
        with self._lock:
            self._logins[outcome] += 1

    def snapshot(self) -> dict:
        with self._lock:
            sorted_latencies = sorted(self._latencies_ms)

            def percentile(p: float) -> float:
                if not sorted_latencies:
                    return 0.0
                idx = int((len(sorted_latencies) - 1) * p)
                return round(sorted_latencies[idx], 2)

            return {
                "requests_total": self._requests_total,
                "status_counts": dict(self._status_counts),
                "path_counts": dict(self._path_counts),
                "tenant_counts": dict(self._tenant_counts),
                "permission_denials": dict(self._denials),
                "login_outcomes": dict(self._logins),
                "latency_ms": {
                    "samples": len(sorted_latencies),
                    "p50": percentile(0.50),
                    "p95": percentile(0.95),
                    "p99": percentile(0.99),
                },
            }
