"""
Request metrics for the GenTerm backend.

Each chat request is recorded under its route ("text" or "image") and appended
as one JSON line to metrics.jsonl. The summary served on /metrics adds process
memory (psutil) and overall throughput.
"""
from __future__ import annotations

import json
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path

import psutil

from .config import METRICS_DIR
from .observability import get_logger

logger = get_logger(__name__)


@dataclass
class RouteStats:
    requests: int = 0
    failures: int = 0
    total_latency_ms: float = 0.0
    min_latency_ms: float = float("inf")
    max_latency_ms: float = 0.0
    context_items: int = 0

    def add(self, latency_ms: float, success: bool, context_items: int):
        self.requests += 1
        self.total_latency_ms += latency_ms
        self.min_latency_ms = min(self.min_latency_ms, latency_ms)
        self.max_latency_ms = max(self.max_latency_ms, latency_ms)
        self.context_items += context_items
        if not success:
            self.failures += 1

    def merge(self, other: "RouteStats"):
        self.requests += other.requests
        self.failures += other.failures
        self.total_latency_ms += other.total_latency_ms
        self.min_latency_ms = min(self.min_latency_ms, other.min_latency_ms)
        self.max_latency_ms = max(self.max_latency_ms, other.max_latency_ms)
        self.context_items += other.context_items

    def latency(self) -> dict:
        if not self.requests:
            return {"avg_ms": 0.0, "min_ms": 0.0, "max_ms": 0.0}
        return {
            "avg_ms": round(self.total_latency_ms / self.requests, 2),
            "min_ms": round(self.min_latency_ms, 2),
            "max_ms": round(self.max_latency_ms, 2),
        }


class MetricsCollector:
    """Thread-safe per-route request counters with a JSONL request log."""

    def __init__(self, log_dir: str | Path = METRICS_DIR):
        self._lock = threading.Lock()
        self._started = time.time()
        self._routes: dict[str, RouteStats] = {}
        self._process = psutil.Process(os.getpid())

        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        self.log_path = log_dir / "metrics.jsonl"

    def record_request(
        self,
        latency_ms: float,
        success: bool,
        route: str = "text",
        context_items: int = 0,
    ):
        with self._lock:
            self._routes.setdefault(route, RouteStats()).add(latency_ms, success, context_items)

        entry = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
            "route": route,
            "success": success,
            "latency_ms": round(latency_ms, 2),
            "context_items": context_items,
        }
        try:
            with open(self.log_path, "a", encoding="utf-8") as fh:
                fh.write(json.dumps(entry) + "\n")
        except OSError as exc:
            logger.warning("metrics_write_failed", path=str(self.log_path), error=str(exc))

    def get_summary(self) -> dict:
        with self._lock:
            routes = {name: RouteStats(**vars(stats)) for name, stats in self._routes.items()}

        overall = RouteStats()
        for stats in routes.values():
            overall.merge(stats)

        uptime_s = max(time.time() - self._started, 1e-9)
        memory = self._process.memory_info()
        mb = 1024 * 1024

        return {
            "latency": overall.latency(),
            "throughput": {
                "total_requests": overall.requests,
                "requests_per_second": round(overall.requests / uptime_s, 4),
                "uptime_seconds": round(uptime_s, 1),
            },
            "memory": {"rss_mb": round(memory.rss / mb, 1), "vms_mb": round(memory.vms / mb, 1)},
            "routes": {name: stats.requests for name, stats in routes.items()},
            "errors": {
                "count": overall.failures,
                "rate_percent": round(overall.failures / overall.requests * 100, 2) if overall.requests else 0.0,
            },
        }


metrics_collector = MetricsCollector()
