"""
Prediction Monitoring
=====================
In-process telemetry for the price predictor.

Tracks:
- Request latency (p50, p95, p99)
- Predicted price distribution
- Confidence label mix and the share of queries whose location the
  regression actually knows
- Error rates

Exposed via ``GET /monitoring/metrics``.  State is in-memory and
bounded; a snapshot can be appended to ``metrics_history.jsonl`` on
shutdown.
"""

import json
import logging
import time
from collections import Counter, deque
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Optional

import numpy as np

from ml.predictor import Confidence, PredictionResult

logger = logging.getLogger(__name__)


class PredictionMonitor:
    """Thread-safe collector of per-prediction telemetry."""

    def __init__(self, max_history: int = 10_000, log_dir: Optional[Path] = None):
        self._lock = Lock()
        self._log_dir = log_dir

        self._latencies: deque[float] = deque(maxlen=max_history)
        self._predictions: deque[float] = deque(maxlen=max_history)
        self._timestamps: deque[float] = deque(maxlen=max_history)

        self.total_requests: int = 0
        self.total_errors: int = 0
        self._confidence: Counter = Counter()
        self._in_model: int = 0
        self._start_time: float = time.time()

        logger.info("PredictionMonitor initialised (max_history=%d)", max_history)

    # ── Recording ────────────────────────────────────────────────────────

    def record_prediction(self, result: PredictionResult, latency_ms: float) -> None:
        with self._lock:
            self._latencies.append(latency_ms)
            self._predictions.append(float(result.predicted))
            self._timestamps.append(time.time())
            self._confidence[result.confidence.value] += 1
            if result.in_model:
                self._in_model += 1
            self.total_requests += 1

    def record_error(self) -> None:
        with self._lock:
            self.total_errors += 1
            self.total_requests += 1

    # ── Metrics Snapshot ─────────────────────────────────────────────────

    def get_metrics(self) -> dict:
        """Return a JSON-serializable metrics summary."""
        with self._lock:
            now = time.time()
            lat = np.array(self._latencies) if self._latencies else np.array([0.0])
            preds = np.array(self._predictions) if self._predictions else np.array([0.0])

            recent_window = 300  # 5 min
            recent = sum(1 for t in self._timestamps if now - t <= recent_window)
            served = self.total_requests - self.total_errors

            return {
                "uptime_seconds": round(now - self._start_time, 1),
                "total_requests": self.total_requests,
                "total_errors": self.total_errors,
                "error_rate": round(self.total_errors / max(self.total_requests, 1), 4),
                "requests_per_minute_5m": round(recent / (recent_window / 60), 2),
                "latency_ms": {
                    "p50": round(float(np.percentile(lat, 50)), 2),
                    "p95": round(float(np.percentile(lat, 95)), 2),
                    "p99": round(float(np.percentile(lat, 99)), 2),
                    "mean": round(float(np.mean(lat)), 2),
                },
                "predictions": {
                    "count_in_buffer": len(self._predictions),
                    "median": round(float(np.median(preds)), 2),
                    "min": round(float(np.min(preds)), 2),
                    "max": round(float(np.max(preds)), 2),
                },
                "confidence": {c.value: self._confidence.get(c.value, 0) for c in Confidence},
                "in_model_rate": round(self._in_model / max(served, 1), 4),
                "recorded_at": datetime.now(timezone.utc).isoformat(),
            }

    def flush_to_log(self) -> None:
        """Append the current snapshot to ``metrics_history.jsonl``."""
        if self._log_dir is None:
            return
        metrics = self.get_metrics()
        self._log_dir.mkdir(parents=True, exist_ok=True)
        path = self._log_dir / "metrics_history.jsonl"
        with open(path, "a") as f:
            f.write(json.dumps(metrics) + "\n")
        logger.info("Metrics flushed to %s", path)
