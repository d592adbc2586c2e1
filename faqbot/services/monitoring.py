"""
Request performance counters with simple threshold alerts.
"""

import threading
import time
from collections import deque
from typing import Any, Deque, Dict, List

from loguru import logger

ERROR_RATE_THRESHOLD = 0.1
SLOW_RESPONSE_MS = 5000
HIGH_AVERAGE_MS = 3000
ALERT_COOLDOWN_SECONDS = 5 * 60
MAX_ALERTS = 100
MIN_REQUESTS_FOR_ERROR_RATE = 10


class PerformanceMonitor:
    def __init__(self, clock=time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self.started_at = clock()
        self.request_count = 0
        self.error_count = 0
        self.response_time_sum = 0.0
        self.last_response_time = 0.0
        self.alerts: Deque[Dict[str, Any]] = deque(maxlen=MAX_ALERTS)
        self._last_alert: Dict[str, float] = {}

    @property
    def average_response_time(self) -> float:
        return self.response_time_sum / self.request_count if self.request_count else 0.0

    @property
    def error_rate(self) -> float:
        return self.error_count / self.request_count if self.request_count else 0.0

    def record_request(self, response_time_ms: float, success: bool = True) -> None:
        with self._lock:
            self.request_count += 1
            self.response_time_sum += response_time_ms
            self.last_response_time = response_time_ms
            if not success:
                self.error_count += 1
            self._check_alerts(response_time_ms)

    def _check_alerts(self, response_time_ms: float) -> None:
        if self.request_count >= MIN_REQUESTS_FOR_ERROR_RATE and self.error_rate > ERROR_RATE_THRESHOLD:
            self._trigger("HIGH_ERROR_RATE", f"error rate {self.error_rate:.1%}", self.error_rate)
        if response_time_ms > SLOW_RESPONSE_MS:
            self._trigger("SLOW_RESPONSE", f"response took {response_time_ms:.0f}ms", response_time_ms)
        if self.average_response_time > HIGH_AVERAGE_MS:
            self._trigger(
                "HIGH_AVERAGE_RESPONSE_TIME",
                f"average response time {self.average_response_time:.0f}ms",
                self.average_response_time,
            )

    def _trigger(self, alert_type: str, message: str, value: float) -> None:
        now = self._clock()
        if now - self._last_alert.get(alert_type, float("-inf")) < ALERT_COOLDOWN_SECONDS:
            return
        self._last_alert[alert_type] = now
        self.alerts.append({"type": alert_type, "message": message, "value": value, "timestamp": now})
        logger.warning(f"ALERT {alert_type}: {message}")

    def recent_alerts(self, limit: int = 10) -> List[Dict[str, Any]]:
        return list(self.alerts)[-limit:]

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "uptime_seconds": round(self._clock() - self.started_at, 1),
                "request_count": self.request_count,
                "error_count": self.error_count,
                "error_rate": round(self.error_rate, 4),
                "average_response_time_ms": round(self.average_response_time, 2),
                "last_response_time_ms": round(self.last_response_time, 2),
                "alerts": self.recent_alerts(),
            }


monitor = PerformanceMonitor()
