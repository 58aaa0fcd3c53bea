"""
Performance tracking for pipeline invocations.

Each invocation opens a measurement under a label when it starts and closes
it exactly once when it terminates. Closing an unknown or already closed
label is a no-op that returns None.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PerformanceMetric:
	"""A closed measurement."""
	label: str
	started_at: float
	ended_at: float
	duration_ms: float


class PerformanceTracker:
	"""Collects per-invocation timings in memory."""

	def __init__(self, clock: Callable[[], float] = time.perf_counter, max_metrics: int = 1000):
		self._clock = clock
		self._max_metrics = max_metrics
		self._timers: dict[str, float] = {}
		self._metrics: list[PerformanceMetric] = []
		self._lock = threading.Lock()

	def start_measurement(self, label: str) -> None:
		with self._lock:
			self._timers[label] = self._clock()

	def end_measurement(self, label: str) -> Optional[PerformanceMetric]:
		with self._lock:
			started_at = self._timers.pop(label, None)
			if started_at is None:
				return None

			ended_at = self._clock()
			metric = PerformanceMetric(
				label=label,
				started_at=started_at,
				ended_at=ended_at,
				duration_ms=round((ended_at - started_at) * 1000, 3),
			)
			self._metrics.append(metric)
			if len(self._metrics) > self._max_metrics:
				del self._metrics[: len(self._metrics) - self._max_metrics]

		logger.debug(f"{label} took {metric.duration_ms}ms")
		return metric

	def is_open(self, label: str) -> bool:
		return label in self._timers

	def get_metrics(self) -> list[PerformanceMetric]:
		with self._lock:
			return list(self._metrics)

	def reset(self) -> None:
		with self._lock:
			self._timers.clear()
			self._metrics.clear()
