"""Lifecycle event emitter for orchestrator observers."""

import logging
from enum import Enum
from typing import Any, Callable, Union

logger = logging.getLogger(__name__)


class OrchestratorEvent(str, Enum):
	"""Events emitted over an orchestrator's lifetime."""
	STARTED = "started"
	STOPPED = "stopped"
	RENDERED = "rendered"
	RENDER_FAILED = "renderFailed"
	POLICY_REJECTED = "policyRejected"


Listener = Callable[[Any], None]


def _event_name(event_name: Union[OrchestratorEvent, str]) -> str:
	return event_name.value if isinstance(event_name, OrchestratorEvent) else str(event_name)


class EventEmitter:
	"""
	Synchronous fan-out to registered listeners.

	A listener that raises is logged and skipped; the remaining listeners
	still run and the emitting pipeline is never interrupted.
	"""

	def __init__(self):
		self._listeners: dict[str, list[Listener]] = {}

	def on(self, event_name: Union[OrchestratorEvent, str], callback: Listener) -> Callable[[], None]:
		"""Subscribe to an event. Returns a function that unsubscribes."""
		name = _event_name(event_name)
		self._listeners.setdefault(name, []).append(callback)

		def unsubscribe() -> None:
			listeners = self._listeners.get(name, [])
			if callback in listeners:
				listeners.remove(callback)

		return unsubscribe

	def emit(self, event_name: Union[OrchestratorEvent, str], payload: Any = None) -> None:
		name = _event_name(event_name)
		for listener in list(self._listeners.get(name, [])):
			try:
				listener(payload)
			except Exception as e:
				logger.error(f"Listener for '{name}' failed: {e}", exc_info=True)

	def listener_count(self, event_name: Union[OrchestratorEvent, str]) -> int:
		return len(self._listeners.get(_event_name(event_name), []))
