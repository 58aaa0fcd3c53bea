"""Shared utilities for visualizer views."""

from datetime import datetime
from typing import Union

from ..errors import ExecutionStatus

STATUS_STYLES = {
	ExecutionStatus.SUCCEEDED: "green",
	ExecutionStatus.REJECTED: "magenta",
	ExecutionStatus.THROTTLED: "yellow",
	ExecutionStatus.FAILED: "red",
}


def format_duration_ms(duration_ms: float) -> str:
	"""Format a duration for display. e.g. '45ms', '1.2s', '2m 3s'."""
	seconds = duration_ms / 1000
	if seconds < 0.001:
		return "<1ms"
	if seconds < 1.0:
		return f"{duration_ms:.0f}ms"
	if seconds < 60.0:
		return f"{seconds:.1f}s"
	minutes = int(seconds // 60)
	secs = seconds % 60
	return f"{minutes}m {secs:.0f}s"


def format_timestamp(value: Union[datetime, str]) -> str:
	"""Format a timestamp as relative time (e.g. '2m ago') or absolute."""
	try:
		dt = value if isinstance(value, datetime) else datetime.fromisoformat(value)
		delta = datetime.now() - dt
		total_secs = int(delta.total_seconds())

		if total_secs < 0:
			return dt.isoformat()[:19]
		if total_secs < 60:
			return f"{total_secs}s ago"
		if total_secs < 3600:
			return f"{total_secs // 60}m ago"
		if total_secs < 86400:
			return f"{total_secs // 3600}h ago"
		days = total_secs // 86400
		return f"{days}d ago"
	except (ValueError, TypeError):
		return str(value)[:19]


def truncate(text: str, max_len: int = 60) -> str:
	"""Shorten text for table display."""
	if not text:
		return ""
	text = " ".join(text.split())
	if len(text) <= max_len:
		return text
	return text[:max_len - 3] + "..."


def status_markup(status: ExecutionStatus) -> str:
	"""Return Rich markup for an audit status."""
	style = STATUS_STYLES.get(status, "white")
	return f"[{style}]{status.value}[/{style}]"
