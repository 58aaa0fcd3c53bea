"""
Audit Log - append-only record of every pipeline invocation's outcome.

One ``ExecutionAuditRecord`` is written when an invocation terminates,
whether it succeeded, was rejected by policy, was throttled or failed.
Stored records are never mutated; reads hand out copies.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol

from pydantic import BaseModel, Field

from .errors import ExecutionStatus

logger = logging.getLogger(__name__)


class ExecutionMode(str, Enum):
	"""Which entry point started the invocation."""
	PROMPT = "prompt"
	PLAN = "plan"
	ROLLBACK = "rollback"
	REPLAY = "replay"
	EVENT = "event"


class RuntimeEvent(BaseModel):
	"""An interaction event dispatched to a rendered plan."""
	type: str
	payload: dict[str, Any] = Field(default_factory=dict)


class ExecutionAuditRecord(BaseModel):
	"""Outcome of one pipeline invocation."""
	trace_id: str
	mode: ExecutionMode
	status: ExecutionStatus
	started_at: datetime
	completed_at: datetime
	duration_ms: float = 0.0

	prompt: Optional[str] = None
	tenant_id: Optional[str] = None
	plan_id: Optional[str] = None
	plan_version: Optional[int] = None

	diagnostics_count: int = 0
	security_issue_count: int = 0
	event: Optional[RuntimeEvent] = None
	error_message: Optional[str] = None

	@property
	def succeeded(self) -> bool:
		return self.status == ExecutionStatus.SUCCEEDED


class AuditLog(Protocol):
	"""Storage contract shared by all audit log implementations."""

	def append(self, record: ExecutionAuditRecord) -> None: ...

	def get(self, trace_id: str) -> Optional[ExecutionAuditRecord]: ...

	def list(self, limit: Optional[int] = None) -> list[ExecutionAuditRecord]: ...

	def clear(self) -> None: ...


def _newest_first(records: list[ExecutionAuditRecord]) -> list[ExecutionAuditRecord]:
	# Reverse first so equal start times keep the latest append in front
	return sorted(reversed(records), key=lambda r: r.started_at, reverse=True)


class InMemoryAuditLog:
	"""Process-local audit log; append order equals completion order."""

	def __init__(self):
		self._records: list[ExecutionAuditRecord] = []
		self._lock = threading.Lock()

	def append(self, record: ExecutionAuditRecord) -> None:
		with self._lock:
			self._records.append(record.model_copy(deep=True))

	def get(self, trace_id: str) -> Optional[ExecutionAuditRecord]:
		for record in self._records:
			if record.trace_id == trace_id:
				return record.model_copy(deep=True)
		return None

	def list(self, limit: Optional[int] = None) -> list[ExecutionAuditRecord]:
		with self._lock:
			ordered = _newest_first(list(self._records))
		if limit is not None and limit > 0:
			ordered = ordered[:limit]
		return [record.model_copy(deep=True) for record in ordered]

	def clear(self) -> None:
		with self._lock:
			self._records.clear()


class SqliteAuditLog:
	"""SQLite-backed audit log storing each record as JSON."""

	def __init__(self, db_path: str):
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)
		self._ensure_table()

	def _ensure_table(self) -> None:
		with sqlite3.connect(str(self.db_path)) as conn:
			conn.execute("""
				CREATE TABLE IF NOT EXISTS execution_audits (
					seq INTEGER PRIMARY KEY AUTOINCREMENT,
					trace_id TEXT NOT NULL,
					status TEXT NOT NULL,
					started_at TEXT NOT NULL,
					data TEXT NOT NULL
				)
			""")
			conn.execute("""
				CREATE INDEX IF NOT EXISTS idx_execution_audits_trace ON execution_audits(trace_id)
			""")
			conn.execute("""
				CREATE INDEX IF NOT EXISTS idx_execution_audits_started ON execution_audits(started_at)
			""")

	def _connect(self) -> sqlite3.Connection:
		conn = sqlite3.connect(str(self.db_path))
		conn.row_factory = sqlite3.Row
		return conn

	def append(self, record: ExecutionAuditRecord) -> None:
		with self._connect() as conn:
			conn.execute(
				"INSERT INTO execution_audits (trace_id, status, started_at, data) VALUES (?, ?, ?, ?)",
				(
					record.trace_id,
					record.status.value,
					record.started_at.isoformat(timespec="microseconds"),
					record.model_dump_json(),
				),
			)

	def get(self, trace_id: str) -> Optional[ExecutionAuditRecord]:
		with self._connect() as conn:
			row = conn.execute(
				"SELECT data FROM execution_audits WHERE trace_id = ? ORDER BY seq ASC LIMIT 1",
				(trace_id,),
			).fetchone()
		return ExecutionAuditRecord.model_validate_json(row["data"]) if row else None

	def list(self, limit: Optional[int] = None) -> list[ExecutionAuditRecord]:
		query = "SELECT data FROM execution_audits ORDER BY started_at DESC, seq DESC"
		params: list[Any] = []
		if limit is not None and limit > 0:
			query += " LIMIT ?"
			params.append(limit)

		with self._connect() as conn:
			rows = conn.execute(query, params).fetchall()

		return [ExecutionAuditRecord.model_validate_json(row["data"]) for row in rows]

	def clear(self) -> None:
		with self._connect() as conn:
			cursor = conn.execute("DELETE FROM execution_audits")
		logger.info(f"Cleared {cursor.rowcount} audit records")
