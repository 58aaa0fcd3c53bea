"""
Plan Registry - append-only, versioned plan storage.

Features:
- Registration never overwrites a stored (id, version) snapshot; a
  colliding registration is re-stamped with the next free version
- Latest-version resolution and per-plan version listings
- Deep copies on every read so callers cannot mutate stored snapshots
- In-memory and SQLite-backed implementations with the same contract
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol

from .models import Plan, PlanSummary, PlanVersionRecord

logger = logging.getLogger(__name__)


class PlanRegistry(Protocol):
	"""Storage contract shared by all registry implementations."""

	def register(self, plan: Plan) -> PlanVersionRecord: ...

	def get(self, plan_id: str, version: Optional[int] = None) -> Optional[PlanVersionRecord]: ...

	def list(self) -> list[PlanSummary]: ...

	def list_versions(self, plan_id: str) -> list[PlanVersionRecord]: ...

	def remove(self, plan_id: str) -> None: ...

	def clear(self) -> None: ...


def generate_plan_id() -> str:
	"""Create a fresh plan id token."""
	return f"plan_{uuid.uuid4().hex[:12]}"


def normalize_plan(plan: Plan) -> Plan:
	"""
	Return a deep copy of the plan with a usable id and version.

	Blank ids are replaced with a generated token and anything that is not a
	positive integer version becomes 1.
	"""
	normalized = plan.model_copy(deep=True)

	plan_id = normalized.id.strip() if isinstance(normalized.id, str) else ""
	normalized.id = plan_id or generate_plan_id()

	version = normalized.version
	if isinstance(version, bool) or not isinstance(version, int) or version < 1:
		normalized.version = 1

	return normalized


def _clone(record: PlanVersionRecord) -> PlanVersionRecord:
	return record.model_copy(deep=True)


class InMemoryPlanRegistry:
	"""
	Process-local plan registry.

	The version-bump sequence (read existing versions, pick the next one,
	store) runs under a lock so concurrent threads cannot both claim the
	same version.
	"""

	def __init__(self):
		self._records: dict[str, dict[int, PlanVersionRecord]] = {}
		self._lock = threading.Lock()

	def register(self, plan: Plan) -> PlanVersionRecord:
		normalized = normalize_plan(plan)

		with self._lock:
			versions = self._records.setdefault(normalized.id, {})
			if normalized.version in versions:
				bumped = max(versions) + 1
				logger.info(
					f"Plan {normalized.id} v{normalized.version} already registered, storing as v{bumped}"
				)
				normalized.version = bumped

			record = PlanVersionRecord(
				plan_id=normalized.id,
				version=normalized.version,
				plan=normalized,
			)
			versions[record.version] = record

		return _clone(record)

	def get(self, plan_id: str, version: Optional[int] = None) -> Optional[PlanVersionRecord]:
		versions = self._records.get(plan_id)
		if not versions:
			return None

		resolved = max(versions) if version is None else version
		record = versions.get(resolved)
		return _clone(record) if record else None

	def list(self) -> list[PlanSummary]:
		summaries = []
		for plan_id, versions in self._records.items():
			if not versions:
				continue
			ordered = sorted(versions)
			summaries.append(PlanSummary(plan_id=plan_id, latest_version=ordered[-1], versions=ordered))
		return sorted(summaries, key=lambda s: s.plan_id)

	def list_versions(self, plan_id: str) -> list[PlanVersionRecord]:
		versions = self._records.get(plan_id, {})
		return [_clone(versions[v]) for v in sorted(versions)]

	def remove(self, plan_id: str) -> None:
		with self._lock:
			self._records.pop(plan_id, None)

	def clear(self) -> None:
		with self._lock:
			self._records.clear()


class SqlitePlanRegistry:
	"""
	SQLite-backed plan registry.

	Usage:
		registry = SqlitePlanRegistry("data/plans.db")
		record = registry.register(plan)
		latest = registry.get(record.plan_id)
	"""

	def __init__(self, db_path: str):
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)
		self._lock = threading.Lock()
		self._ensure_table()

	def _ensure_table(self) -> None:
		with sqlite3.connect(str(self.db_path)) as conn:
			conn.execute("""
				CREATE TABLE IF NOT EXISTS plan_versions (
					plan_id TEXT NOT NULL,
					version INTEGER NOT NULL,
					data TEXT NOT NULL,
					registered_at TEXT NOT NULL,
					PRIMARY KEY (plan_id, version)
				)
			""")

	def _connect(self) -> sqlite3.Connection:
		conn = sqlite3.connect(str(self.db_path))
		conn.row_factory = sqlite3.Row
		return conn

	@staticmethod
	def _row_to_record(row: sqlite3.Row) -> PlanVersionRecord:
		return PlanVersionRecord(
			plan_id=row["plan_id"],
			version=row["version"],
			plan=Plan.model_validate_json(row["data"]),
			registered_at=datetime.fromisoformat(row["registered_at"]),
		)

	def register(self, plan: Plan) -> PlanVersionRecord:
		normalized = normalize_plan(plan)

		with self._lock, self._connect() as conn:
			# Hold the write lock across the existence check and the insert
			conn.execute("BEGIN IMMEDIATE")
			cursor = conn.execute(
				"SELECT MAX(version) AS latest, SUM(version = ?) AS taken FROM plan_versions WHERE plan_id = ?",
				(normalized.version, normalized.id),
			)
			row = cursor.fetchone()
			if row["taken"]:
				bumped = row["latest"] + 1
				logger.info(
					f"Plan {normalized.id} v{normalized.version} already registered, storing as v{bumped}"
				)
				normalized.version = bumped

			record = PlanVersionRecord(
				plan_id=normalized.id,
				version=normalized.version,
				plan=normalized,
			)
			conn.execute(
				"INSERT INTO plan_versions (plan_id, version, data, registered_at) VALUES (?, ?, ?, ?)",
				(
					record.plan_id,
					record.version,
					record.plan.model_dump_json(),
					record.registered_at.isoformat(),
				),
			)

		return record

	def get(self, plan_id: str, version: Optional[int] = None) -> Optional[PlanVersionRecord]:
		if version is None:
			query = "SELECT * FROM plan_versions WHERE plan_id = ? ORDER BY version DESC LIMIT 1"
			params: tuple = (plan_id,)
		else:
			query = "SELECT * FROM plan_versions WHERE plan_id = ? AND version = ?"
			params = (plan_id, version)

		with self._connect() as conn:
			row = conn.execute(query, params).fetchone()

		return self._row_to_record(row) if row else None

	def list(self) -> list[PlanSummary]:
		with self._connect() as conn:
			rows = conn.execute(
				"SELECT plan_id, version FROM plan_versions ORDER BY plan_id, version"
			).fetchall()

		grouped: dict[str, list[int]] = {}
		for row in rows:
			grouped.setdefault(row["plan_id"], []).append(row["version"])

		return [
			PlanSummary(plan_id=plan_id, latest_version=versions[-1], versions=versions)
			for plan_id, versions in sorted(grouped.items())
		]

	def list_versions(self, plan_id: str) -> list[PlanVersionRecord]:
		with self._connect() as conn:
			rows = conn.execute(
				"SELECT * FROM plan_versions WHERE plan_id = ? ORDER BY version ASC",
				(plan_id,),
			).fetchall()
		return [self._row_to_record(row) for row in rows]

	def remove(self, plan_id: str) -> None:
		with self._connect() as conn:
			conn.execute("DELETE FROM plan_versions WHERE plan_id = ?", (plan_id,))
		logger.info(f"Removed plan {plan_id}")

	def clear(self) -> None:
		with self._connect() as conn:
			conn.execute("DELETE FROM plan_versions")
