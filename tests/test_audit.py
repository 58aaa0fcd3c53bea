"""Tests for audit logs - ordering, limits and copy semantics."""

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from render_orchestrator.audit import (
	ExecutionAuditRecord,
	ExecutionMode,
	InMemoryAuditLog,
	RuntimeEvent,
	SqliteAuditLog,
)
from render_orchestrator.errors import ExecutionStatus

BASE_TIME = datetime(2026, 1, 1, 12, 0, 0)


def make_record(
	trace_id: str,
	offset_seconds: float = 0,
	status: ExecutionStatus = ExecutionStatus.SUCCEEDED,
	**kwargs,
) -> ExecutionAuditRecord:
	started = BASE_TIME + timedelta(seconds=offset_seconds)
	return ExecutionAuditRecord(
		trace_id=trace_id,
		mode=kwargs.pop("mode", ExecutionMode.PLAN),
		status=status,
		started_at=started,
		completed_at=started + timedelta(milliseconds=5),
		duration_ms=5.0,
		**kwargs,
	)


@pytest.fixture(params=["memory", "sqlite"])
def audit_log(request, tmp_path: Path):
	if request.param == "memory":
		return InMemoryAuditLog()
	return SqliteAuditLog(str(tmp_path / "audits.db"))


class TestAuditLog:
	"""Contract tests shared by both implementations."""

	def test_append_and_get(self, audit_log):
		audit_log.append(make_record("t1", prompt="hello", plan_id="p1", plan_version=2))
		record = audit_log.get("t1")
		assert record.prompt == "hello"
		assert record.plan_id == "p1"
		assert record.plan_version == 2
		assert audit_log.get("missing") is None

	def test_list_newest_first(self, audit_log):
		"""list() sorts by start time, not append order."""
		audit_log.append(make_record("middle", 10))
		audit_log.append(make_record("oldest", 0))
		audit_log.append(make_record("newest", 20))

		assert [r.trace_id for r in audit_log.list()] == ["newest", "middle", "oldest"]

	def test_ties_put_latest_append_first(self, audit_log):
		audit_log.append(make_record("first", 5))
		audit_log.append(make_record("second", 5))
		assert [r.trace_id for r in audit_log.list()] == ["second", "first"]

	def test_limit(self, audit_log):
		for i in range(5):
			audit_log.append(make_record(f"t{i}", i))

		assert [r.trace_id for r in audit_log.list(2)] == ["t4", "t3"]
		assert len(audit_log.list(0)) == 5
		assert len(audit_log.list()) == 5

	def test_returned_records_are_copies(self, audit_log):
		"""Mutating a listed record must not affect later queries."""
		audit_log.append(make_record("t1", event=RuntimeEvent(type="click", payload={"n": 1})))

		listed = audit_log.list()[0]
		listed.prompt = "mutated"
		listed.event.payload["n"] = 99

		fetched = audit_log.get("t1")
		assert fetched.prompt is None
		assert fetched.event.payload == {"n": 1}

	def test_stored_record_independent_of_input(self, audit_log):
		record = make_record("t1")
		audit_log.append(record)
		record.error_message = "changed later"
		assert audit_log.get("t1").error_message is None

	def test_clear(self, audit_log):
		audit_log.append(make_record("t1"))
		audit_log.clear()
		assert audit_log.list() == []
		assert audit_log.get("t1") is None

	def test_round_trips_enums(self, audit_log):
		audit_log.append(make_record("t1", status=ExecutionStatus.THROTTLED, mode=ExecutionMode.REPLAY))
		record = audit_log.get("t1")
		assert record.status == ExecutionStatus.THROTTLED
		assert record.mode == ExecutionMode.REPLAY
		assert not record.succeeded
