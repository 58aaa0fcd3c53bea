"""
Plan Models - Pydantic schemas for versioned runtime plans.

A plan is an immutable snapshot of a generated component tree together with
its declared capabilities, optional state machine and embedded source.
Plans are identified by ``(id, version)``.
"""

import hashlib
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_SPEC_VERSION = "runtime-plan/v1"


class PlanState(BaseModel):
	"""Initial state snapshot plus the transitions that events trigger."""
	initial: dict[str, Any] = Field(default_factory=dict)
	transitions: dict[str, list[dict[str, Any]]] = Field(
		default_factory=dict,
		description="Event type -> ordered state actions",
	)


class PlanSource(BaseModel):
	"""An embedded source module that the execution engine may run."""
	language: str = Field(default="js")
	code: str = Field(default="")
	export_name: str = Field(default="default")


class Plan(BaseModel):
	"""
	A runtime plan produced by the code generator.

	The component tree is opaque to the orchestrator; only the execution
	engine and the renderer interpret it.
	"""
	id: str = Field(default="", description="Plan identifier (generated when blank)")
	version: int = Field(default=1, description="Positive version number")
	spec_version: str = Field(default=DEFAULT_SPEC_VERSION)

	root: dict[str, Any] = Field(default_factory=dict, description="Component tree")
	capabilities: dict[str, Any] = Field(default_factory=dict)
	imports: list[str] = Field(default_factory=list)

	metadata: Optional[dict[str, Any]] = Field(default=None)
	state: Optional[PlanState] = Field(default=None)
	source: Optional[PlanSource] = Field(default=None)

	@field_validator("version", mode="before")
	@classmethod
	def _coerce_version(cls, value: Any) -> int:
		"""Anything other than a positive integer becomes version 1."""
		if isinstance(value, bool):
			return 1
		if isinstance(value, float) and value.is_integer():
			value = int(value)
		if isinstance(value, int) and value > 0:
			return value
		return 1

	def fingerprint(self) -> str:
		"""Stable sha256 of the canonical JSON form of this plan."""
		return hashlib.sha256(self.model_dump_json().encode()).hexdigest()


class PlanVersionRecord(BaseModel):
	"""A registered plan snapshot."""
	plan_id: str
	version: int
	plan: Plan
	registered_at: datetime = Field(default_factory=datetime.now)


class PlanSummary(BaseModel):
	"""One entry per plan id in the registry listing."""
	plan_id: str
	latest_version: int
	versions: list[int] = Field(default_factory=list)
