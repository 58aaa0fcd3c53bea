"""
Error taxonomy for the orchestration core.

Every failure that ends a pipeline invocation maps to one audit status:
policy rejections are recorded as ``rejected``, quota failures as
``throttled`` and everything else as ``failed``.
"""

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
	from .interfaces import SecurityCheckResult


class ExecutionStatus(str, Enum):
	"""Terminal status of one pipeline invocation."""
	SUCCEEDED = "succeeded"
	REJECTED = "rejected"
	THROTTLED = "throttled"
	FAILED = "failed"


class QuotaDimension(str, Enum):
	"""Which tenant limit refused admission."""
	CONCURRENCY = "concurrency"
	RATE = "rate"


class OrchestratorError(Exception):
	"""Base class for errors raised by the orchestration core."""
	pass


class NotRunningError(OrchestratorError):
	"""Raised when an operation is invoked outside the running lifecycle."""

	def __init__(self, operation: str = ""):
		message = "Orchestrator is not running"
		if operation:
			message = f"{message} (called {operation})"
		super().__init__(message)
		self.operation = operation


class PolicyRejectionError(OrchestratorError):
	"""Raised when the security checker rejects a plan."""

	def __init__(self, result: "SecurityCheckResult"):
		super().__init__(f"Security policy rejected runtime plan: {'; '.join(result.issues)}")
		self.result = result

	@property
	def issues(self) -> list[str]:
		return list(self.result.issues)


class QuotaExceededError(OrchestratorError):
	"""Raised when a tenant is at its rate or concurrency limit."""

	def __init__(self, tenant_id: str, dimension: QuotaDimension, limit: int):
		if dimension == QuotaDimension.CONCURRENCY:
			detail = f"exceeded max concurrent executions ({limit})"
		else:
			detail = f"exceeded max executions per minute ({limit})"
		super().__init__(f"Tenant {tenant_id} {detail}")
		self.tenant_id = tenant_id
		self.dimension = dimension
		self.limit = limit


class NotFoundError(OrchestratorError):
	"""Raised for an unknown plan id/version or replay source trace."""
	pass


class RequestCancelledError(OrchestratorError):
	"""Raised when the caller's abort signal is set."""

	def __init__(self, message: str = "Render request aborted"):
		super().__init__(message)


class UnhandledPipelineError(OrchestratorError):
	"""Raised when a collaborator breaks its contract (e.g. returns no plan)."""
	pass


class HookContractError(UnhandledPipelineError):
	"""Raised when a hook transform returns nothing instead of a payload."""
	pass


def failure_status(error: BaseException) -> ExecutionStatus:
	"""Map a pipeline failure to the audit status it is recorded with."""
	if isinstance(error, PolicyRejectionError):
		return ExecutionStatus.REJECTED
	if isinstance(error, QuotaExceededError):
		return ExecutionStatus.THROTTLED
	return ExecutionStatus.FAILED


def raise_if_cancelled(signal) -> None:
	"""Raise ``RequestCancelledError`` when the caller's abort signal is set."""
	if signal is not None and signal.is_set():
		raise RequestCancelledError()
