"""
Tenant Governor - per-tenant admission control.

Each tenant gets a fixed accounting window (60 seconds by default) with a
cap on executions started in the window and a cap on executions running at
the same time. Admission hands out a lease that must be released exactly
once when the execution finishes.
"""

import logging
import threading
import time
from dataclasses import asdict, dataclass, fields
from typing import Any, Callable, Mapping, Optional, Union

from .errors import QuotaDimension, QuotaExceededError

logger = logging.getLogger(__name__)

ANONYMOUS_TENANT = "anonymous"
DEFAULT_WINDOW_SECONDS = 60.0


@dataclass
class TenantQuotaPolicy:
	"""Limits applied to every tenant."""
	max_executions_per_minute: int = 120
	max_concurrent_executions: int = 4


@dataclass
class TenantWindowState:
	"""Counters tracked for one tenant."""
	window_started_at: float
	executions_in_window: int = 0
	concurrent_executions: int = 0


@dataclass(frozen=True)
class TenantQuotaSnapshot:
	"""Read-only view of a tenant's counters."""
	tenant_id: str
	window_started_at: float
	executions_in_window: int
	concurrent_executions: int


class TenantLease:
	"""
	One admitted concurrent execution for a tenant.

	``release()`` may be called any number of times; only the first call
	gives the slot back.
	"""

	def __init__(self, tenant_id: str, on_release: Callable[[str], None]):
		self.tenant_id = tenant_id
		self._on_release = on_release
		self._released = False
		self._lock = threading.Lock()

	@property
	def released(self) -> bool:
		return self._released

	def release(self) -> None:
		with self._lock:
			if self._released:
				return
			self._released = True
		self._on_release(self.tenant_id)

	def __enter__(self) -> "TenantLease":
		return self

	def __exit__(self, exc_type, exc, tb) -> None:
		self.release()


def normalize_tenant_id(tenant_id: Any) -> str:
	"""Blank or non-string ids are accounted to the anonymous tenant."""
	if isinstance(tenant_id, str) and tenant_id.strip():
		return tenant_id.strip()
	return ANONYMOUS_TENANT


class TenantGovernor:
	"""
	In-memory fixed-window admission controller.

	The window resets lazily on the next ``acquire`` once it has elapsed,
	so a burst straddling a window boundary can briefly reach twice the
	nominal rate.
	"""

	def __init__(
		self,
		window_seconds: float = DEFAULT_WINDOW_SECONDS,
		clock: Callable[[], float] = time.time,
	):
		self.window_seconds = window_seconds
		self._clock = clock
		self._policy = TenantQuotaPolicy()
		self._states: dict[str, TenantWindowState] = {}
		self._lock = threading.Lock()

	def initialize(
		self,
		policy_overrides: Optional[Union[TenantQuotaPolicy, Mapping[str, Any]]] = None,
		window_seconds: Optional[float] = None,
	) -> None:
		"""Apply policy overrides on top of the defaults."""
		if window_seconds is not None and window_seconds > 0:
			self.window_seconds = float(window_seconds)

		if isinstance(policy_overrides, TenantQuotaPolicy):
			overrides = asdict(policy_overrides)
		else:
			overrides = dict(policy_overrides or {})

		known = {f.name for f in fields(TenantQuotaPolicy)}
		unknown = set(overrides) - known
		if unknown:
			logger.warning(f"Ignoring unknown tenant quota keys: {sorted(unknown)}")

		self._policy = TenantQuotaPolicy(**{k: int(v) for k, v in overrides.items() if k in known})
		logger.info(
			f"Tenant governor initialized: {self._policy.max_executions_per_minute}/window, "
			f"{self._policy.max_concurrent_executions} concurrent"
		)

	def get_policy(self) -> TenantQuotaPolicy:
		return TenantQuotaPolicy(**asdict(self._policy))

	def acquire(self, tenant_id: Any) -> TenantLease:
		"""
		Admit one execution for the tenant.

		Raises:
			QuotaExceededError: If the tenant is at its concurrency or rate
				limit. No counter is changed in that case.
		"""
		tenant = normalize_tenant_id(tenant_id)

		with self._lock:
			state = self._resolve_state(tenant, self._clock())

			if state.concurrent_executions >= self._policy.max_concurrent_executions:
				logger.warning(f"Tenant {tenant} refused: {state.concurrent_executions} concurrent")
				raise QuotaExceededError(
					tenant, QuotaDimension.CONCURRENCY, self._policy.max_concurrent_executions
				)

			if state.executions_in_window >= self._policy.max_executions_per_minute:
				logger.warning(f"Tenant {tenant} refused: {state.executions_in_window} in window")
				raise QuotaExceededError(
					tenant, QuotaDimension.RATE, self._policy.max_executions_per_minute
				)

			state.executions_in_window += 1
			state.concurrent_executions += 1

		return TenantLease(tenant, self._release)

	def list_snapshots(self) -> list[TenantQuotaSnapshot]:
		with self._lock:
			return [
				TenantQuotaSnapshot(
					tenant_id=tenant,
					window_started_at=state.window_started_at,
					executions_in_window=state.executions_in_window,
					concurrent_executions=state.concurrent_executions,
				)
				for tenant, state in sorted(self._states.items())
			]

	def reset(self) -> None:
		with self._lock:
			self._states.clear()

	def _release(self, tenant: str) -> None:
		with self._lock:
			state = self._states.get(tenant)
			if state is None:
				# State was purged by reset() while the lease was out
				return
			state.concurrent_executions = max(0, state.concurrent_executions - 1)

	def _resolve_state(self, tenant: str, now: float) -> TenantWindowState:
		state = self._states.get(tenant)
		if state is None:
			state = TenantWindowState(window_started_at=now)
			self._states[tenant] = state
		elif now - state.window_started_at >= self.window_seconds:
			state.window_started_at = now
			state.executions_in_window = 0
		return state
