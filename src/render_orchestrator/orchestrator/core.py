"""
Orchestrator - drives a request from prompt to rendered output.

Pipeline:
1. beforeLLM hook, model call (structured first, one retry, text fallback), afterLLM hook
2. beforeCodeGen hook, plan generation, afterCodeGen hook
3. Tail: registration, tenant lease, policy check, execution, render, audit

Every invocation ends in exactly one audit record. Failures close the
invocation metric, give back a held lease, append the audit record, emit
``renderFailed`` and re-raise the original error. Plan registration is never
undone.
"""

import asyncio
import logging
import uuid
from contextlib import aclosing
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Callable, Iterable, Mapping, Optional, Union

from ..audit import AuditLog, ExecutionAuditRecord, ExecutionMode, InMemoryAuditLog, RuntimeEvent, SqliteAuditLog
from ..config import Config, get_config, load_config
from ..errors import (
	ExecutionStatus,
	HookContractError,
	NotFoundError,
	NotRunningError,
	PolicyRejectionError,
	RequestCancelledError,
	UnhandledPipelineError,
	failure_status,
	raise_if_cancelled,
)
from ..governor import ANONYMOUS_TENANT, TenantGovernor, TenantLease, TenantQuotaSnapshot, normalize_tenant_id
from ..hooks import HookPipeline, Plugin, PluginHook
from ..interfaces import (
	AbortSignal,
	CodeGenerationInput,
	CodeGenerator,
	ContextProvider,
	CustomizationEngine,
	ExecutionContext,
	ExecutionEngine,
	ExecutionInput,
	ExecutionResult,
	HookContext,
	IncrementalCodegenSession,
	LLMInterpreter,
	LLMRequest,
	LLMResponse,
	Renderer,
	SecurityChecker,
	SecurityCheckResult,
	has_capability,
	maybe_await,
)
from ..performance import PerformanceMetric, PerformanceTracker
from ..plans import InMemoryPlanRegistry, Plan, PlanRegistry, PlanSummary, PlanVersionRecord, SqlitePlanRegistry
from .events import EventEmitter, Listener, OrchestratorEvent
from .llm import generate_llm_response
from .streaming import LLMTextStream, PreviewBuilder, StreamChunk, StreamChunkType

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
	UNINITIALIZED = "uninitialized"
	RUNNING = "running"
	STOPPED = "stopped"


@dataclass
class OrchestratorDependencies:
	"""Collaborators and stateful services injected into an orchestrator."""
	llm: LLMInterpreter
	codegen: CodeGenerator
	security: SecurityChecker
	runtime: ExecutionEngine
	renderer: Renderer
	customization: Optional[CustomizationEngine] = None
	context: Optional[ContextProvider] = None

	registry: PlanRegistry = field(default_factory=InMemoryPlanRegistry)
	audit_log: AuditLog = field(default_factory=InMemoryAuditLog)
	governor: TenantGovernor = field(default_factory=TenantGovernor)
	performance: PerformanceTracker = field(default_factory=PerformanceTracker)
	config_loader: Callable[[], Config] = load_config


@dataclass
class RenderPlanResult:
	trace_id: str
	plan: Plan
	security: SecurityCheckResult
	execution: ExecutionResult
	html: str
	audit: ExecutionAuditRecord


@dataclass
class RenderPromptResult(RenderPlanResult):
	prompt: str = ""
	llm: Optional[LLMResponse] = None


@dataclass
class _Invocation:
	"""Bookkeeping for one in-flight pipeline run."""
	trace_id: str
	mode: ExecutionMode
	metric_label: str
	started_at: datetime
	tenant_id: str
	prompt: Optional[str] = None
	event: Optional[RuntimeEvent] = None
	plan_id: Optional[str] = None
	plan_version: Optional[int] = None
	diagnostics_count: int = 0
	security_issue_count: int = 0


def new_trace_id() -> str:
	return f"trace_{uuid.uuid4().hex[:16]}"


class Orchestrator:
	"""
	Stateful driver composing the collaborators into render flows.

	Usage:
		orchestrator = Orchestrator(OrchestratorDependencies(llm, codegen, security, runtime, renderer))
		await orchestrator.start()
		result = await orchestrator.render_prompt("A todo list")
		print(result.html, result.audit.status)
	"""

	def __init__(self, deps: OrchestratorDependencies):
		self.deps = deps
		self.state = LifecycleState.UNINITIALIZED
		self.config: Optional[Config] = None
		self._events = EventEmitter()

	@property
	def running(self) -> bool:
		return self.state == LifecycleState.RUNNING

	# =========================================================================
	# Lifecycle
	# =========================================================================

	async def start(self) -> None:
		if self.running:
			return

		config = self.deps.config_loader()
		self.config = config

		if has_capability(self.deps.llm, "configure"):
			await maybe_await(self.deps.llm.configure(config.to_dict()))
		if self.deps.context is not None and has_capability(self.deps.context, "initialize"):
			await maybe_await(self.deps.context.initialize())
		if has_capability(self.deps.security, "initialize"):
			await maybe_await(
				self.deps.security.initialize(
					profile=config.security_profile,
					overrides=dict(config.security_policy),
				)
			)
		self.deps.governor.initialize(
			config.tenant_quota_policy,
			window_seconds=config.quota_window_seconds,
		)
		if has_capability(self.deps.runtime, "initialize"):
			await maybe_await(self.deps.runtime.initialize())

		self.state = LifecycleState.RUNNING
		logger.info(f"Orchestrator started (security profile: {config.security_profile})")
		self.emit(OrchestratorEvent.STARTED)

	async def stop(self) -> None:
		if not self.running:
			return

		if has_capability(self.deps.runtime, "terminate"):
			await maybe_await(self.deps.runtime.terminate())

		self.state = LifecycleState.STOPPED
		logger.info("Orchestrator stopped")
		self.emit(OrchestratorEvent.STOPPED)

	# =========================================================================
	# Render flows
	# =========================================================================

	async def render_prompt(
		self,
		prompt: str,
		*,
		target: Any = None,
		trace_id: Optional[str] = None,
		signal: Optional[AbortSignal] = None,
		tenant_id: Optional[str] = None,
	) -> RenderPromptResult:
		"""Run the full pipeline from prompt to rendered output."""
		self._ensure_running("render_prompt")
		invocation = self._begin(ExecutionMode.PROMPT, trace_id, prompt=prompt, tenant_id=tenant_id)
		handed_off = False

		try:
			raise_if_cancelled(signal)
			hooked_prompt = await self._run_hook(PluginHook.BEFORE_LLM, prompt, invocation)
			invocation.prompt = hooked_prompt

			llm_context = self._llm_context()
			request = LLMRequest(prompt=hooked_prompt, context=llm_context, signal=signal)
			llm_response = await generate_llm_response(self.deps.llm, request, self._use_structured())
			llm_response = await self._run_hook(PluginHook.AFTER_LLM, llm_response, invocation)

			plan = await self._generate_plan(invocation, hooked_prompt, llm_response.text, llm_context)

			handed_off = True
			result = await self._run_tail(invocation, plan, target=target, signal=signal, register=True)
		except (Exception, asyncio.CancelledError) as e:
			if not handed_off:
				self._record_failure(invocation, e)
			raise

		return RenderPromptResult(**vars(result), prompt=hooked_prompt, llm=llm_response)

	def render_prompt_stream(
		self,
		prompt: str,
		*,
		target: Any = None,
		trace_id: Optional[str] = None,
		signal: Optional[AbortSignal] = None,
		tenant_id: Optional[str] = None,
		preview_every_chunks: Optional[int] = None,
	) -> AsyncIterator[StreamChunk]:
		"""
		Run the full pipeline as a pull-driven stream of chunks.

		Yields ``llm-delta`` chunks as text arrives, ``preview`` chunks every
		``preview_every_chunks`` chunks and on the last one, then a single
		``final`` chunk. On failure an ``error`` chunk is yielded and the
		error is raised on the next pull.
		"""
		self._ensure_running("render_prompt_stream")
		interval = preview_every_chunks if preview_every_chunks is not None else self.config.preview_every_chunks
		return self._stream_prompt(
			prompt,
			target=target,
			trace_id=trace_id,
			signal=signal,
			tenant_id=tenant_id,
			interval=max(1, int(interval)),
		)

	async def _stream_prompt(
		self,
		prompt: str,
		*,
		target: Any,
		trace_id: Optional[str],
		signal: Optional[AbortSignal],
		tenant_id: Optional[str],
		interval: int,
	) -> AsyncIterator[StreamChunk]:
		invocation = self._begin(ExecutionMode.PROMPT, trace_id, prompt=prompt, tenant_id=tenant_id)
		trace_id = invocation.trace_id
		hooked_prompt = prompt
		llm_text = ""
		handed_off = False

		try:
			raise_if_cancelled(signal)
			hooked_prompt = await self._run_hook(PluginHook.BEFORE_LLM, prompt, invocation)
			invocation.prompt = hooked_prompt

			llm_context = self._llm_context()
			request = LLMRequest(prompt=hooked_prompt, context=llm_context, signal=signal)
			session = await self._incremental_session(hooked_prompt, llm_context)
			previews = PreviewBuilder(
				self.deps,
				prompt=hooked_prompt,
				context=llm_context,
				user_id=self._resolve_user_id(),
				target=target,
				signal=signal,
				session=session,
			)

			text_stream = LLMTextStream(self.deps.llm, request, self._use_structured())
			chunk_count = 0
			preview_due = False
			async with aclosing(text_stream.chunks()) as chunks:
				async for chunk in chunks:
					raise_if_cancelled(signal)
					chunk_count += 1
					llm_text = chunk.text
					yield StreamChunk(
						type=StreamChunkType.LLM_DELTA,
						trace_id=trace_id,
						prompt=hooked_prompt,
						llm_text=llm_text,
						delta=chunk.delta,
					)

					await previews.push(chunk.delta)
					preview_due = True
					if chunk.done or chunk_count % interval == 0:
						preview_due = False
						preview = await previews.build(llm_text)
						if preview is not None:
							yield self._preview_chunk(trace_id, hooked_prompt, llm_text, preview)

			# Source ended without flagging its last chunk
			if preview_due:
				preview = await previews.build(llm_text)
				if preview is not None:
					yield self._preview_chunk(trace_id, hooked_prompt, llm_text, preview)

			llm_response = await self._run_hook(PluginHook.AFTER_LLM, text_stream.response, invocation)
			llm_text = llm_response.text
			plan = await self._generate_plan(
				invocation, hooked_prompt, llm_response.text, llm_context, session=session
			)

			handed_off = True
			result = await self._run_tail(invocation, plan, target=target, signal=signal, register=True)
		except GeneratorExit:
			if not handed_off:
				self._record_failure(invocation, RequestCancelledError("Render stream closed before completion"))
			raise
		except asyncio.CancelledError as e:
			if not handed_off:
				self._record_failure(invocation, e)
			raise
		except Exception as e:
			if not handed_off:
				self._record_failure(invocation, e)
			yield StreamChunk(
				type=StreamChunkType.ERROR,
				trace_id=trace_id,
				prompt=hooked_prompt,
				llm_text=llm_text,
				error={"name": type(e).__name__, "message": str(e)},
			)
			raise

		final = RenderPromptResult(**vars(result), prompt=hooked_prompt, llm=llm_response)
		yield StreamChunk(
			type=StreamChunkType.FINAL,
			trace_id=trace_id,
			prompt=hooked_prompt,
			llm_text=llm_text,
			html=final.html,
			diagnostics=list(final.execution.diagnostics),
			plan_id=final.plan.id,
			final=final,
		)

	async def render_plan(
		self,
		plan: Union[Plan, Mapping[str, Any]],
		*,
		target: Any = None,
		trace_id: Optional[str] = None,
		prompt: Optional[str] = None,
		signal: Optional[AbortSignal] = None,
		tenant_id: Optional[str] = None,
		mode: ExecutionMode = ExecutionMode.PLAN,
	) -> RenderPlanResult:
		"""Register a caller-supplied plan and run it through the tail pipeline."""
		self._ensure_running("render_plan")
		plan = plan if isinstance(plan, Plan) else Plan.model_validate(plan)
		invocation = self._begin(ExecutionMode(mode), trace_id, prompt=prompt, tenant_id=tenant_id)
		return await self._run_tail(invocation, plan, target=target, signal=signal, register=True)

	async def dispatch_event(
		self,
		plan_id: str,
		event: Union[RuntimeEvent, Mapping[str, Any]],
		*,
		target: Any = None,
		trace_id: Optional[str] = None,
		prompt: Optional[str] = None,
		signal: Optional[AbortSignal] = None,
		tenant_id: Optional[str] = None,
	) -> RenderPlanResult:
		"""Run the latest version of a plan with an interaction event."""
		self._ensure_running("dispatch_event")
		record = self.deps.registry.get(plan_id)
		if record is None:
			raise NotFoundError(f"Plan {plan_id} not found")

		runtime_event = event if isinstance(event, RuntimeEvent) else RuntimeEvent.model_validate(event)
		invocation = self._begin(
			ExecutionMode.EVENT, trace_id, prompt=prompt, tenant_id=tenant_id, event=runtime_event
		)
		return await self._run_tail(invocation, record.plan, target=target, signal=signal, register=False)

	async def rollback_plan(
		self,
		plan_id: str,
		version: int,
		*,
		target: Any = None,
		trace_id: Optional[str] = None,
		prompt: Optional[str] = None,
		signal: Optional[AbortSignal] = None,
		tenant_id: Optional[str] = None,
	) -> RenderPlanResult:
		"""Run an exact historical version from clean execution state."""
		self._ensure_running("rollback_plan")
		record = self.deps.registry.get(plan_id, version)
		if record is None:
			raise NotFoundError(f"Plan {plan_id} v{version} not found")

		self.deps.runtime.clear_plan_state(plan_id)
		logger.info(f"Rolling back {plan_id} to v{version}")

		invocation = self._begin(ExecutionMode.ROLLBACK, trace_id, prompt=prompt, tenant_id=tenant_id)
		return await self._run_tail(invocation, record.plan, target=target, signal=signal, register=False)

	async def replay_trace(
		self,
		trace_id: str,
		*,
		target: Any = None,
		new_trace_id: Optional[str] = None,
		signal: Optional[AbortSignal] = None,
		tenant_id: Optional[str] = None,
	) -> RenderPlanResult:
		"""
		Re-run the exact plan snapshot a past invocation executed.

		The original prompt, event and tenant are reused unless a tenant is
		given explicitly.

		Raises:
			NotFoundError: If the trace, its plan reference or the plan is missing.
		"""
		self._ensure_running("replay_trace")
		source = self.deps.audit_log.get(trace_id)
		if source is None:
			raise NotFoundError(f"Trace {trace_id} not found")
		if not source.plan_id or source.plan_version is None:
			raise NotFoundError(f"Trace {trace_id} does not reference a plan")

		record = self.deps.registry.get(source.plan_id, source.plan_version)
		if record is None:
			raise NotFoundError(f"Plan {source.plan_id} v{source.plan_version} not found")

		invocation = self._begin(
			ExecutionMode.REPLAY,
			new_trace_id,
			prompt=source.prompt,
			tenant_id=tenant_id or source.tenant_id,
			event=source.event,
		)
		return await self._run_tail(invocation, record.plan, target=target, signal=signal, register=False)

	# =========================================================================
	# History and introspection
	# =========================================================================

	def list_plans(self) -> list[PlanSummary]:
		self._ensure_running("list_plans")
		return self.deps.registry.list()

	def list_plan_versions(self, plan_id: str) -> list[PlanVersionRecord]:
		self._ensure_running("list_plan_versions")
		return self.deps.registry.list_versions(plan_id)

	def get_plan(self, plan_id: str, version: Optional[int] = None) -> Optional[PlanVersionRecord]:
		self._ensure_running("get_plan")
		return self.deps.registry.get(plan_id, version)

	def list_audits(self, limit: Optional[int] = None) -> list[ExecutionAuditRecord]:
		self._ensure_running("list_audits")
		return self.deps.audit_log.list(limit)

	def get_audit(self, trace_id: str) -> Optional[ExecutionAuditRecord]:
		self._ensure_running("get_audit")
		return self.deps.audit_log.get(trace_id)

	def list_tenant_snapshots(self) -> list[TenantQuotaSnapshot]:
		self._ensure_running("list_tenant_snapshots")
		return self.deps.governor.list_snapshots()

	def get_plan_state(self, plan_id: str) -> Optional[dict[str, Any]]:
		self._ensure_running("get_plan_state")
		return self.deps.runtime.get_plan_state(plan_id)

	def get_metrics(self) -> list[PerformanceMetric]:
		self._ensure_running("get_metrics")
		return self.deps.performance.get_metrics()

	def clear_history(self) -> None:
		"""Purge plans, audit records, tenant counters and plan execution state."""
		self._ensure_running("clear_history")
		plan_ids = [summary.plan_id for summary in self.deps.registry.list()]

		self.deps.registry.clear()
		self.deps.audit_log.clear()
		self.deps.governor.reset()
		for plan_id in plan_ids:
			self.deps.runtime.clear_plan_state(plan_id)

		logger.info(f"Cleared history ({len(plan_ids)} plans)")

	# =========================================================================
	# Events
	# =========================================================================

	def on(self, event_name: Union[OrchestratorEvent, str], callback: Listener) -> Callable[[], None]:
		return self._events.on(event_name, callback)

	def emit(self, event_name: Union[OrchestratorEvent, str], payload: Any = None) -> None:
		self._events.emit(event_name, payload)

	# =========================================================================
	# Tail pipeline
	# =========================================================================

	async def _run_tail(
		self,
		invocation: _Invocation,
		plan: Plan,
		*,
		target: Any,
		signal: Optional[AbortSignal],
		register: bool,
	) -> RenderPlanResult:
		lease: Optional[TenantLease] = None

		try:
			try:
				raise_if_cancelled(signal)
				if register:
					plan = self.deps.registry.register(plan).plan
				invocation.plan_id = plan.id
				invocation.plan_version = plan.version

				lease = self.deps.governor.acquire(invocation.tenant_id)

				checked_plan = await self._run_hook(PluginHook.BEFORE_POLICY_CHECK, plan, invocation)
				security = await self.deps.security.check_plan(checked_plan)
				security = await self._run_hook(PluginHook.AFTER_POLICY_CHECK, security, invocation)
				invocation.security_issue_count = len(security.issues)
				if not security.safe:
					self.emit(OrchestratorEvent.POLICY_REJECTED, security)
					raise PolicyRejectionError(security)

				runtime_input = ExecutionInput(
					plan=checked_plan,
					context=ExecutionContext(user_id=self._resolve_user_id()),
					event=invocation.event,
					signal=signal,
				)
				runtime_input = await self._run_hook(PluginHook.BEFORE_RUNTIME, runtime_input, invocation)
				execution = await self.deps.runtime.execute(runtime_input)
				execution = await self._run_hook(PluginHook.AFTER_RUNTIME, execution, invocation)
				invocation.diagnostics_count = len(execution.diagnostics)

				render_input = await self._run_hook(PluginHook.BEFORE_RENDER, execution, invocation)
				html = await self.deps.renderer.render(render_input, target)
				raise_if_cancelled(signal)
				html = await self._run_hook(PluginHook.AFTER_RENDER, html, invocation)
			finally:
				if lease is not None:
					lease.release()
		except (Exception, asyncio.CancelledError) as e:
			self._record_failure(invocation, e)
			raise

		audit, metric = self._record(invocation, ExecutionStatus.SUCCEEDED)
		self.emit(OrchestratorEvent.RENDERED, {"trace_id": invocation.trace_id, "metric": metric, "audit": audit})

		return RenderPlanResult(
			trace_id=invocation.trace_id,
			plan=checked_plan,
			security=security,
			execution=execution,
			html=html,
			audit=audit,
		)

	async def _generate_plan(
		self,
		invocation: _Invocation,
		prompt: str,
		llm_text: str,
		llm_context: dict[str, Any],
		session: Optional[IncrementalCodegenSession] = None,
	) -> Plan:
		codegen_input = CodeGenerationInput(prompt=prompt, llm_text=llm_text, context=llm_context)
		codegen_input = await self._run_hook(PluginHook.BEFORE_CODEGEN, codegen_input, invocation)

		plan = None
		if session is not None:
			plan = await session.finalize(llm_text)
		if plan is None:
			plan = await self.deps.codegen.generate_plan(codegen_input)
		if plan is None:
			raise UnhandledPipelineError("Code generator returned no plan")

		return await self._run_hook(PluginHook.AFTER_CODEGEN, plan, invocation)

	async def _incremental_session(
		self, prompt: str, llm_context: dict[str, Any]
	) -> Optional[IncrementalCodegenSession]:
		if not has_capability(self.deps.codegen, "create_incremental_session"):
			return None
		return await maybe_await(
			self.deps.codegen.create_incremental_session(CodeGenerationInput(prompt=prompt, context=llm_context))
		)

	@staticmethod
	def _preview_chunk(trace_id: str, prompt: str, llm_text: str, preview) -> StreamChunk:
		return StreamChunk(
			type=StreamChunkType.PREVIEW,
			trace_id=trace_id,
			prompt=prompt,
			llm_text=llm_text,
			html=preview.html,
			diagnostics=list(preview.execution.diagnostics),
			plan_id=preview.plan.id,
		)

	# =========================================================================
	# Helpers
	# =========================================================================

	def _ensure_running(self, operation: str) -> None:
		if not self.running:
			raise NotRunningError(operation)

	def _begin(
		self,
		mode: ExecutionMode,
		trace_id: Optional[str],
		prompt: Optional[str] = None,
		tenant_id: Optional[str] = None,
		event: Optional[RuntimeEvent] = None,
	) -> _Invocation:
		trace_id = trace_id or new_trace_id()
		metric_label = f"pipeline:{trace_id}"
		self.deps.performance.start_measurement(metric_label)
		return _Invocation(
			trace_id=trace_id,
			mode=mode,
			metric_label=metric_label,
			started_at=datetime.now(),
			tenant_id=normalize_tenant_id(tenant_id if tenant_id is not None else self._resolve_user_id()),
			prompt=prompt,
			event=event,
		)

	def _record(
		self, invocation: _Invocation, status: ExecutionStatus, error: Optional[BaseException] = None
	) -> tuple[ExecutionAuditRecord, Optional[PerformanceMetric]]:
		metric = self.deps.performance.end_measurement(invocation.metric_label)
		completed_at = datetime.now()

		error_message = None
		if error is not None:
			error_message = str(error) or type(error).__name__

		audit = ExecutionAuditRecord(
			trace_id=invocation.trace_id,
			mode=invocation.mode,
			status=status,
			started_at=invocation.started_at,
			completed_at=completed_at,
			duration_ms=round((completed_at - invocation.started_at).total_seconds() * 1000, 3),
			prompt=invocation.prompt,
			tenant_id=invocation.tenant_id,
			plan_id=invocation.plan_id,
			plan_version=invocation.plan_version,
			diagnostics_count=invocation.diagnostics_count,
			security_issue_count=invocation.security_issue_count,
			event=invocation.event,
			error_message=error_message,
		)
		self.deps.audit_log.append(audit)
		return audit, metric

	def _record_failure(self, invocation: _Invocation, error: BaseException) -> None:
		status = failure_status(error)
		audit, metric = self._record(invocation, status, error)
		logger.warning(f"Trace {invocation.trace_id} ({invocation.mode.value}) {status.value}: {audit.error_message}")
		self.emit(
			OrchestratorEvent.RENDER_FAILED,
			{"trace_id": invocation.trace_id, "metric": metric, "audit": audit, "error": error},
		)

	async def _run_hook(self, hook: PluginHook, payload: Any, invocation: _Invocation) -> Any:
		if self.deps.customization is None:
			return payload

		context = HookContext(trace_id=invocation.trace_id, hook_name=hook.value)
		result = await maybe_await(self.deps.customization.run_hook(hook.value, payload, context))
		if result is None:
			raise HookContractError(f"Customization engine returned nothing for {hook.value}")
		return result

	def _llm_context(self) -> dict[str, Any]:
		if self.deps.context is None:
			return {}
		context = self.deps.context.get_context()
		return dict(context) if isinstance(context, Mapping) else {}

	def _resolve_user_id(self) -> str:
		user = self._llm_context().get("user")
		candidate = user.get("id") if isinstance(user, Mapping) else None
		if isinstance(candidate, str) and candidate.strip():
			return candidate.strip()
		return ANONYMOUS_TENANT

	def _use_structured(self) -> bool:
		return bool(self.config and self.config.llm_use_structured_output)


def create_orchestrator(
	llm: LLMInterpreter,
	codegen: CodeGenerator,
	security: SecurityChecker,
	runtime: ExecutionEngine,
	renderer: Renderer,
	*,
	context: Optional[ContextProvider] = None,
	customization: Optional[CustomizationEngine] = None,
	plugins: Iterable[Plugin] = (),
	config: Optional[Config] = None,
	persistent: bool = False,
) -> Orchestrator:
	"""
	Build an orchestrator with fresh services.

	With ``persistent=True`` plans and audit records are kept in SQLite at
	the configured paths. Plugins are registered on a new ``HookPipeline``
	unless a customization engine is supplied.
	"""
	config = config or get_config()

	if customization is None:
		pipeline = HookPipeline()
		for plugin in plugins:
			pipeline.register_plugin(plugin)
		customization = pipeline

	deps = OrchestratorDependencies(
		llm=llm,
		codegen=codegen,
		security=security,
		runtime=runtime,
		renderer=renderer,
		customization=customization,
		context=context,
		governor=TenantGovernor(window_seconds=config.quota_window_seconds),
		config_loader=lambda: config,
	)
	if persistent:
		deps.registry = SqlitePlanRegistry(str(config.plans_db_path))
		deps.audit_log = SqliteAuditLog(str(config.audit_db_path))
		logger.info(f"Using SQLite history under {config.data_dir}")

	return Orchestrator(deps)
