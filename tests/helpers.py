"""Shared test fixtures and fake collaborators for render-orchestrator tests."""

import json
from typing import Any, Optional

from render_orchestrator.config import Config
from render_orchestrator.hooks import HookPipeline
from render_orchestrator.interfaces import (
	TEXT_FALLBACK_MODE,
	CodeGenerationInput,
	ExecutionInput,
	ExecutionResult,
	IncrementalUpdate,
	LLMRequest,
	LLMResponse,
	LLMStreamChunk,
	LLMStructuredRequest,
	LLMStructuredResponse,
	SecurityCheckResult,
)
from render_orchestrator.orchestrator import Orchestrator, OrchestratorDependencies
from render_orchestrator.plans.models import Plan, PlanState


def make_plan(
	plan_id: str = "p1",
	version: int = 1,
	text: str = "Hello",
	stateful: bool = False,
) -> Plan:
	"""Create a Plan with a small component tree."""
	state = None
	if stateful:
		state = PlanState(
			initial={"count": 0},
			transitions={"increment": [{"type": "increment", "path": "count", "by": 1}]},
		)
	return Plan(
		id=plan_id,
		version=version,
		root={"type": "element", "tag": "section", "children": [{"type": "text", "value": text}]},
		capabilities={"domWrite": True},
		state=state,
	)


def plan_json(plan_id: str = "structured_plan", min_length: int = 0) -> str:
	"""Serialized plan, padded with filler text up to ``min_length`` characters."""
	text = "Structured"
	payload = make_plan(plan_id, text=text).model_dump_json()
	if len(payload) < min_length:
		payload = make_plan(plan_id, text=text + "x" * (min_length - len(payload))).model_dump_json()
	return payload


# =============================================================================
# Language models
# =============================================================================

class TextLLM:
	"""Plain text model with no optional capabilities."""

	def __init__(self, text: str = "plain text answer"):
		self.text = text
		self.requests: list[LLMRequest] = []

	async def generate_response(self, request: LLMRequest) -> LLMResponse:
		self.requests.append(request)
		return LLMResponse(text=self.text, model="text-llm", raw={"mode": "text"})


class StructuredLLM(TextLLM):
	"""Returns a valid structured plan on every call."""

	def __init__(self, payload: Optional[str] = None):
		super().__init__(text="fallback text should not be used")
		self.payload = payload or plan_json()
		self.structured_requests: list[LLMStructuredRequest] = []
		self.configured: Optional[dict] = None

	def configure(self, options: dict[str, Any]) -> None:
		self.configured = options

	async def generate_structured_response(self, request: LLMStructuredRequest) -> LLMStructuredResponse:
		self.structured_requests.append(request)
		return LLMStructuredResponse(
			text=self.payload,
			valid=True,
			value=json.loads(self.payload),
			model="structured-llm",
		)


class InvalidStructuredLLM(TextLLM):
	"""Structured output never validates; text fallback works."""

	def __init__(self, text: str = "text fallback"):
		super().__init__(text=text)
		self.structured_requests: list[LLMStructuredRequest] = []

	async def generate_structured_response(self, request: LLMStructuredRequest) -> LLMStructuredResponse:
		self.structured_requests.append(request)
		return LLMStructuredResponse(
			text='{"invalid":true}',
			valid=False,
			errors=[f"invalid schema #{len(self.structured_requests)}"],
		)


class RecoveringStructuredLLM(InvalidStructuredLLM):
	"""Invalid on the first structured call, valid on the retry."""

	async def generate_structured_response(self, request: LLMStructuredRequest) -> LLMStructuredResponse:
		if not self.structured_requests:
			return await super().generate_structured_response(request)
		self.structured_requests.append(request)
		payload = plan_json("recovered_plan")
		return LLMStructuredResponse(text=payload, valid=True, value=json.loads(payload))


class StreamingLLM(TextLLM):
	"""Streams a fixed list of deltas."""

	def __init__(self, deltas: list[str], flag_done: bool = True):
		super().__init__(text="".join(deltas))
		self.deltas = deltas
		self.flag_done = flag_done
		self.stream_requests: list[LLMRequest] = []
		self.closed = False

	async def generate_response_stream(self, request: LLMRequest):
		self.stream_requests.append(request)
		text = ""
		try:
			for index, delta in enumerate(self.deltas):
				text += delta
				done = self.flag_done and index == len(self.deltas) - 1
				yield LLMStreamChunk(delta=delta, text=text, done=done, model="stream-llm")
		finally:
			self.closed = True


class FailingLLM(TextLLM):
	async def generate_response(self, request: LLMRequest) -> LLMResponse:
		raise RuntimeError("model unavailable")


# =============================================================================
# Code generation
# =============================================================================

class FakeCodeGenerator:
	"""Parses plan JSON when it can, otherwise wraps the text in a plan."""

	def __init__(self, fallback_id: str = "text_plan"):
		self.fallback_id = fallback_id
		self.inputs: list[CodeGenerationInput] = []

	async def generate_plan(self, request: CodeGenerationInput) -> Plan:
		self.inputs.append(request)
		try:
			return Plan.model_validate_json(request.llm_text)
		except ValueError:
			return make_plan(self.fallback_id, text=request.llm_text)


class NullCodeGenerator(FakeCodeGenerator):
	async def generate_plan(self, request: CodeGenerationInput):
		return None


class FakeIncrementalSession:
	def __init__(self):
		self.buffer = ""
		self.finalized_with: Optional[str] = None

	async def push_delta(self, delta: str) -> Optional[IncrementalUpdate]:
		self.buffer += delta
		try:
			return IncrementalUpdate(plan=Plan.model_validate_json(self.buffer))
		except ValueError:
			return IncrementalUpdate(plan=make_plan("partial", text=self.buffer), mode=TEXT_FALLBACK_MODE)

	async def finalize(self, text: Optional[str] = None) -> Optional[Plan]:
		self.finalized_with = text
		try:
			return Plan.model_validate_json(text or self.buffer)
		except ValueError:
			return None


class IncrementalCodeGenerator(FakeCodeGenerator):
	def __init__(self):
		super().__init__()
		self.sessions: list[FakeIncrementalSession] = []

	def create_incremental_session(self, request: CodeGenerationInput) -> FakeIncrementalSession:
		session = FakeIncrementalSession()
		self.sessions.append(session)
		return session


# =============================================================================
# Security, runtime, rendering
# =============================================================================

class FakeSecurityChecker:
	def __init__(self, issues: Optional[list[str]] = None, error: Optional[Exception] = None):
		self.issues = issues or []
		self.error = error
		self.checked: list[Plan] = []
		self.initialized_with: Optional[dict] = None

	def initialize(self, profile: str, overrides: dict) -> None:
		self.initialized_with = {"profile": profile, "overrides": overrides}

	async def check_plan(self, plan: Plan) -> SecurityCheckResult:
		self.checked.append(plan)
		if self.error:
			raise self.error
		return SecurityCheckResult(safe=not self.issues, issues=list(self.issues))


class FakeRuntime:
	"""Keeps per-plan state and applies ``increment`` transitions on events."""

	def __init__(self, diagnostics: Optional[list[dict]] = None, error: Optional[Exception] = None):
		self.diagnostics = diagnostics or []
		self.error = error
		self.states: dict[str, dict] = {}
		self.executions: list[ExecutionInput] = []
		self.cleared: list[str] = []
		self.initialized = False
		self.terminated = False

	async def initialize(self) -> None:
		self.initialized = True

	async def terminate(self) -> None:
		self.terminated = True

	async def execute(self, request: ExecutionInput) -> ExecutionResult:
		self.executions.append(request)
		if self.error:
			raise self.error

		plan = request.plan
		state = self.states.get(plan.id)
		if state is None:
			state = dict(plan.state.initial) if plan.state else {}

		if request.event and plan.state:
			for action in plan.state.transitions.get(request.event.type, []):
				if action.get("type") == "increment":
					path = action["path"]
					state[path] = state.get(path, 0) + action.get("by", 1)

		self.states[plan.id] = state
		return ExecutionResult(
			plan_id=plan.id,
			root=plan.root,
			diagnostics=list(self.diagnostics),
			state=dict(state),
			handled_event=request.event,
		)

	def get_plan_state(self, plan_id: str) -> Optional[dict]:
		state = self.states.get(plan_id)
		return dict(state) if state is not None else None

	def set_plan_state(self, plan_id: str, state: dict) -> None:
		self.states[plan_id] = dict(state)

	def clear_plan_state(self, plan_id: str) -> None:
		self.cleared.append(plan_id)
		self.states.pop(plan_id, None)


class FakeRenderer:
	def __init__(self, error: Optional[Exception] = None):
		self.error = error
		self.rendered: list[ExecutionResult] = []

	async def render(self, execution: ExecutionResult, target: Any = None) -> str:
		self.rendered.append(execution)
		if self.error:
			raise self.error
		return f'<section data-plan="{execution.plan_id}">{json.dumps(execution.root)}</section>'


class FakeContext:
	def __init__(self, user_id: Optional[str] = None):
		self.user_id = user_id

	def get_context(self) -> dict:
		return {"user": {"id": self.user_id}} if self.user_id else {}


# =============================================================================
# Orchestrator
# =============================================================================

def make_config(**overrides) -> Config:
	"""Config that never touches the user's real directories."""
	config = Config(**{k: v for k, v in overrides.items() if k in ("config_dir", "data_dir")})
	for key, value in overrides.items():
		setattr(config, key, value)
	return config


def make_orchestrator(config: Optional[Config] = None, **overrides) -> Orchestrator:
	"""Orchestrator wired to fakes; any dependency can be overridden."""
	config = config or make_config()
	deps = dict(
		llm=StructuredLLM(),
		codegen=FakeCodeGenerator(),
		security=FakeSecurityChecker(),
		runtime=FakeRuntime(),
		renderer=FakeRenderer(),
		customization=HookPipeline(),
		config_loader=lambda: config,
	)
	deps.update(overrides)
	return Orchestrator(OrchestratorDependencies(**deps))


async def started_orchestrator(config: Optional[Config] = None, **overrides) -> Orchestrator:
	orchestrator = make_orchestrator(config, **overrides)
	await orchestrator.start()
	return orchestrator
