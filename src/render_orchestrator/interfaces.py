"""
Collaborator contracts consumed by the orchestrator.

The language model client, code generator, security checker, execution
engine, renderer, customization engine and context provider are supplied by
the host application. Only the shape of their calls and payloads is fixed
here; optional capabilities (structured output, streaming, incremental code
generation) are detected at call time.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from .audit import RuntimeEvent
from .plans.models import Plan


class AbortSignal(Protocol):
	"""Anything with ``is_set()``, typically an ``asyncio.Event``."""

	def is_set(self) -> bool: ...


# =============================================================================
# Language model
# =============================================================================

@dataclass
class LLMRequest:
	prompt: str
	context: dict[str, Any] = field(default_factory=dict)
	signal: Optional[AbortSignal] = None


@dataclass
class LLMStructuredRequest(LLMRequest):
	format: str = "runtime-plan"
	strict: bool = True


@dataclass
class LLMResponse:
	text: str
	tokens_used: Optional[int] = None
	model: Optional[str] = None
	raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMStructuredResponse:
	text: str
	valid: bool
	value: Any = None
	errors: list[str] = field(default_factory=list)
	tokens_used: Optional[int] = None
	model: Optional[str] = None
	raw: Any = None


@dataclass
class LLMStreamChunk:
	delta: str
	text: str
	done: bool = False
	tokens_used: Optional[int] = None
	model: Optional[str] = None
	raw: Any = None


class LLMInterpreter(Protocol):
	"""
	Language model client.

	Optional methods: ``generate_structured_response(LLMStructuredRequest)``,
	``generate_response_stream(LLMRequest) -> AsyncGenerator[LLMStreamChunk, None]``
	and ``configure(dict)``.
	"""

	async def generate_response(self, request: LLMRequest) -> LLMResponse: ...


# =============================================================================
# Code generation
# =============================================================================

@dataclass
class CodeGenerationInput:
	prompt: str
	llm_text: str = ""
	context: dict[str, Any] = field(default_factory=dict)


TEXT_FALLBACK_MODE = "runtime-text-fallback"


@dataclass
class IncrementalUpdate:
	"""A speculative plan built from the text streamed so far."""
	plan: Plan
	mode: str = "runtime-plan"


class IncrementalCodegenSession(Protocol):
	async def push_delta(self, delta: str) -> Optional[IncrementalUpdate]: ...

	async def finalize(self, text: Optional[str] = None) -> Optional[Plan]: ...


class CodeGenerator(Protocol):
	"""
	Turns model text into a plan.

	Optional method: ``create_incremental_session(CodeGenerationInput)``.
	"""

	async def generate_plan(self, request: CodeGenerationInput) -> Plan: ...


# =============================================================================
# Security, execution, rendering
# =============================================================================

@dataclass
class SecurityCheckResult:
	safe: bool
	issues: list[str] = field(default_factory=list)
	diagnostics: list[dict[str, Any]] = field(default_factory=list)


class SecurityChecker(Protocol):
	"""Optional method: ``initialize(profile=..., overrides=...)``."""

	async def check_plan(self, plan: Plan) -> SecurityCheckResult: ...


@dataclass
class ExecutionContext:
	user_id: str = "anonymous"
	variables: dict[str, Any] = field(default_factory=dict)


@dataclass
class ExecutionInput:
	plan: Plan
	context: ExecutionContext = field(default_factory=ExecutionContext)
	event: Optional[RuntimeEvent] = None
	signal: Optional[AbortSignal] = None


@dataclass
class ExecutionResult:
	plan_id: str
	root: dict[str, Any] = field(default_factory=dict)
	diagnostics: list[dict[str, Any]] = field(default_factory=list)
	state: Optional[dict[str, Any]] = None
	handled_event: Optional[RuntimeEvent] = None


class ExecutionEngine(Protocol):
	"""Optional methods: ``initialize()`` and ``terminate()`` (async)."""

	async def execute(self, request: ExecutionInput) -> ExecutionResult: ...

	def get_plan_state(self, plan_id: str) -> Optional[dict[str, Any]]: ...

	def set_plan_state(self, plan_id: str, state: dict[str, Any]) -> None: ...

	def clear_plan_state(self, plan_id: str) -> None: ...


class Renderer(Protocol):
	async def render(self, execution: ExecutionResult, target: Any = None) -> str: ...


# =============================================================================
# Customization and context
# =============================================================================

@dataclass(frozen=True)
class HookContext:
	trace_id: str
	hook_name: str


class CustomizationEngine(Protocol):
	async def run_hook(self, hook_name: str, payload: Any, context: HookContext) -> Any: ...


class ContextProvider(Protocol):
	"""Optional method: ``initialize()`` (async)."""

	def get_context(self) -> dict[str, Any]: ...


def has_capability(collaborator: Any, name: str) -> bool:
	"""True when an optional collaborator method is present and callable."""
	return callable(getattr(collaborator, name, None))


async def maybe_await(value: Any) -> Any:
	"""Await ``value`` when it is awaitable, otherwise return it unchanged."""
	if hasattr(value, "__await__"):
		return await value
	return value

