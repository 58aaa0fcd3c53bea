"""
Streaming glue for ``render_prompt_stream``.

``LLMTextStream`` turns whichever text source the model client offers
(validated structured output, a token stream or a single response) into one
sequence of text chunks. ``PreviewBuilder`` renders speculative plans from
partial text without registering them, taking a lease or writing an audit
record, and puts back any execution state the preview touched.
"""

import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional

from ..errors import RequestCancelledError, raise_if_cancelled
from ..interfaces import (
	TEXT_FALLBACK_MODE,
	AbortSignal,
	CodeGenerationInput,
	ExecutionContext,
	ExecutionInput,
	ExecutionResult,
	IncrementalCodegenSession,
	IncrementalUpdate,
	LLMInterpreter,
	LLMRequest,
	LLMResponse,
	has_capability,
)
from ..plans.models import Plan
from .llm import (
	ResponseMode,
	as_fallback,
	from_structured,
	request_structured,
	structured_usable,
	supports_structured,
)

if TYPE_CHECKING:
	from .core import OrchestratorDependencies, RenderPromptResult

logger = logging.getLogger(__name__)

MIN_STRUCTURED_CHUNK = 256


class StreamChunkType(str, Enum):
	LLM_DELTA = "llm-delta"
	PREVIEW = "preview"
	FINAL = "final"
	ERROR = "error"


@dataclass
class StreamChunk:
	"""One value pulled from ``render_prompt_stream``."""
	type: StreamChunkType
	trace_id: str
	prompt: str
	llm_text: str = ""
	delta: Optional[str] = None
	html: Optional[str] = None
	diagnostics: list[dict[str, Any]] = field(default_factory=list)
	plan_id: Optional[str] = None
	final: Optional["RenderPromptResult"] = None
	error: Optional[dict[str, str]] = None


@dataclass
class TextChunk:
	delta: str
	text: str
	done: bool = False


def split_structured_text(text: str) -> list[str]:
	"""Slice a complete structured response into at most four pieces of 256+ chars."""
	size = max(MIN_STRUCTURED_CHUNK, len(text) // 4)
	return [text[offset:offset + size] for offset in range(0, len(text), size)]


class LLMTextStream:
	"""
	Single iteration over the model's text, whatever its source.

	``response`` holds the complete ``LLMResponse`` once ``chunks()`` has
	been exhausted.
	"""

	def __init__(self, llm: LLMInterpreter, request: LLMRequest, use_structured: bool):
		self.llm = llm
		self.request = request
		self.use_structured = use_structured
		self.response: Optional[LLMResponse] = None

	async def chunks(self) -> AsyncIterator[TextChunk]:
		if not supports_structured(self.llm, self.use_structured):
			async with aclosing(self._plain_chunks()) as plain:
				async for chunk in plain:
					yield chunk
			return

		structured = await request_structured(self.llm, self.request)
		if structured_usable(structured):
			pieces = split_structured_text(structured.text)
			text = ""
			for index, piece in enumerate(pieces):
				text += piece
				yield TextChunk(delta=piece, text=text, done=index == len(pieces) - 1)
			self.response = from_structured(structured)
			return

		async with aclosing(self._plain_chunks()) as plain:
			async for chunk in plain:
				yield chunk
		self.response = as_fallback(self.response, structured.errors)

	async def _plain_chunks(self) -> AsyncIterator[TextChunk]:
		if not has_capability(self.llm, "generate_response_stream"):
			response = await self.llm.generate_response(self.request)
			yield TextChunk(delta=response.text, text=response.text, done=True)
			self.response = response
			return

		latest = None
		text = ""
		async with aclosing(self.llm.generate_response_stream(self.request)) as upstream:
			async for chunk in upstream:
				latest = chunk
				text = chunk.text
				yield TextChunk(delta=chunk.delta, text=chunk.text, done=chunk.done)

		tokens_used = latest.tokens_used if latest and latest.tokens_used is not None else len(text)
		self.response = LLMResponse(
			text=text,
			tokens_used=tokens_used,
			model=latest.model if latest else None,
			raw={"mode": ResponseMode.STREAM.value, "source": latest.raw if latest else None},
		)


@dataclass
class Preview:
	plan: Plan
	execution: ExecutionResult
	html: str


class PreviewBuilder:
	"""
	Renders speculative plans while text is still streaming.

	Every delta is fed to the incremental session when the code generator
	offers one; ``build()`` then renders the newest candidate. Without a
	session the partial text is run through full plan generation instead.
	Failures only mean no preview, except cancellation which propagates.
	"""

	def __init__(
		self,
		deps: "OrchestratorDependencies",
		*,
		prompt: str,
		context: dict[str, Any],
		user_id: str,
		target: Any = None,
		signal: Optional[AbortSignal] = None,
		session: Optional[IncrementalCodegenSession] = None,
	):
		self.deps = deps
		self.prompt = prompt
		self.context = context
		self.user_id = user_id
		self.target = target
		self.signal = signal
		self.session = session
		self._pending: Optional[IncrementalUpdate] = None

	async def push(self, delta: Optional[str]) -> None:
		if self.session is None or not delta:
			return
		try:
			update = await self.session.push_delta(delta)
		except Exception as e:
			logger.debug(f"Incremental codegen rejected delta: {e}")
			return
		if update is not None:
			self._pending = update

	async def build(self, llm_text: str) -> Optional[Preview]:
		try:
			raise_if_cancelled(self.signal)
			plan = await self._candidate_plan(llm_text)
			if plan is None:
				return None

			security = await self.deps.security.check_plan(plan)
			if not security.safe:
				logger.debug(f"Preview plan {plan.id} failed policy check")
				return None

			return await self._render_isolated(plan)
		except RequestCancelledError:
			raise
		except Exception as e:
			logger.debug(f"Preview skipped: {e}")
			return None

	async def _candidate_plan(self, llm_text: str) -> Optional[Plan]:
		if self.session is None:
			return await self.deps.codegen.generate_plan(
				CodeGenerationInput(prompt=self.prompt, llm_text=llm_text, context=self.context)
			)

		update, self._pending = self._pending, None
		# Text-fallback candidates are too noisy to render mid-stream
		if update is None or update.mode == TEXT_FALLBACK_MODE:
			return None
		return update.plan

	async def _render_isolated(self, plan: Plan) -> Preview:
		runtime = self.deps.runtime
		prior_state = runtime.get_plan_state(plan.id)
		try:
			execution = await runtime.execute(
				ExecutionInput(
					plan=plan,
					context=ExecutionContext(user_id=self.user_id),
					signal=self.signal,
				)
			)
			html = await self.deps.renderer.render(execution, self.target)
		finally:
			if prior_state is None:
				runtime.clear_plan_state(plan.id)
			else:
				runtime.set_plan_state(plan.id, prior_state)

		return Preview(plan=plan, execution=execution, html=html)
