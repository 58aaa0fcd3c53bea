"""
Structured generation retry policy.

The structured endpoint is tried first. An invalid result earns exactly one
corrective retry carrying the validation errors; if that also fails the
caller falls back to plain text generation. Exceptions raised by the client
are never retried.
"""

import logging
from dataclasses import replace
from enum import Enum
from typing import Optional

from ..interfaces import (
	LLMInterpreter,
	LLMRequest,
	LLMResponse,
	LLMStructuredRequest,
	LLMStructuredResponse,
	has_capability,
)

logger = logging.getLogger(__name__)

DEFAULT_RETRY_HINT = "response did not pass RuntimePlan validation"
RETRY_INSTRUCTION = "Return corrected RuntimePlan JSON only. No markdown."


class ResponseMode(str, Enum):
	"""Value of ``LLMResponse.raw["mode"]``."""
	STRUCTURED = "structured"
	FALLBACK_TEXT = "fallback-text"
	STREAM = "stream"


def supports_structured(llm: LLMInterpreter, enabled: bool) -> bool:
	return enabled and has_capability(llm, "generate_structured_response")


def build_retry_prompt(prompt: str, errors: list[str]) -> str:
	hint = "; ".join(errors) if errors else DEFAULT_RETRY_HINT
	return f"{prompt}\n\nPrevious structured response was invalid: {hint}\n{RETRY_INSTRUCTION}"


def structured_usable(response: LLMStructuredResponse) -> bool:
	return response.valid and bool(response.text.strip())


async def request_structured(llm: LLMInterpreter, request: LLMRequest) -> LLMStructuredResponse:
	"""
	Ask for a structured plan, retrying once on a validation failure.

	The returned response carries the errors of both attempts.
	"""
	structured_request = LLMStructuredRequest(
		prompt=request.prompt,
		context=request.context,
		signal=request.signal,
	)
	response = await llm.generate_structured_response(structured_request)
	errors = list(response.errors or [])

	if not response.valid:
		logger.info(f"Structured response invalid ({len(errors)} errors), retrying once")
		retry_request = replace(structured_request, prompt=build_retry_prompt(request.prompt, errors))
		retried = await llm.generate_structured_response(retry_request)
		errors.extend(retried.errors or [])
		response = replace(retried, errors=errors)
		if not response.valid:
			logger.warning("Structured retry failed, falling back to text generation")

	return response


def from_structured(response: LLMStructuredResponse) -> LLMResponse:
	return LLMResponse(
		text=response.text,
		tokens_used=response.tokens_used if response.tokens_used is not None else len(response.text),
		model=response.model,
		raw={
			"mode": ResponseMode.STRUCTURED.value,
			"value": response.value,
			"errors": list(response.errors or []),
			"payload": response.raw,
		},
	)


def as_fallback(response: LLMResponse, structured_errors: Optional[list[str]]) -> LLMResponse:
	"""Tag a text response produced after structured generation gave up."""
	return replace(
		response,
		raw={
			"mode": ResponseMode.FALLBACK_TEXT.value,
			"structured_errors": list(structured_errors or []),
			"fallback_payload": response.raw,
		},
	)


async def generate_llm_response(llm: LLMInterpreter, request: LLMRequest, use_structured: bool) -> LLMResponse:
	"""Non-streaming generation following the retry policy."""
	if not supports_structured(llm, use_structured):
		return await llm.generate_response(request)

	structured = await request_structured(llm, request)
	if structured_usable(structured):
		return from_structured(structured)

	fallback = await llm.generate_response(request)
	return as_fallback(fallback, structured.errors)
