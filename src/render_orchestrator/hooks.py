"""
Hook pipeline - ordered transform points threaded through every stage.

Each named hook holds a list of transforms. Running a hook folds the payload
through them in registration order; a hook with no transforms returns the
payload unchanged. Transforms may be plain functions or coroutines.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from .errors import HookContractError
from .interfaces import HookContext, maybe_await
from .plans.models import Plan

logger = logging.getLogger(__name__)


class PluginHook(str, Enum):
	"""Extension points, in pipeline order."""
	BEFORE_LLM = "beforeLLM"
	AFTER_LLM = "afterLLM"
	BEFORE_CODEGEN = "beforeCodeGen"
	AFTER_CODEGEN = "afterCodeGen"
	BEFORE_POLICY_CHECK = "beforePolicyCheck"
	AFTER_POLICY_CHECK = "afterPolicyCheck"
	BEFORE_RUNTIME = "beforeRuntime"
	AFTER_RUNTIME = "afterRuntime"
	BEFORE_RENDER = "beforeRender"
	AFTER_RENDER = "afterRender"


HookTransform = Callable[[Any, HookContext], Union[Any, Awaitable[Any]]]


@dataclass
class Plugin:
	"""A named bundle of hook transforms."""

	name: str
	hooks: dict[PluginHook, HookTransform] = field(default_factory=dict)
	description: str = ""


def _coerce_hook(hook_name: Union[PluginHook, str]) -> PluginHook:
	try:
		return PluginHook(hook_name)
	except ValueError:
		raise ValueError(f"Unknown hook: {hook_name}") from None


class HookPipeline:
	"""
	Default customization engine.

	Usage:
		pipeline = HookPipeline()
		pipeline.register(PluginHook.BEFORE_LLM, lambda prompt, ctx: prompt.strip())
		prompt = await pipeline.run_hook(PluginHook.BEFORE_LLM, " hi ", ctx)
	"""

	def __init__(self):
		self._transforms: dict[PluginHook, list[tuple[str, HookTransform]]] = {
			hook: [] for hook in PluginHook
		}
		self._plugins: list[Plugin] = []

	def register(self, hook_name: Union[PluginHook, str], transform: HookTransform, owner: str = "") -> None:
		"""Append a transform to a hook."""
		hook = _coerce_hook(hook_name)
		label = owner or getattr(transform, "__name__", "transform")
		self._transforms[hook].append((label, transform))
		logger.debug(f"Registered {label} on {hook.value}")

	def register_plugin(self, plugin: Plugin) -> None:
		"""Register every transform a plugin declares."""
		for hook_name, transform in plugin.hooks.items():
			self.register(hook_name, transform, owner=plugin.name)
		self._plugins.append(plugin)
		logger.info(f"Registered plugin '{plugin.name}' ({len(plugin.hooks)} hooks)")

	def get_plugins(self) -> list[Plugin]:
		return list(self._plugins)

	def transforms_for(self, hook_name: Union[PluginHook, str]) -> list[str]:
		"""Names of the transforms registered on a hook, in run order."""
		return [label for label, _ in self._transforms[_coerce_hook(hook_name)]]

	async def run_hook(self, hook_name: Union[PluginHook, str], payload: Any, context: HookContext) -> Any:
		"""
		Fold a payload through a hook's transforms.

		Raises:
			HookContractError: If a transform returns None.
		"""
		hook = _coerce_hook(hook_name)
		current = payload
		for label, transform in self._transforms[hook]:
			current = await maybe_await(transform(current, context))
			if current is None:
				raise HookContractError(f"Hook transform '{label}' on {hook.value} returned no payload")
		return current


# Predefined plugins

def trace_annotation_plugin(key: str = "trace_id") -> Plugin:
	"""
	Stamp the trace id into plan metadata after code generation.

	Useful for correlating registered plan versions with audit records.
	"""

	def annotate(plan: Plan, context: HookContext) -> Plan:
		annotated = plan.model_copy(deep=True)
		annotated.metadata = {**(annotated.metadata or {}), key: context.trace_id}
		return annotated

	return Plugin(
		name="trace_annotation",
		hooks={PluginHook.AFTER_CODEGEN: annotate},
		description="Adds the trace id to plan metadata",
	)


def get_hook(name: str) -> Optional[PluginHook]:
	"""Look up a hook by its name, returning None for unknown names."""
	try:
		return PluginHook(name)
	except ValueError:
		return None
