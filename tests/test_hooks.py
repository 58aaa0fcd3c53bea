"""Tests for the hook pipeline - ordered transforms and plugins."""

import pytest

from render_orchestrator.errors import HookContractError
from render_orchestrator.hooks import HookPipeline, Plugin, PluginHook, get_hook, trace_annotation_plugin
from render_orchestrator.interfaces import HookContext

from .helpers import make_plan


def ctx(hook: PluginHook = PluginHook.BEFORE_LLM) -> HookContext:
	return HookContext(trace_id="trace_test", hook_name=hook.value)


class TestPluginHook:
	def test_ten_hooks_in_pipeline_order(self):
		assert [h.value for h in PluginHook] == [
			"beforeLLM",
			"afterLLM",
			"beforeCodeGen",
			"afterCodeGen",
			"beforePolicyCheck",
			"afterPolicyCheck",
			"beforeRuntime",
			"afterRuntime",
			"beforeRender",
			"afterRender",
		]

	def test_get_hook(self):
		assert get_hook("afterRender") == PluginHook.AFTER_RENDER
		assert get_hook("nope") is None


class TestHookPipeline:
	"""Tests for register/run_hook."""

	@pytest.mark.asyncio
	async def test_no_transforms_is_identity(self):
		pipeline = HookPipeline()
		payload = {"a": 1}
		assert await pipeline.run_hook(PluginHook.BEFORE_LLM, payload, ctx()) is payload

	@pytest.mark.asyncio
	async def test_left_fold_in_registration_order(self):
		pipeline = HookPipeline()
		pipeline.register(PluginHook.BEFORE_LLM, lambda p, c: p + " one")
		pipeline.register(PluginHook.BEFORE_LLM, lambda p, c: p + " two")

		assert await pipeline.run_hook(PluginHook.BEFORE_LLM, "zero", ctx()) == "zero one two"

	@pytest.mark.asyncio
	async def test_async_transforms_are_awaited(self):
		async def shout(payload, context):
			return payload.upper()

		pipeline = HookPipeline()
		pipeline.register("afterRender", shout)
		assert await pipeline.run_hook("afterRender", "<p>hi</p>", ctx()) == "<P>HI</P>"

	@pytest.mark.asyncio
	async def test_hooks_are_isolated(self):
		pipeline = HookPipeline()
		pipeline.register(PluginHook.AFTER_LLM, lambda p, c: "changed")
		assert await pipeline.run_hook(PluginHook.BEFORE_LLM, "kept", ctx()) == "kept"

	@pytest.mark.asyncio
	async def test_context_is_passed(self):
		seen = []
		pipeline = HookPipeline()
		pipeline.register(PluginHook.BEFORE_RENDER, lambda p, c: seen.append(c) or p)

		await pipeline.run_hook(PluginHook.BEFORE_RENDER, "x", ctx(PluginHook.BEFORE_RENDER))
		assert seen[0].trace_id == "trace_test"
		assert seen[0].hook_name == "beforeRender"

	@pytest.mark.asyncio
	async def test_none_result_raises(self):
		pipeline = HookPipeline()
		pipeline.register(PluginHook.BEFORE_LLM, lambda p, c: None)
		with pytest.raises(HookContractError):
			await pipeline.run_hook(PluginHook.BEFORE_LLM, "x", ctx())

	def test_unknown_hook_rejected(self):
		pipeline = HookPipeline()
		with pytest.raises(ValueError):
			pipeline.register("duringLunch", lambda p, c: p)


class TestPlugins:
	def test_register_plugin(self):
		pipeline = HookPipeline()
		plugin = Plugin(
			name="upper",
			hooks={PluginHook.BEFORE_LLM: lambda p, c: p.upper(), PluginHook.AFTER_RENDER: lambda p, c: p},
		)
		pipeline.register_plugin(plugin)

		assert pipeline.get_plugins() == [plugin]
		assert pipeline.transforms_for(PluginHook.BEFORE_LLM) == ["upper"]
		assert pipeline.transforms_for(PluginHook.AFTER_RENDER) == ["upper"]

	@pytest.mark.asyncio
	async def test_trace_annotation_plugin(self):
		pipeline = HookPipeline()
		pipeline.register_plugin(trace_annotation_plugin())
		plan = make_plan("p1")

		annotated = await pipeline.run_hook(PluginHook.AFTER_CODEGEN, plan, ctx(PluginHook.AFTER_CODEGEN))

		assert annotated.metadata == {"trace_id": "trace_test"}
		assert plan.metadata is None
