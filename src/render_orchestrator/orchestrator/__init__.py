"""Orchestrator module - Render flows, streaming, retry policy and lifecycle events."""

from .core import (
	LifecycleState,
	Orchestrator,
	OrchestratorDependencies,
	RenderPlanResult,
	RenderPromptResult,
	create_orchestrator,
)
from .events import EventEmitter, OrchestratorEvent
from .streaming import StreamChunk, StreamChunkType

__all__ = [
	"Orchestrator",
	"OrchestratorDependencies",
	"LifecycleState",
	"RenderPlanResult",
	"RenderPromptResult",
	"create_orchestrator",
	"EventEmitter",
	"OrchestratorEvent",
	"StreamChunk",
	"StreamChunkType",
]
