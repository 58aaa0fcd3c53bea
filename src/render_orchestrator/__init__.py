"""render-orchestrator - Prompt to plan to policy check to execution to render, with history."""

from .audit import ExecutionAuditRecord, ExecutionMode, InMemoryAuditLog, RuntimeEvent, SqliteAuditLog
from .errors import (
	ExecutionStatus,
	HookContractError,
	NotFoundError,
	NotRunningError,
	OrchestratorError,
	PolicyRejectionError,
	QuotaDimension,
	QuotaExceededError,
	RequestCancelledError,
	UnhandledPipelineError,
)
from .governor import TenantGovernor, TenantLease, TenantQuotaPolicy, TenantQuotaSnapshot
from .hooks import HookPipeline, Plugin, PluginHook
from .orchestrator import (
	LifecycleState,
	Orchestrator,
	OrchestratorDependencies,
	OrchestratorEvent,
	RenderPlanResult,
	RenderPromptResult,
	StreamChunk,
	StreamChunkType,
	create_orchestrator,
)
from .plans import InMemoryPlanRegistry, Plan, PlanSummary, PlanVersionRecord, SqlitePlanRegistry

__version__ = "0.1.0"

__all__ = [
	"Orchestrator",
	"OrchestratorDependencies",
	"LifecycleState",
	"RenderPlanResult",
	"RenderPromptResult",
	"create_orchestrator",
	"OrchestratorEvent",
	"StreamChunk",
	"StreamChunkType",
	"Plan",
	"PlanSummary",
	"PlanVersionRecord",
	"InMemoryPlanRegistry",
	"SqlitePlanRegistry",
	"ExecutionAuditRecord",
	"ExecutionMode",
	"RuntimeEvent",
	"InMemoryAuditLog",
	"SqliteAuditLog",
	"TenantGovernor",
	"TenantLease",
	"TenantQuotaPolicy",
	"TenantQuotaSnapshot",
	"HookPipeline",
	"Plugin",
	"PluginHook",
	"ExecutionStatus",
	"OrchestratorError",
	"NotRunningError",
	"PolicyRejectionError",
	"QuotaDimension",
	"QuotaExceededError",
	"NotFoundError",
	"RequestCancelledError",
	"UnhandledPipelineError",
	"HookContractError",
]
