"""Plans module - Versioned plan models and registries."""

from .models import Plan, PlanSource, PlanState, PlanSummary, PlanVersionRecord
from .registry import InMemoryPlanRegistry, PlanRegistry, SqlitePlanRegistry, normalize_plan

__all__ = [
	"Plan",
	"PlanSource",
	"PlanState",
	"PlanSummary",
	"PlanVersionRecord",
	"PlanRegistry",
	"InMemoryPlanRegistry",
	"SqlitePlanRegistry",
	"normalize_plan",
]
