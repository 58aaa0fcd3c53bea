"""Visualizer package - Rich terminal views for plan and execution history."""

from .history import render_audit_detail, render_audit_list, render_plan_list, render_plan_versions

__all__ = [
	"render_audit_detail",
	"render_audit_list",
	"render_plan_list",
	"render_plan_versions",
]
