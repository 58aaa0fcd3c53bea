"""Rich views for plan history and audit records."""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..audit import ExecutionAuditRecord
from ..plans.models import PlanSummary, PlanVersionRecord
from .utils import format_duration_ms, format_timestamp, status_markup, truncate


def render_plan_list(summaries: list[PlanSummary], console: Optional[Console] = None) -> None:
	"""Render one row per registered plan id."""
	console = console or Console()

	if not summaries:
		console.print("[dim]No plans registered yet.[/dim]")
		return

	table = Table(title="Plans")
	table.add_column("Plan ID", style="cyan")
	table.add_column("Latest", justify="right")
	table.add_column("Versions", justify="right")
	table.add_column("History")

	for summary in summaries:
		table.add_row(
			summary.plan_id,
			f"v{summary.latest_version}",
			str(len(summary.versions)),
			", ".join(f"v{v}" for v in summary.versions[-8:]),
		)

	console.print(table)


def render_plan_versions(
	plan_id: str,
	records: list[PlanVersionRecord],
	console: Optional[Console] = None,
) -> None:
	"""Render every stored version of a plan, oldest first."""
	console = console or Console()

	if not records:
		console.print(f"[dim]No versions found for plan '{plan_id}'.[/dim]")
		return

	table = Table(title=f"Plan: {plan_id}")
	table.add_column("Version", justify="right", style="cyan")
	table.add_column("Registered")
	table.add_column("Spec")
	table.add_column("Imports", justify="right")
	table.add_column("Stateful")
	table.add_column("Fingerprint", style="dim")

	for record in records:
		plan = record.plan
		table.add_row(
			f"v{record.version}",
			format_timestamp(record.registered_at),
			plan.spec_version,
			str(len(plan.imports)),
			"yes" if plan.state else "no",
			plan.fingerprint()[:12],
		)

	console.print(table)


def render_audit_list(records: list[ExecutionAuditRecord], console: Optional[Console] = None) -> None:
	"""Render audit records newest first."""
	console = console or Console()

	if not records:
		console.print("[dim]No executions recorded yet.[/dim]")
		return

	table = Table(title="Executions")
	table.add_column("Trace", style="cyan")
	table.add_column("Mode")
	table.add_column("Status")
	table.add_column("Tenant")
	table.add_column("Plan")
	table.add_column("Duration", justify="right")
	table.add_column("Started")
	table.add_column("Prompt / Error")

	for record in records:
		plan_ref = f"{record.plan_id} v{record.plan_version}" if record.plan_id else "-"
		detail = record.error_message if record.error_message else (record.prompt or "")
		table.add_row(
			record.trace_id,
			record.mode.value,
			status_markup(record.status),
			record.tenant_id or "-",
			plan_ref,
			format_duration_ms(record.duration_ms),
			format_timestamp(record.started_at),
			escape(truncate(detail, 48)),
		)

	console.print(table)


def render_audit_detail(record: ExecutionAuditRecord, console: Optional[Console] = None) -> None:
	"""Render a detail panel for one audit record."""
	console = console or Console()

	lines = [
		f"[bold]Mode:[/bold] {record.mode.value}",
		f"[bold]Status:[/bold] {status_markup(record.status)}",
		f"[bold]Tenant:[/bold] {record.tenant_id or '-'}",
		f"[bold]Started:[/bold] {record.started_at.isoformat(timespec='seconds')}",
		f"[bold]Duration:[/bold] {format_duration_ms(record.duration_ms)}",
	]
	if record.plan_id:
		lines.append(f"[bold]Plan:[/bold] {record.plan_id} v{record.plan_version}")
	lines.append(f"[bold]Diagnostics:[/bold] {record.diagnostics_count}")
	lines.append(f"[bold]Security issues:[/bold] {record.security_issue_count}")

	if record.prompt:
		lines.append("")
		lines.append(f"[bold]Prompt:[/bold] {escape(record.prompt)}")
	if record.event:
		lines.append(f"[bold]Event:[/bold] {escape(record.event.type)} {escape(str(record.event.payload or ''))}")
	if record.error_message:
		lines.append("")
		lines.append(f"[bold red]Error:[/bold red] {escape(record.error_message)}")

	border = "green" if record.succeeded else "red"
	console.print(Panel("\n".join(lines), title=f"Trace: {record.trace_id}", border_style=border))
