"""CLI for render-orchestrator: inspect plan history, audit records and configuration."""

import argparse
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version

from rich.console import Console
from rich.table import Table

from .audit import SqliteAuditLog
from .config import Config, load_config
from .logging_config import setup_logging
from .plans import SqlitePlanRegistry


def _version() -> str:
	try:
		return pkg_version("render-orchestrator")
	except PackageNotFoundError:
		return "unknown"


def _stores(config: Config) -> tuple[SqlitePlanRegistry, SqliteAuditLog]:
	return SqlitePlanRegistry(str(config.plans_db_path)), SqliteAuditLog(str(config.audit_db_path))


def cmd_plans(args: argparse.Namespace) -> None:
	"""List registered plans, or the versions of one plan."""
	from .visualizer.history import render_plan_list, render_plan_versions

	registry, _ = _stores(args.config)
	plan_id = getattr(args, "plan_id", None)
	if plan_id:
		render_plan_versions(plan_id, registry.list_versions(plan_id))
	else:
		render_plan_list(registry.list())


def cmd_audits(args: argparse.Namespace) -> None:
	"""List recent executions, or show one trace in detail."""
	from .visualizer.history import render_audit_detail, render_audit_list

	_, audit_log = _stores(args.config)
	trace_id = getattr(args, "trace", None)
	if trace_id:
		record = audit_log.get(trace_id)
		if record is None:
			print(f"No execution found for trace '{trace_id}'.")
			sys.exit(1)
		render_audit_detail(record)
	else:
		render_audit_list(audit_log.list(limit=getattr(args, "limit", 20)))


def cmd_config(args: argparse.Namespace) -> None:
	"""Show the effective configuration."""
	table = Table(title="Configuration")
	table.add_column("Key", style="cyan")
	table.add_column("Value")
	for key, value in args.config.to_dict().items():
		table.add_row(key, str(value))
	Console().print(table)


def cmd_clear_history(args: argparse.Namespace) -> None:
	"""Purge stored plans and audit records."""
	if not getattr(args, "yes", False):
		response = input("Delete all stored plans and audit records? [y/N] ").strip().lower()
		if response not in ("y", "yes"):
			print("Aborted.")
			return

	registry, audit_log = _stores(args.config)
	registry.clear()
	audit_log.clear()
	print("History cleared.")


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="render-orchestrator",
		description="Inspect render pipeline history: plans, executions and configuration",
	)
	parser.add_argument("--version", action="version", version=f"%(prog)s {_version()}")
	parser.add_argument("--log-level", type=str, default=None, help="Override the configured log level")
	subparsers = parser.add_subparsers(dest="command")

	# plans
	plans_parser = subparsers.add_parser("plans", help="Registered plans and their versions")
	plans_parser.add_argument("plan_id", nargs="?", default=None, help="Plan ID for the version history")
	plans_parser.set_defaults(func=cmd_plans)

	# audits
	audits_parser = subparsers.add_parser("audits", help="Execution audit records")
	audits_parser.add_argument("--limit", type=int, default=20, help="Max results")
	audits_parser.add_argument("--trace", type=str, default=None, help="Detail view for a single trace")
	audits_parser.set_defaults(func=cmd_audits)

	# config
	config_parser = subparsers.add_parser("config", help="Show effective configuration")
	config_parser.set_defaults(func=cmd_config)

	# clear-history
	clear_parser = subparsers.add_parser("clear-history", help="Purge stored plans and audit records")
	clear_parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
	clear_parser.set_defaults(func=cmd_clear_history)

	return parser


def main() -> None:
	"""CLI entry point."""
	parser = build_parser()
	args = parser.parse_args()

	if not args.command:
		parser.print_help()
		sys.exit(1)

	config = load_config()
	setup_logging(level=args.log_level or config.log_level, log_dir=config.log_dir)
	args.config = config
	args.func(args)


if __name__ == "__main__":
	main()
