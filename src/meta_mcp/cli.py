"""CLI interface for meta-mcp."""

from __future__ import annotations

import argparse
import json
import sys
import tomllib

from meta_mcp.config import MetaConfig, load_config, validate_config
from meta_mcp.metrics import setup_logging
from meta_mcp.store import ToolStore


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="meta-mcp",
		description="meta-mcp - an MCP server whose tools are defined at runtime",
	)
	parser.add_argument(
		"--config", default=None,
		help="Config file path (default: $META_MCP_CONFIG, else built-in defaults)",
	)
	sub = parser.add_subparsers(dest="command")

	# meta-mcp serve
	sub.add_parser("serve", help="Run the MCP server over stdio")

	# meta-mcp list
	list_cmd = sub.add_parser("list", help="List persisted custom tools")
	list_cmd.add_argument("--json", action="store_true", help="Print as JSON")

	# meta-mcp show
	show = sub.add_parser("show", help="Show one persisted custom tool")
	show.add_argument("name")

	# meta-mcp validate-config
	sub.add_parser("validate-config", help="Check the config for problems")

	return parser


def _open_store(config: MetaConfig) -> ToolStore:
	store = ToolStore(config.persistence.resolved_path, persist=config.persistence.enabled)
	store.load()
	return store


def cmd_serve(args: argparse.Namespace, config: MetaConfig) -> int:
	"""Start the MCP server."""
	from meta_mcp.mcp_server import run_mcp_server

	run_mcp_server(config)
	return 0


def cmd_list(args: argparse.Namespace, config: MetaConfig) -> int:
	"""List tools stored in the snapshot."""
	if not config.persistence.enabled:
		print("Persistence is disabled; no tools are stored.")
		return 0
	store = _open_store(config)
	summaries = [d.summary() for d in store.list()]
	if args.json:
		print(json.dumps(summaries, indent=2))
		return 0
	if not summaries:
		print(f"No tools in {store.path}")
		return 0
	width = max(len(s["name"]) for s in summaries)
	for s in summaries:
		print(f"{s['name']:<{width}}  {s['executionEnvironment']:<22}  {s['description']}")
	return 0


def cmd_show(args: argparse.Namespace, config: MetaConfig) -> int:
	"""Print the full definition of one stored tool."""
	store = _open_store(config)
	definition = store.get(args.name)
	if definition is None:
		print(f"No function named \"{args.name}\" exists.")
		return 1
	print(json.dumps(definition.to_dict(), indent=2))
	return 0


def cmd_validate_config(args: argparse.Namespace, config: MetaConfig) -> int:
	"""Validate config semantically."""
	issues = validate_config(config)

	errors = [(lvl, msg) for lvl, msg in issues if lvl == "error"]
	warnings = [(lvl, msg) for lvl, msg in issues if lvl == "warning"]

	for level, msg in issues:
		print(f"[{level.upper()}] {msg}")

	if not issues:
		print("Config OK")

	print(f"\n{len(errors)} error(s), {len(warnings)} warning(s)")
	return 1 if errors else 0


COMMANDS = {
	"serve": cmd_serve,
	"list": cmd_list,
	"show": cmd_show,
	"validate-config": cmd_validate_config,
}


def main(argv: list[str] | None = None) -> int:
	parser = build_parser()
	args = parser.parse_args(argv)

	if args.command is None:
		parser.print_help()
		return 0

	try:
		config = load_config(args.config)
	except (FileNotFoundError, tomllib.TOMLDecodeError) as e:
		print(f"Error: {e}", file=sys.stderr)
		return 1

	setup_logging(config.logging.level, json_format=config.logging.json)

	handler = COMMANDS.get(args.command)
	if handler is None:
		print(f"Unknown command: {args.command}")
		return 1

	return handler(args, config)


if __name__ == "__main__":
	sys.exit(main())
