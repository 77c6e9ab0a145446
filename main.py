"""
MEMORYMESH MAIN - Entry Point and CLI

Commands:
    tools    - List available tools (built-in and schema-generated)
    call     - Call a tool with JSON arguments
    read     - Print the whole graph
    search   - Substring search over nodes
    open     - Open nodes by exact name
    stats    - Graph statistics
    log      - Print the persisted mutation log
    serve    - Start the HTTP API server

Usage:
    # Add a node
    python main.py call add_nodes '{"nodes": [{"name": "Alice", "nodeType": "Person", "metadata": []}]}'

    # Use another memory file
    python main.py --memory-file ./work/memory.jsonl read

    # Search
    python main.py search alice

    # Start API
    python main.py serve --port 8000

Global options resolve before memorymesh.toml and the environment
(MEMORYMESH_MEMORY_FILE, MEMORYMESH_LOG_LEVEL, MEMORYMESH_SCHEMAS_DIR,
MEMORYMESH_CONFIG).
"""
import logging
import os
import sys
from typing import Any

import msgspec

from api.manager import ApplicationManager
from api.schema_tools import create_registry
from core.errors import GraphError
from infrastructure.config import (
    ENV_CONFIG_FILE,
    ENV_LOG_LEVEL,
    ENV_MEMORY_FILE,
    ENV_SCHEMAS_DIR,
    MemoryMeshConfig,
    load_config,
)


logger = logging.getLogger("memorymesh.cli")


def _print_json(data: Any) -> None:
    print(msgspec.json.format(msgspec.json.encode(data), indent=2).decode())


def _configure(args) -> MemoryMeshConfig:
    config = load_config(
        config_path=args.config,
        memory_file=args.memory_file,
        log_level=args.log_level,
        schemas_dir=args.schemas_dir,
    )
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return config


def _manager(args) -> ApplicationManager:
    return ApplicationManager(config=_configure(args))


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_tools(args) -> int:
    """Handle tools command."""
    with _manager(args) as manager:
        registry = create_registry(manager)
        for tool in registry.list_tools():
            print(f"{tool.name:<16} {tool.description}")
    return 0


def cmd_call(args) -> int:
    """Handle call command."""
    try:
        arguments = msgspec.json.decode(args.arguments) if args.arguments else {}
    except msgspec.DecodeError as e:
        print(f"Invalid JSON arguments: {e}", file=sys.stderr)
        return 2

    with _manager(args) as manager:
        result = create_registry(manager).call(args.tool, arguments)
    _print_json(result)
    return 0 if result.success else 1


def cmd_read(args) -> int:
    with _manager(args) as manager:
        _print_json(manager.read_graph())
    return 0


def cmd_search(args) -> int:
    with _manager(args) as manager:
        _print_json(manager.search_nodes(args.query))
    return 0


def cmd_open(args) -> int:
    with _manager(args) as manager:
        _print_json(manager.open_nodes(args.names))
    return 0


def cmd_stats(args) -> int:
    with _manager(args) as manager:
        _print_json(manager.graph_stats())
    return 0


def cmd_log(args) -> int:
    """Handle log command - print the mutation log file."""
    config = _configure(args)
    if not config.mutation_log_enabled:
        print("Mutation logging is disabled (mutation_log_enabled = false)", file=sys.stderr)
        return 1
    with ApplicationManager(config=config) as manager:
        records = manager.mutation_log.read_log()
    _print_json(records[-args.limit:] if args.limit else records)
    return 0


def cmd_serve(args) -> int:
    """
    Handle serve command - run the API with Granian.

    The memory file has a single owner: every request loads and rewrites the
    whole file under one in-process lock, so the server runs one worker.
    """
    if args.workers != 1:
        print(
            f"--workers must be 1: the memory file is owned by a single process (got {args.workers})",
            file=sys.stderr,
        )
        return 2

    from granian import Granian
    from granian.constants import Interfaces

    config = _configure(args)

    # The worker builds its own manager from the environment
    os.environ[ENV_MEMORY_FILE] = config.memory_file
    os.environ[ENV_LOG_LEVEL] = config.log_level
    os.environ[ENV_SCHEMAS_DIR] = config.schemas_dir
    if args.config:
        os.environ[ENV_CONFIG_FILE] = str(args.config)

    print(f"Starting MemoryMesh API on {args.host}:{args.port} ({config.memory_file})")

    granian = Granian(
        target="api.routes:create_app",
        factory=True,
        address=args.host,
        port=args.port,
        interface=Interfaces.ASGI,
        workers=1,
    )
    granian.serve()
    return 0


# =============================================================================
# ENTRY POINT
# =============================================================================

def build_parser():
    import argparse

    parser = argparse.ArgumentParser(
        description="MemoryMesh - persistent graph store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--memory-file", help="Path to the JSON Lines memory file")
    parser.add_argument("--config", help="Path to memorymesh.toml")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--schemas-dir", help="Directory of *.schema.json node schemas")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    tools_parser = subparsers.add_parser("tools", help="List available tools")
    tools_parser.set_defaults(func=cmd_tools)

    call_parser = subparsers.add_parser("call", help="Call a tool")
    call_parser.add_argument("tool", help="Tool name (see 'tools')")
    call_parser.add_argument("arguments", nargs="?", help="JSON object of tool arguments")
    call_parser.set_defaults(func=cmd_call)

    read_parser = subparsers.add_parser("read", help="Print the whole graph")
    read_parser.set_defaults(func=cmd_read)

    search_parser = subparsers.add_parser("search", help="Search nodes")
    search_parser.add_argument("query", help="Case-insensitive substring")
    search_parser.set_defaults(func=cmd_search)

    open_parser = subparsers.add_parser("open", help="Open nodes by name")
    open_parser.add_argument("names", nargs="+", help="Exact node names")
    open_parser.set_defaults(func=cmd_open)

    stats_parser = subparsers.add_parser("stats", help="Graph statistics")
    stats_parser.set_defaults(func=cmd_stats)

    log_parser = subparsers.add_parser("log", help="Print the mutation log")
    log_parser.add_argument("--limit", type=int, default=0, help="Only the last N records")
    log_parser.set_defaults(func=cmd_log)

    serve_parser = subparsers.add_parser("serve", help="Start API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve_parser.add_argument("--workers", type=int, default=1, help="Number of workers (only 1 is supported)")
    serve_parser.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> int:
    """Main entry point with subcommands."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 2

    try:
        return args.func(args)
    except GraphError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
