"""
Command-line interface for the Archon console.

Commands:
- run: Start the interactive console
- config: Show, create or validate the inventory file

Runtime settings come from the environment (a .env file in the working
directory is loaded first) and can be overridden with flags.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import __version__
from .audit_logger import AuditLogger
from .config import DEFAULT_LOG_PATH, RuntimeConfig, runtime_config_from_env
from .dispatcher import ActionDispatcher
from .dns_providers import create_provider
from .event_loop import ConsoleLoop, InputSource, StdinInputSource
from .exceptions import ConfigError
from .inventory_store import Inventory, InventoryStore
from .node_client import NodeClient
from .render import TerminalRenderer
from .scheduler import HealthCheckScheduler
from .spawner import TaskSpawner
from .state import InventoryState


async def run_console(
    state: InventoryState,
    store: InventoryStore,
    runtime: RuntimeConfig,
    logger: Optional[AuditLogger] = None,
    input_source: Optional[InputSource] = None,
    renderer: Optional[TerminalRenderer] = None,
) -> None:
    """
    Wire the console together and run it until the operator quits.

    Args:
        state: Initial state, built from the loaded inventory
        store: Inventory storage
        runtime: Runtime configuration
        logger: Optional audit logger
        input_source: Source of input lines (defaults to stdin)
        renderer: Frame writer (defaults to stdout)
    """
    inbox: asyncio.Queue = asyncio.Queue()
    timeout = runtime.client.timeout_seconds

    async with NodeClient(timeout=timeout) as node_client:
        spawner = TaskSpawner(
            inbox,
            node_client,
            provider_factory=lambda config: create_provider(config, timeout=timeout),
            logger=logger,
            log_lines=runtime.client.log_lines,
        )
        dispatcher = ActionDispatcher(state, spawner, store, logger)
        scheduler = HealthCheckScheduler(
            inbox,
            lambda: state.settings.health_check_interval_seconds,
            logger,
        )
        loop = ConsoleLoop(
            dispatcher,
            inbox,
            input_source or StdinInputSource(),
            renderer or TerminalRenderer(),
            logger=logger,
        )

        scheduler_task = asyncio.create_task(scheduler.run())
        try:
            await loop.run()
        finally:
            scheduler.stop()
            scheduler_task.cancel()
            await asyncio.gather(scheduler_task, return_exceptions=True)
            await spawner.shutdown()


def cmd_run(args: argparse.Namespace) -> int:
    """Handle the 'run' command."""
    runtime = runtime_config_from_env()
    if args.config:
        runtime.config_path = Path(args.config).expanduser()
    if args.log_file:
        runtime.logging.log_file = Path(args.log_file).expanduser()
    if args.log_level:
        runtime.logging.level = args.log_level
    if runtime.logging.log_file is None:
        # The console owns the terminal
        runtime.logging.log_file = DEFAULT_LOG_PATH

    store = InventoryStore(runtime.config_path)
    try:
        inventory = store.load()
    except ConfigError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    logger = AuditLogger.from_config(runtime.logging)
    logger.info(
        "CLI",
        "Console starting",
        {
            "config_path": str(runtime.config_path),
            "sites": len(inventory.sites),
            "domains": len(inventory.domains),
            "nodes": len(inventory.nodes),
        },
    )

    state = InventoryState.from_inventory(inventory, runtime.config_path)
    try:
        asyncio.run(run_console(state, store, runtime, logger))
    except KeyboardInterrupt:
        logger.info("CLI", "Interrupted", {})
    finally:
        logger.info("CLI", "Console stopped", {})
        logger.close()
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = (
        Path(args.path).expanduser() if args.path
        else runtime_config_from_env().config_path
    )
    store = InventoryStore(config_path)

    if args.action == "show":
        if not config_path.exists():
            print(f"No inventory file at: {config_path}")
            print("Run 'archon config init' to create one.")
            return 1
        try:
            inventory = store.load()
        except ConfigError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1

        settings = inventory.settings
        print(f"Inventory: {config_path}")
        print(f"  Version: {inventory.version}")
        print(f"  Sites: {len(inventory.sites)}")
        print(f"  Domains: {', '.join(d.name for d in inventory.domains) or '-'}")
        print(f"  Nodes: {', '.join(n.name for n in inventory.nodes) or '-'}")
        print(f"  Auto save: {settings.auto_save}")
        print(f"  Health check interval: {settings.health_check_interval_seconds}s")
        print(f"  Default DNS TTL: {settings.default_dns_ttl}")
        print(f"  Theme: {settings.theme}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Inventory file already exists: {config_path}")
            print("Pass --force to replace it.")
            return 1
        try:
            store.save(Inventory())
        except ConfigError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
        print(f"Wrote default inventory to {config_path}")
        return 0

    elif args.action == "validate":
        if not config_path.exists():
            print(f"Error: No inventory file at: {config_path}", file=sys.stderr)
            return 1
        try:
            store.load()
        except ConfigError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
        print(f"Inventory {config_path} is valid.")
        return 0

    return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="archon",
        description="Operator console for sites, domains and deployment nodes",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'run' command
    run_parser = subparsers.add_parser(
        "run",
        help="Start the interactive console",
    )
    run_parser.add_argument(
        "--config", "-c",
        help="Path to the inventory file",
    )
    run_parser.add_argument(
        "--log-file",
        help=f"Path to the log file (default: {DEFAULT_LOG_PATH})",
    )
    run_parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warn", "error"],
        help="Minimum log level",
    )
    run_parser.set_defaults(func=cmd_run)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Inspect or create the inventory file",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="What to do with the inventory file",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to the inventory file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Replace an existing inventory file",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    load_dotenv()
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
