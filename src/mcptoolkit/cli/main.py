"""
mcptoolkit command line - inspect and call stdio MCP servers.
"""

import argparse
import asyncio
import json
import sys
from typing import Dict, List, Optional

from loguru import logger
from rich.console import Console
from rich.table import Table

from mcptoolkit import __version__
from mcptoolkit.config.manager import ConfigManager
from mcptoolkit.config.models import MCPServerConfig
from mcptoolkit.core.shutdown import shutdown_coordinator
from mcptoolkit.errors import ConfigurationError, MCPToolkitError
from mcptoolkit.toolkit import MCPToolkit

console = Console()


def setup_logging(debug: bool = False, log_file: Optional[str] = None, level: str = "INFO") -> None:
    """Configure logging. Protocol traffic owns stdout, so logs go to stderr."""
    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level="DEBUG" if debug else level,
        colorize=True,
    )

    if log_file:
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
            compression="zip",
        )


def _select_servers(args: argparse.Namespace, config: ConfigManager) -> Dict[str, MCPServerConfig]:
    if args.command:
        return {"cli": MCPServerConfig(command=args.command, args=list(args.arg or []))}

    servers = config.server_configs()
    if args.server:
        missing = [s for s in args.server if s not in servers]
        if missing:
            raise ConfigurationError(f"Unknown server(s) {missing}; configured: {sorted(servers)}")
        return {name: servers[name] for name in args.server}
    if not servers:
        raise ConfigurationError(f"No MCP servers configured in {config.path}")
    return servers


def _print_tools(toolkits: List[MCPToolkit]) -> None:
    table = Table(title="MCP tools")
    table.add_column("Server", style="cyan")
    table.add_column("Tool", style="bold")
    table.add_column("Arguments")
    table.add_column("Description")
    for toolkit in toolkits:
        for tool in toolkit.tools:
            args = ", ".join(tool.definition.parameters.get("properties", {}).keys())
            table.add_row(toolkit.name, tool.name, args, tool.description)
    console.print(table)


async def run(args: argparse.Namespace) -> int:
    config = ConfigManager(args.config)
    await config.load()
    setup_logging(
        debug=args.debug or bool(config.get("app.debug")),
        log_file=args.log_file or config.get("logging.file"),
        level=str(config.get("logging.level", "INFO")),
    )

    servers = _select_servers(args, config)
    handle_signals = bool(config.get("mcp.handle_signals", True))
    toolkits = [
        MCPToolkit(entry, name=name, timeouts=config.timeouts(), handle_signals=handle_signals)
        for name, entry in servers.items()
    ]

    try:
        for toolkit in toolkits:
            await toolkit.initialize()

        if args.call:
            tool = next((t for tk in toolkits for t in tk.tools if t.name == args.call), None)
            if tool is None:
                raise ConfigurationError(f"No tool named '{args.call}'")
            try:
                call_args = json.loads(args.args) if args.args else {}
            except ValueError as e:
                raise ConfigurationError(f"--args must be a JSON object: {e}") from e
            if not isinstance(call_args, dict):
                raise ConfigurationError("--args must be a JSON object")
            console.print(await tool.invoke(call_args), markup=False, highlight=False)
        elif not args.serve or args.list:
            _print_tools(toolkits)

        if args.serve:
            shutdown_coordinator.install()
            logger.info("Serving; press Ctrl+C to stop")
            await shutdown_coordinator.wait()
    finally:
        for toolkit in toolkits:
            await toolkit.cleanup()

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcptoolkit",
        description="Inspect and call tools on stdio MCP servers",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to configuration file (YAML or JSON)")
    parser.add_argument("--server", action="append", help="Configured server to start (repeatable)")
    parser.add_argument("--command", type=str, help="Launch this command instead of configured servers")
    parser.add_argument("--arg", action="append", help="Argument for --command (repeatable)")
    parser.add_argument("--list", action="store_true", help="List the tools of every started server")
    parser.add_argument("--call", type=str, metavar="TOOL", help="Call a tool and print its result")
    parser.add_argument("--args", type=str, metavar="JSON", help="JSON object of arguments for --call")
    parser.add_argument("--serve", action="store_true", help="Keep servers running until SIGINT/SIGTERM")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", type=str, default=None, help="Also log to this file")
    parser.add_argument("--version", action="version", version=f"mcptoolkit {__version__}")
    return parser


def cli(argv: Optional[List[str]] = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug, log_file=args.log_file)

    try:
        code = asyncio.run(run(args))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        code = 2
    except MCPToolkitError as e:
        logger.error(f"{type(e).__name__}: {e}")
        code = 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        code = 130
    sys.exit(code)
