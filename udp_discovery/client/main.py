"""
Client Main Entry Point

Discovers services once, or monitors announcements until interrupted.
"""

import argparse
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from udp_discovery import __version__
from udp_discovery.client.discovery_client import DiscoveryClient, aggregate_by_service
from udp_discovery.client.listener import PassiveListener
from udp_discovery.shared.config import ClientConfig, ConfigurationLoader
from udp_discovery.shared.exceptions import ConfigurationError, NetworkError
from udp_discovery.shared.logging_config import LogLevel, configure_from_env, get_logger
from udp_discovery.shared.models import DiscoveryResult, ServerRecord


def parse_command_line_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Args:
        argv: Argument list, defaults to sys.argv[1:].

    Returns:
        Parsed arguments.
    """
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--key", dest="expected_key", help="Shared key servers must present")
    common.add_argument("--discovery-port", type=int, help="UDP discovery port (default: 8888)")
    common.add_argument("--broadcast-address", help="Broadcast target address")
    common.add_argument(
        "--log-level",
        choices=[level.value for level in LogLevel],
        help="Logging level"
    )
    common.add_argument("--log-file", help="Log file path")
    common.add_argument("--config-file", help="Configuration file path")

    parser = argparse.ArgumentParser(description="Find services advertised over UDP broadcast")
    parser.add_argument("--version", action="version", version=f"udp-discovery-client {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    discover = subparsers.add_parser("discover", parents=[common], help="Broadcast a request and list responders")
    discover.add_argument("--timeout", type=float, help="Seconds to wait for responses (default: 5)")

    subparsers.add_parser("listen", parents=[common], help="Watch announcements until interrupted")

    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Collect configuration values given on the command line."""
    names = ("expected_key", "discovery_port", "broadcast_address", "timeout")
    return {name: getattr(args, name, None) for name in names if getattr(args, name, None) is not None}


def render_results(result: DiscoveryResult, console: Console) -> None:
    """
    Print a discovery result grouped by service.

    Args:
        result: Completed discovery run.
        console: Rich console to print to.
    """
    if not result.found_any:
        console.print(Panel(
            "[bold red]No valid servers found.[/bold red] Make sure:\n"
            "  1. Servers are running in periodic or on-request mode\n"
            "  2. You're on the same network\n"
            "  3. The shared key matches\n"
            "  4. The UDP discovery port is not blocked by a firewall",
            border_style="red"
        ))
    else:
        table = Table(
            title="Available Services",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Service", style="cyan")
        table.add_column("Endpoint")
        table.add_column("URL", style="green")
        table.add_column("First Seen", style="dim")

        for service, records in aggregate_by_service(result.records).items():
            table.add_section()
            for record in records:
                table.add_row(service, record.endpoint, record.url, record.first_seen.strftime("%H:%M:%S"))

        console.print(table)

    summary = f"[green]Valid servers: {len(result.records)}[/green]"
    if result.invalid_count:
        summary += f"  [red]Invalid/unauthorized: {result.invalid_count}[/red]"
    if result.malformed_count:
        summary += f"  [yellow]Malformed: {result.malformed_count}[/yellow]"
    if result.duplicate_count:
        summary += f"  [dim]Duplicates: {result.duplicate_count}[/dim]"
    console.print(summary)


def print_record(record: ServerRecord, console: Console) -> None:
    """Print one newly discovered server."""
    console.print(
        f"[bold green]Server discovered:[/bold green] {record.service} at "
        f"[cyan]{record.endpoint}[/cyan] ({record.url})"
    )


def run_discover(config: ClientConfig, console: Console) -> int:
    """Run one discovery and print the results."""
    client = DiscoveryClient(config)
    with console.status(f"[cyan]Waiting {config.timeout}s for server responses...[/cyan]"):
        result = client.discover()
    render_results(result, console)
    return 0


def run_listen(config: ClientConfig, console: Console) -> int:
    """Print announcements until interrupted."""
    listener = PassiveListener(config, on_record=lambda record: print_record(record, console))
    console.print(f"[cyan]Listening for announcements on port {config.discovery_port}... (Ctrl+C to stop)[/cyan]")
    try:
        listener.listen()
    except KeyboardInterrupt:
        listener.stop()
        console.print()
    render_results(listener.catalog.snapshot(), console)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the discovery client.

    Returns:
        Exit code (0 for success, 2 for configuration errors, 3 for network errors, 1 otherwise)
    """
    args = parse_command_line_args(argv)
    console = Console()

    try:
        configure_from_env(level=args.log_level or "WARNING", log_file=args.log_file)
    except (OSError, ValueError) as e:
        print(f"Failed to set up logging: {e}", file=sys.stderr)
        return 1

    logger = get_logger(__name__)

    try:
        config = ConfigurationLoader.load_client_config(args.config_file, overrides=build_overrides(args))
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error: {e}[/bold red]")
        return 2

    try:
        if args.command == "discover":
            return run_discover(config, console)
        return run_listen(config, console)

    except KeyboardInterrupt:
        console.print("\n[bold blue]Discovery cancelled.[/bold blue]")
        return 0

    except NetworkError as e:
        console.print(f"[bold red]Network error: {e}[/bold red]")
        return 3

    except Exception as e:
        logger.exception("Unexpected error")
        console.print(f"[bold red]An error occurred: {e}[/bold red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
