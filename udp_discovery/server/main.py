"""
Server Main Entry Point

Entry point for advertising a service with configuration loading,
logging setup, and error handling.
"""

import argparse
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel

from udp_discovery import __version__
from udp_discovery.server.announcer import AnnouncementEngine
from udp_discovery.shared.config import ConfigurationLoader, ServiceConfig
from udp_discovery.shared.constants import ANNOUNCEMENT_MODES, MODE_LIMITED, MODE_ON_REQUEST, TRIGGER_MATCH_MODES
from udp_discovery.shared.exceptions import ConfigurationError, SocketSetupError
from udp_discovery.shared.logging_config import LogLevel, configure_from_env, get_logger


def parse_command_line_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Options left unset fall back to the configuration file and environment.

    Args:
        argv: Argument list, defaults to sys.argv[1:].

    Returns:
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(
        description="Advertise a service on the local network over UDP broadcast"
    )

    parser.add_argument("--service-name", help="Service name to advertise")
    parser.add_argument("--service-port", type=int, help="Port of the advertised service")
    parser.add_argument("--key", dest="shared_key", help="Shared key clients must know")
    parser.add_argument(
        "--mode",
        choices=ANNOUNCEMENT_MODES,
        help="Announcement mode (default: periodic)"
    )
    parser.add_argument("--interval", dest="interval_seconds", type=float, help="Seconds between announcements")
    parser.add_argument("--count", dest="max_count", type=int, help="Number of announcements in limited mode")
    parser.add_argument("--discovery-port", type=int, help="UDP discovery port (default: 8888)")
    parser.add_argument("--broadcast-address", help="Broadcast target address")
    parser.add_argument("--advertise-ip", help="IPv4 address to publish instead of the detected one")
    parser.add_argument(
        "--exclude-interface",
        dest="excluded_interface_prefixes",
        action="append",
        metavar="PREFIX",
        help="Interface name prefix to skip when detecting the local address (repeatable)"
    )
    parser.add_argument("--trigger-match", choices=TRIGGER_MATCH_MODES, help="How discovery requests are matched")
    parser.add_argument(
        "--log-level",
        choices=[level.value for level in LogLevel],
        help="Logging level"
    )
    parser.add_argument("--log-file", help="Log file path")
    parser.add_argument("--config-file", help="Configuration file path")
    parser.add_argument("--version", action="version", version=f"udp-discovery-server {__version__}")

    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Collect configuration values given on the command line."""
    names = (
        "service_name", "service_port", "shared_key", "mode", "interval_seconds",
        "max_count", "discovery_port", "broadcast_address", "advertise_ip",
        "excluded_interface_prefixes", "trigger_match",
    )
    return {name: getattr(args, name) for name in names if getattr(args, name) is not None}


def print_service_info(config: ServiceConfig, local_ip: str, console: Console) -> None:
    """
    Print service information and configuration.

    Args:
        config: Service configuration.
        local_ip: Address being advertised.
        console: Rich console to print to.
    """
    lines = [
        f"[bold]Service:[/bold] {config.service_name}",
        f"[bold]Endpoint:[/bold] {local_ip}:{config.service_port}",
        f"[bold]Discovery Port:[/bold] {config.discovery_port}",
        f"[bold]Mode:[/bold] {config.mode}",
    ]
    if config.mode == MODE_LIMITED:
        lines.append(f"[bold]Announcements:[/bold] {config.max_count} every {config.interval_seconds}s")
    elif config.mode != MODE_ON_REQUEST:
        lines.append(f"[bold]Interval:[/bold] {config.interval_seconds}s")
    lines.append("[dim]Press Ctrl+C to stop[/dim]")

    console.print(Panel("\n".join(lines), title="UDP Service Discovery", border_style="cyan"))


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the discovery server.

    Returns:
        Exit code (0 for success, 2 for configuration errors, 3 for socket errors, 1 otherwise)
    """
    args = parse_command_line_args(argv)
    console = Console()

    try:
        configure_from_env(level=args.log_level, log_file=args.log_file)
    except (OSError, ValueError) as e:
        print(f"Failed to set up logging: {e}", file=sys.stderr)
        return 1

    logger = get_logger(__name__)

    try:
        config = ConfigurationLoader.load_service_config(args.config_file, overrides=build_overrides(args))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    engine = AnnouncementEngine(config)
    print_service_info(config, engine.local_ip, console)

    try:
        engine.run()
        return 0

    except KeyboardInterrupt:
        logger.info("Discovery service interrupted by user")
        engine.stop()
        return 0

    except SocketSetupError as e:
        logger.error(f"Socket setup failed: {e}")
        return 3

    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
