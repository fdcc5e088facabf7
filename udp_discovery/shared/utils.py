"""
Utility Functions

Common utility functions used throughout the discovery service.
"""

import ipaddress
import logging
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

import netifaces

from .constants import DEFAULT_EXCLUDED_INTERFACE_PREFIXES, FALLBACK_LOCAL_IP


logger = logging.getLogger(__name__)

T = TypeVar("T")


def format_address(address: Tuple[str, int]) -> str:
    """
    Format an address tuple as a string.

    Args:
        address: Tuple of (host, port).

    Returns:
        Formatted address string.
    """
    return f"{address[0]}:{address[1]}"


def endpoint_id(ip: str, port: int) -> str:
    """Build the endpoint identity used to deduplicate records."""
    return f"{ip}:{port}"


def is_valid_ipv4(value: object) -> bool:
    """Check whether value is a dotted-quad IPv4 address string."""
    if not isinstance(value, str):
        return False
    try:
        ipaddress.IPv4Address(value)
        return True
    except ValueError:
        return False


def list_ipv4_interfaces() -> List[Tuple[str, str]]:
    """
    List (interface name, IPv4 address) pairs using netifaces.

    Interfaces that fail to report addresses are skipped.

    Returns:
        Pairs in interface enumeration order.
    """
    pairs: List[Tuple[str, str]] = []
    for iface in netifaces.interfaces():
        try:
            addresses = netifaces.ifaddresses(iface).get(netifaces.AF_INET, [])
        except ValueError as e:
            logger.debug(f"Skipping interface {iface}: {e}")
            continue
        for addr_info in addresses:
            ip = addr_info.get("addr")
            if ip:
                pairs.append((iface, ip))
    return pairs


def select_local_ip(
    excluded_prefixes: Sequence[str] = DEFAULT_EXCLUDED_INTERFACE_PREFIXES,
    interfaces: Optional[Callable[[], Iterable[Tuple[str, str]]]] = None
) -> str:
    """
    Select the IPv4 address this host should advertise.

    Picks the first address that is not loopback, not multicast and whose
    interface name does not start with one of excluded_prefixes. Interface
    naming conventions differ between platforms, so both the prefixes and
    the interface source can be replaced.

    Args:
        excluded_prefixes: Interface name prefixes to skip.
        interfaces: Callable returning (name, ip) pairs. Defaults to netifaces.

    Returns:
        Selected address, or 127.0.0.1 when nothing qualifies.
    """
    provider = interfaces or list_ipv4_interfaces
    try:
        candidates = list(provider())
    except OSError as e:
        logger.warning(f"Could not enumerate local interfaces: {e}")
        candidates = []

    prefixes = tuple(excluded_prefixes)
    for name, ip in candidates:
        if prefixes and name.startswith(prefixes):
            continue
        if not is_valid_ipv4(ip):
            continue
        address = ipaddress.IPv4Address(ip)
        if address.is_loopback or address.is_multicast:
            continue
        return ip

    logger.warning(f"No suitable network interface found, falling back to {FALLBACK_LOCAL_IP}")
    return FALLBACK_LOCAL_IP


def group_by(items: Iterable[T], key: Callable[[T], str]) -> Dict[str, List[T]]:
    """
    Group items into lists keyed by key(item), preserving input order.

    Args:
        items: Items to group.
        key: Function computing the group name.

    Returns:
        Dictionary of group name to items.
    """
    groups: Dict[str, List[T]] = defaultdict(list)
    for item in items:
        groups[key(item)].append(item)
    return dict(groups)
