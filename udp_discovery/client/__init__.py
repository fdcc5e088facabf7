"""
Client Package

Bounded discovery runs and passive announcement monitoring.
"""

from .discovery_client import DiscoveryClient, DiscoveryRun, aggregate_by_service
from .listener import PassiveListener, ServiceCatalog

__all__ = [
    "DiscoveryClient",
    "DiscoveryRun",
    "PassiveListener",
    "ServiceCatalog",
    "aggregate_by_service",
]
