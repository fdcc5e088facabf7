"""
Server Package

Announcement and request-answering roles for advertised services.
"""

from .announcer import AnnouncementEngine, start_discovery_service
from .responder import DiscoveryResponder

__all__ = ["AnnouncementEngine", "DiscoveryResponder", "start_discovery_service"]
