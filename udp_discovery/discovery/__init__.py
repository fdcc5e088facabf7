"""
Discovery Protocol Package

Provides the wire codec shared by announcers, responders and clients.
"""

from .codec import (
    build_message,
    decode_message,
    encode_message,
    encode_request,
    is_discovery_request,
)

__all__ = [
    "build_message",
    "decode_message",
    "encode_message",
    "encode_request",
    "is_discovery_request",
]
