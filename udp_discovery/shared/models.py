"""
Data Models

Defines data classes and models used throughout the discovery protocol.
"""

import ipaddress
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple, Union

from .constants import MAX_PORT, MIN_PORT
from .exceptions import MessageValidationError
from .utils import endpoint_id


class Classification(Enum):
    """Outcome of decoding one inbound datagram."""
    VALID = "valid"
    MALFORMED = "malformed"
    INCOMPLETE = "incomplete"
    INVALID_KEY = "invalid_key"


class RunState(Enum):
    """Lifecycle of a single client discovery run."""
    IDLE = "idle"
    REQUEST_SENT = "request_sent"
    LISTENING = "listening"
    TIMED_OUT = "timed_out"
    FATAL_ERROR = "fatal_error"

    @property
    def is_terminal(self) -> bool:
        """Whether the run has finished."""
        return self in (RunState.TIMED_OUT, RunState.FATAL_ERROR)


@dataclass(frozen=True)
class DiscoveryMessage:
    """
    Wire record advertising one service endpoint.

    All four fields are mandatory and validated on construction.
    """
    service: str
    ip: str
    port: int
    key: str

    def __post_init__(self) -> None:
        if not isinstance(self.service, str) or not self.service:
            raise MessageValidationError("service must be a non-empty string", field="service", value=self.service)

        if not isinstance(self.ip, str):
            raise MessageValidationError("ip must be a string", field="ip", value=self.ip)
        try:
            ipaddress.IPv4Address(self.ip)
        except ValueError:
            raise MessageValidationError(f"ip is not a dotted-quad IPv4 address: {self.ip!r}", field="ip", value=self.ip)

        # bool is an int subclass, reject it explicitly
        if isinstance(self.port, bool) or not isinstance(self.port, int) or not (MIN_PORT <= self.port <= MAX_PORT):
            raise MessageValidationError(
                f"port must be an integer between {MIN_PORT} and {MAX_PORT}", field="port", value=self.port
            )

        if not isinstance(self.key, str):
            raise MessageValidationError("key must be a string", field="key", value=self.key)

    @property
    def endpoint(self) -> str:
        """Get the endpoint identity as ip:port."""
        return endpoint_id(self.ip, self.port)


@dataclass(frozen=True)
class Periodic:
    """Announce forever at a fixed cadence."""
    interval_seconds: float

    def __post_init__(self) -> None:
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must be non-negative")


@dataclass(frozen=True)
class Limited:
    """Announce max_count times, interval_seconds apart, then stop."""
    interval_seconds: float
    max_count: int

    def __post_init__(self) -> None:
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must be non-negative")
        if self.max_count < 1:
            raise ValueError("max_count must be at least 1")


@dataclass(frozen=True)
class OnRequest:
    """Never announce proactively; only answer discovery requests."""
    pass


AnnouncementMode = Union[Periodic, Limited, OnRequest]


@dataclass(frozen=True)
class DecodeResult:
    """Classification of a datagram, carrying the message when valid."""
    classification: Classification
    message: Optional[DiscoveryMessage] = None
    reason: str = ""

    @property
    def is_valid(self) -> bool:
        """Whether the datagram produced a usable message."""
        return self.classification is Classification.VALID


@dataclass(frozen=True)
class ServerRecord:
    """A discovered service endpoint, created once per endpoint per run."""
    service: str
    ip: str
    port: int
    key: str
    first_seen: datetime = field(default_factory=datetime.now)
    source_address: Optional[Tuple[str, int]] = None

    @property
    def endpoint(self) -> str:
        """Get the endpoint identity as ip:port."""
        return endpoint_id(self.ip, self.port)

    @property
    def url(self) -> str:
        """Get an HTTP URL for the endpoint."""
        return f"http://{self.ip}:{self.port}"

    @classmethod
    def from_message(
        cls, message: DiscoveryMessage, source_address: Optional[Tuple[str, int]] = None
    ) -> "ServerRecord":
        """Create a record from a validated discovery message."""
        return cls(
            service=message.service,
            ip=message.ip,
            port=message.port,
            key=message.key,
            source_address=source_address
        )


@dataclass
class DiscoveryResult:
    """
    Outcome of a client discovery run.

    Iterating yields (records, invalid_count, malformed_count).
    """
    records: Dict[str, ServerRecord] = field(default_factory=dict)
    invalid_count: int = 0
    malformed_count: int = 0
    duplicate_count: int = 0
    elapsed_seconds: float = 0.0

    def __iter__(self) -> Iterator:
        return iter((self.records, self.invalid_count, self.malformed_count))

    @property
    def found_any(self) -> bool:
        """Whether at least one valid server was found."""
        return bool(self.records)
