"""
Type Protocols and Interfaces

Defines protocol interfaces for structural typing throughout the package.
"""

from abc import abstractmethod
from typing import Callable, Protocol, runtime_checkable

from .models import ServerRecord


@runtime_checkable
class DiscoveryRole(Protocol):
    """Protocol for a long-running discovery role owning one socket."""
    
    @abstractmethod
    def start(self) -> None:
        """Set up the socket and run the role on a background thread."""
        ...
    
    @abstractmethod
    def stop(self) -> None:
        """Signal the role to stop and release its socket."""
        ...
    
    @abstractmethod
    def is_running(self) -> bool:
        """Check if the role is currently running."""
        ...


# Returns the IPv4 address to advertise
AddressSelector = Callable[[], str]

# Receives each newly discovered record
RecordCallback = Callable[[ServerRecord], None]
