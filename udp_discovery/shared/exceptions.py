"""
Custom Exceptions

Defines custom exception classes for the discovery service.
"""

from typing import Optional


class UdpDiscoveryError(Exception):
    """Base exception class for all discovery errors."""
    pass


class ConfigurationError(UdpDiscoveryError):
    """Raised when configuration-related errors occur."""
    
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details


class ValidationError(UdpDiscoveryError):
    """Raised when input validation fails."""
    
    def __init__(self, message: str, field: Optional[str] = None, value: Optional[object] = None):
        super().__init__(message)
        self.field = field
        self.value = value


class MessageValidationError(ValidationError):
    """Raised when a discovery message cannot be constructed."""
    pass


class NetworkError(UdpDiscoveryError):
    """Raised when network-related errors occur."""
    
    def __init__(self, message: str, operation: Optional[str] = None, address: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
        self.address = address


class SocketSetupError(NetworkError):
    """Raised when a socket cannot be created, configured or bound."""
    pass


class BroadcastError(SocketSetupError):
    """Raised when a broadcast socket cannot be prepared."""
    pass


class DiscoveryRunError(NetworkError):
    """Raised when a discovery run aborts on a non-timeout socket error."""
    pass
