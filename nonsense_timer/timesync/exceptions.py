"""
Custom exceptions for the nonsense timer protocol.
"""


class TimerError(Exception):
    """Base exception for all nonsense timer errors."""
    pass


class ConfigurationError(TimerError):
    """Raised when channel or timing settings are invalid."""
    pass


class ProtocolError(TimerError):
    """Raised when protocol violations occur."""
    pass


class MessageDecodingError(ProtocolError):
    """Raised when a datagram does not parse into a known message."""
    pass


class TransportError(TimerError):
    """Raised when the broadcast transport misbehaves."""
    pass


class TransportUnavailableError(TransportError):
    """Raised when the broadcast channel cannot be opened."""
    pass


class DiscoveryTimeoutError(TimerError):
    """Raised when a client finds no server within the discovery bound."""
    pass


class DisplayUnavailableError(TimerError):
    """Raised by a display whose output resource is gone."""
    pass
