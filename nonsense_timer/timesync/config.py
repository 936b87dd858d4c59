"""
Channel and timing configuration shared by the server and the clients.

All durations are in seconds.
"""

from typing import Any, Dict

from .exceptions import ConfigurationError


DEFAULT_CHANNEL = 1234
MIN_CHANNEL = 1000
MAX_CHANNEL = 9999

DEFAULT_BROADCAST_ADDRESS = "<broadcast>"

BROADCAST_INTERVAL = 1.0
POLL_INTERVAL = 0.1
STALE_THRESHOLD = 5.0
SCAN_INTERVAL = 1.0

DISCOVERY_TIMEOUT = 5.0
KEEPALIVE_INTERVAL = 1.0
STALE_WARNING_THRESHOLD = 10.0


class TimerConfig:
    """
    Settings for one nonsense timer endpoint.

    Server engines use the broadcast, stale and scan values; client engines
    use the discovery, keep-alive and warning values. Both use the channel
    and poll interval.
    """

    def __init__(
        self,
        channel: int = DEFAULT_CHANNEL,
        broadcast_address: str = DEFAULT_BROADCAST_ADDRESS,
        broadcast_interval: float = BROADCAST_INTERVAL,
        poll_interval: float = POLL_INTERVAL,
        stale_threshold: float = STALE_THRESHOLD,
        scan_interval: float = SCAN_INTERVAL,
        discovery_timeout: float = DISCOVERY_TIMEOUT,
        keepalive_interval: float = KEEPALIVE_INTERVAL,
        stale_warning_threshold: float = STALE_WARNING_THRESHOLD,
    ):
        self.channel = channel
        self.broadcast_address = broadcast_address
        self.broadcast_interval = broadcast_interval
        self.poll_interval = poll_interval
        self.stale_threshold = stale_threshold
        self.scan_interval = scan_interval
        self.discovery_timeout = discovery_timeout
        self.keepalive_interval = keepalive_interval
        self.stale_warning_threshold = stale_warning_threshold

    def validate(self) -> "TimerConfig":
        """
        Check the settings and return self.

        Raises:
            ConfigurationError: If the channel is out of range or any
                interval is not a positive number
        """
        if isinstance(self.channel, bool) or not isinstance(self.channel, int):
            raise ConfigurationError(f"Channel must be an integer, got {self.channel!r}")
        if not MIN_CHANNEL <= self.channel <= MAX_CHANNEL:
            raise ConfigurationError(
                f"Channel {self.channel} is outside the allowed range {MIN_CHANNEL}-{MAX_CHANNEL}"
            )

        if not self.broadcast_address:
            raise ConfigurationError("Broadcast address must not be empty")

        for name in (
            "broadcast_interval", "poll_interval", "stale_threshold", "scan_interval",
            "discovery_timeout", "keepalive_interval", "stale_warning_threshold",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive number, got {value!r}")

        return self

    def as_dict(self) -> Dict[str, Any]:
        return dict(vars(self))

    def __repr__(self) -> str:
        return f"TimerConfig(channel={self.channel}, broadcast_address={self.broadcast_address!r})"
