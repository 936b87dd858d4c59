"""
Nonsense Timer Client

This module implements the display client: it discovers a live server on
the broadcast channel, keeps its registry entry alive with pings and renders
every time update until the server shuts down or the operator quits.
"""

import argparse
import logging
import sys
from typing import Optional

from .clock import Clock, MonotonicClock
from .config import TimerConfig
from .display import Display, LocalRequest, LoggingDisplay, notify, poll_requests
from .exceptions import DiscoveryTimeoutError, TimerError
from .messages import MessageTypes, ProtocolMessage
from .transport import Transport, UDPBroadcastTransport


logger = logging.getLogger(__name__)


class ClientState:
    DISCOVERING = "discovering"
    SUBSCRIBED = "subscribed"
    DISCONNECTED = "disconnected"


class TimerClient:
    """
    Single-threaded client protocol engine.

    State machine: discovering -> subscribed -> disconnected. The staleness
    watchdog only warns and re-pings; it never sends the client back to
    discovery.
    """

    def __init__(
        self,
        transport: Transport,
        display: Optional[Display] = None,
        clock: Optional[Clock] = None,
        config: Optional[TimerConfig] = None,
    ):
        self.transport = transport
        self.display = display or Display()
        self.clock = clock or MonotonicClock()
        self.config = (config or TimerConfig()).validate()
        self.state = ClientState.DISCOVERING

        self.server: Optional[str] = None
        self.current_time = 0.0
        self.disconnect_reason: Optional[str] = None

        self.last_ping: Optional[float] = None
        self.last_update: Optional[float] = None
        self.last_warning: Optional[float] = None

    @property
    def is_subscribed(self) -> bool:
        return self.state == ClientState.SUBSCRIBED

    def open(self) -> None:
        """
        Open the broadcast channel.

        Raises:
            TransportUnavailableError: If the channel cannot be opened
        """
        self.transport.open()

    def discover(self) -> str:
        """
        Wait for a server, pinging while waiting.

        Returns:
            str: Transport address of the discovered server

        Raises:
            DiscoveryTimeoutError: If no presence or time message arrives
                within the discovery timeout
        """
        deadline = self.clock.now() + self.config.discovery_timeout
        logger.info(f"Waiting for server on channel {self.config.channel}...")

        while True:
            now = self.clock.now()
            if now >= deadline:
                raise DiscoveryTimeoutError(
                    f"No server found on channel {self.config.channel} within "
                    f"{self.config.discovery_timeout:g}s. Please start the server first "
                    f"and check that both sides use the same channel."
                )

            self._ping_if_due(now)

            message = self.transport.receive(min(self.config.poll_interval, deadline - now))
            if message is None:
                continue

            if message.msg_type in (MessageTypes.PRESENCE, MessageTypes.TIME):
                self._subscribe(message)
                return self.server

            logger.debug(f"Ignoring {message.msg_type} while discovering")

    def poll_once(self) -> bool:
        """
        Run one subscribed-loop iteration.

        Returns:
            bool: True while the client is still subscribed
        """
        if not self.is_subscribed:
            return False

        now = self.clock.now()
        self._ping_if_due(now)
        self._check_staleness(now)

        for request in poll_requests(self.display):
            if request == LocalRequest.RESET:
                self.request_reset()
            elif request == LocalRequest.QUIT:
                self.request_quit()
            if not self.is_subscribed:
                return False

        message = self.transport.receive(self.config.poll_interval)
        if message is not None:
            self.on_message(message)

        return self.is_subscribed

    def on_message(self, message: ProtocolMessage) -> None:
        """Handle one inbound message while subscribed."""
        if not self.is_subscribed:
            return

        if message.msg_type == MessageTypes.TIME:
            self._apply_time(message.payload)
        elif message.msg_type == MessageTypes.RESET:
            logger.info("Timer reset by server")
            self.current_time = 0.0
            notify(self.display, "render", self.current_time)
        elif message.msg_type == MessageTypes.SHUTDOWN:
            logger.info("Server announced shutdown")
            self.disconnect("server shutdown")
        else:
            logger.debug(f"Ignoring {message.msg_type} from {(message.sender or 'unknown')[:8]}")

    def request_reset(self) -> None:
        """
        Ask the server to reset the timer.

        The local value is left alone until the server's own reset arrives.
        """
        logger.info("Requesting timer reset")
        self.transport.broadcast(ProtocolMessage.reset())

    def request_quit(self) -> None:
        """Ask the server to shut down and leave the channel."""
        logger.info("Requesting server shutdown")
        self.transport.broadcast(ProtocolMessage.quit())
        self.disconnect("quit requested")

    def disconnect(self, reason: str) -> None:
        if self.state == ClientState.DISCONNECTED:
            return
        self.state = ClientState.DISCONNECTED
        self.disconnect_reason = reason
        notify(self.display, "disconnected", reason)

    def close(self) -> None:
        """Release the display and close the channel."""
        if self.state == ClientState.SUBSCRIBED:
            self.disconnect("closed")
        else:
            self.state = ClientState.DISCONNECTED
        try:
            notify(self.display, "close")
        finally:
            self.transport.close()
        logger.info("Client shutdown complete")

    def run(self) -> None:
        """
        Discover the server and follow its time stream until disconnected.

        Raises:
            TransportUnavailableError: If the channel cannot be opened
            DiscoveryTimeoutError: If no server answers in time
        """
        try:
            self.open()
            self.discover()
            while self.poll_once():
                pass
        except KeyboardInterrupt:
            logger.info("Received interrupt, disconnecting...")
            self.disconnect("interrupted")
        finally:
            self.close()

    def _subscribe(self, message: ProtocolMessage) -> None:
        self.server = message.sender
        self.state = ClientState.SUBSCRIBED
        self.last_update = self.clock.now()
        logger.info(f"Connected to server {(self.server or 'unknown')[:8]}")
        notify(self.display, "connected", self.server or "unknown")

        if message.msg_type == MessageTypes.TIME:
            self._apply_time(message.payload)

    def _apply_time(self, elapsed: float) -> None:
        self.current_time = elapsed
        self.last_update = self.clock.now()
        self.last_warning = None
        notify(self.display, "render", elapsed)

    def _ping_if_due(self, now: float) -> None:
        if self.last_ping is None or now - self.last_ping >= self.config.keepalive_interval:
            self.transport.broadcast(ProtocolMessage.ping())
            self.last_ping = now

    def _check_staleness(self, now: float) -> None:
        threshold = self.config.stale_warning_threshold
        if self.last_update is None or now - self.last_update <= threshold:
            return
        if self.last_warning is not None and now - self.last_warning < threshold:
            return

        silence = now - self.last_update
        logger.warning(f"No time update for {silence:.1f}s, connection may be stale")
        notify(self.display, "warning", f"Stale connection: no update for {silence:.0f}s")
        self.transport.broadcast(ProtocolMessage.ping())
        self.last_ping = now
        self.last_warning = now


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Nonsense Timer Display Client")
    parser.add_argument("--channel", "-c", type=int, default=TimerConfig().channel,
                        help="Broadcast channel (UDP port, 1000-9999)")
    parser.add_argument("--broadcast-address", default=TimerConfig().broadcast_address,
                        help="Address broadcasts are sent to")
    parser.add_argument("--discovery-timeout", type=float, default=TimerConfig().discovery_timeout,
                        help="Seconds to wait for a server before giving up")
    parser.add_argument("--headless", action="store_true", help="Log events instead of drawing the timer")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    return parser


def main(argv=None) -> int:
    """Main entry point for the nonsense timer client."""
    from ..utils.logging import configure_cli_logging

    args = build_parser().parse_args(argv)

    try:
        config = TimerConfig(
            channel=args.channel,
            broadcast_address=args.broadcast_address,
            discovery_timeout=args.discovery_timeout,
        ).validate()
    except TimerError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    if args.headless:
        display = LoggingDisplay()
        configure_cli_logging(args.verbose)
    else:
        from ..tui.views import ClientTimerView

        display = ClientTimerView()
        configure_cli_logging(args.verbose, handler=display.log_handler)

    client = TimerClient(UDPBroadcastTransport(config.channel, config.broadcast_address),
                         display=display, config=config)
    try:
        client.run()
    except DiscoveryTimeoutError as e:
        print(f"\n{e}", file=sys.stderr)
        return 1
    except TimerError as e:
        print(f"\nCLIENT FAILED: {e}", file=sys.stderr)
        return 1

    print(f"Client shutdown complete ({client.disconnect_reason})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
