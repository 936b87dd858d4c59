"""
Nonsense Timer Server

This module implements the authoritative time source: it owns the elapsed
time counter, broadcasts presence and time updates, keeps the registry of
connected displays and coordinates reset and shutdown.
"""

import argparse
import logging
import sys
from typing import Optional

from .clock import Clock, MonotonicClock
from .config import TimerConfig
from .display import Display, LocalRequest, LoggingDisplay, notify, poll_requests
from .exceptions import TimerError, TransportError
from .messages import MessageTypes, ProtocolMessage
from .registry import SessionRegistry
from .transport import Transport, UDPBroadcastTransport


logger = logging.getLogger(__name__)


class ServerState:
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class TimerServer:
    """
    Single-threaded server protocol engine.

    The loop suspends only inside ``transport.receive``; every handler runs
    to completion before the next wait, so the registry and timer state need
    no locking.
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
        self.registry = SessionRegistry()
        self.state = ServerState.STARTING
        self.stop_reason: Optional[str] = None

        now = self.clock.now()
        self.start_time = now
        self.last_broadcast = now
        self.last_scan = now

    @property
    def elapsed(self) -> float:
        """Seconds since the timer was started or last reset."""
        return max(0.0, self.clock.now() - self.start_time)

    @property
    def is_running(self) -> bool:
        return self.state == ServerState.RUNNING

    def start(self) -> None:
        """
        Open the channel and announce the server.

        Raises:
            TransportUnavailableError: If the channel cannot be opened
        """
        if self.state != ServerState.STARTING:
            return

        logger.info(f"Nonsense timer server starting on channel {self.config.channel}")
        self.transport.open()

        now = self.clock.now()
        self.start_time = now
        self.last_broadcast = now
        self.last_scan = now

        logger.info("Broadcasting initial presence signal")
        self.transport.broadcast(ProtocolMessage.presence())
        self.state = ServerState.RUNNING
        self._render()

    def on_tick(self) -> bool:
        """
        Broadcast presence and time once per broadcast interval.

        Returns:
            bool: True if a broadcast went out on this tick
        """
        if not self.is_running:
            return False

        now = self.clock.now()
        if now - self.last_broadcast < self.config.broadcast_interval:
            return False

        elapsed = self.elapsed
        logger.debug(f"Broadcasting time update: {elapsed:.3f}")
        self.transport.broadcast(ProtocolMessage.presence())
        self.transport.broadcast(ProtocolMessage.time(elapsed))
        self.last_broadcast = now
        self._render()
        return True

    def on_message(self, message: ProtocolMessage) -> None:
        """Dispatch one inbound message by type."""
        if not self.is_running:
            return

        sender = message.sender or "unknown"
        logger.debug(f"Received {message.msg_type} from {sender[:8]}")

        if message.msg_type == MessageTypes.PING:
            if self.registry.upsert(sender, self.clock.now()):
                logger.info(f"Display {sender[:8]} connected")
            self._clients_changed()
        elif message.msg_type == MessageTypes.RESET:
            logger.info(f"Reset requested by {sender[:8]}")
            self.reset_timer()
        elif message.msg_type == MessageTypes.QUIT:
            logger.info(f"Received quit command from {sender[:8]}, shutting down...")
            self.stop("quit requested")
        else:
            logger.debug(f"Ignoring {message.msg_type} from {sender[:8]}")

    def reset_timer(self) -> None:
        """Restart the elapsed counter and tell every display."""
        self.start_time = self.clock.now()
        self.transport.broadcast(ProtocolMessage.reset())
        self._render()

    def evict_stale(self) -> int:
        """
        Drop displays that have not pinged within the stale threshold.

        Returns:
            int: Number of evicted displays
        """
        now = self.clock.now()
        self.last_scan = now
        evicted = self.registry.evict(now, self.config.stale_threshold)
        for entry in evicted:
            logger.info(f"Client {entry.identity[:8]} timed out")
        if evicted:
            self._clients_changed()
        return len(evicted)

    def poll_once(self) -> bool:
        """
        Run one loop iteration: tick, scan, local input, one bounded receive.

        Returns:
            bool: True while the server is still running
        """
        if not self.is_running:
            return False

        self.on_tick()

        if self.clock.now() - self.last_scan >= self.config.scan_interval:
            self.evict_stale()

        for request in poll_requests(self.display):
            if request == LocalRequest.RESET:
                logger.info("Local reset requested")
                self.reset_timer()
            elif request == LocalRequest.QUIT:
                self.stop("quit requested")
            if not self.is_running:
                return False

        message = self.transport.receive(self.config.poll_interval)
        if message is not None:
            self.on_message(message)

        return self.is_running

    def stop(self, reason: str = "stopped") -> None:
        """
        Broadcast shutdown, close the channel and enter the terminal state.

        Safe to call more than once; once stopped no further I/O happens.
        """
        if self.state in (ServerState.STOPPING, ServerState.STOPPED):
            return

        was_running = self.state == ServerState.RUNNING
        self.state = ServerState.STOPPING
        self.stop_reason = reason
        logger.info(f"Server shutdown initiated ({reason})")

        try:
            if was_running:
                self.transport.broadcast(ProtocolMessage.shutdown())
        except TransportError as e:
            logger.warning(f"Could not broadcast shutdown: {e}")
        finally:
            self.transport.close()
            self.state = ServerState.STOPPED
            notify(self.display, "close")

        logger.info("Server shutdown complete")

    def run(self) -> None:
        """Start the server and serve until quit or interrupt."""
        try:
            self.start()
            while self.poll_once():
                pass
        except KeyboardInterrupt:
            logger.info("Received interrupt, shutting down...")
            self.stop("interrupted")
        finally:
            self.stop("server exited")

    def _render(self) -> None:
        notify(self.display, "render", self.elapsed)

    def _clients_changed(self) -> None:
        notify(self.display, "client_list_changed", self.registry.ages(self.clock.now()))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Nonsense Timer Server")
    parser.add_argument("--channel", "-c", type=int, default=TimerConfig().channel,
                        help="Broadcast channel (UDP port, 1000-9999)")
    parser.add_argument("--broadcast-address", default=TimerConfig().broadcast_address,
                        help="Address broadcasts are sent to")
    parser.add_argument("--interval", type=float, default=TimerConfig().broadcast_interval,
                        help="Seconds between time broadcasts")
    parser.add_argument("--stale-threshold", type=float, default=TimerConfig().stale_threshold,
                        help="Seconds without a ping before a display is dropped")
    parser.add_argument("--headless", action="store_true", help="Log events instead of drawing a dashboard")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    return parser


def main(argv=None) -> int:
    """Main entry point for the nonsense timer server."""
    from ..utils.logging import configure_cli_logging

    args = build_parser().parse_args(argv)

    try:
        config = TimerConfig(
            channel=args.channel,
            broadcast_address=args.broadcast_address,
            broadcast_interval=args.interval,
            stale_threshold=args.stale_threshold,
        ).validate()
    except TimerError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    if args.headless:
        display = LoggingDisplay()
        configure_cli_logging(args.verbose)
    else:
        from ..tui.views import ServerDashboard

        display = ServerDashboard(channel=config.channel)
        configure_cli_logging(args.verbose, handler=display.log_handler)

    server = TimerServer(UDPBroadcastTransport(config.channel, config.broadcast_address),
                         display=display, config=config)
    try:
        if not args.headless:
            display.start()
        server.run()
        return 0
    except TimerError as e:
        display.close()
        print(f"\nSERVER FAILED: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
