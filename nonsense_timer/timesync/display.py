"""
Display collaborator contract.

The protocol engines push events into a Display and pull local operator
requests out of it. Display failures never stop an engine, except for
DisplayUnavailableError, which means the output resource itself is gone.
"""

import logging
from typing import Iterable, List, Tuple

from .exceptions import DisplayUnavailableError


logger = logging.getLogger(__name__)


class LocalRequest:
    RESET = "reset"
    QUIT = "quit"


class Display:
    """No-op display. Subclasses override the events they care about."""

    def render(self, elapsed: float) -> None:
        pass

    def client_list_changed(self, clients: List[Tuple[str, float]]) -> None:
        pass

    def connected(self, server: str) -> None:
        pass

    def disconnected(self, reason: str) -> None:
        pass

    def warning(self, text: str) -> None:
        pass

    def poll_requests(self) -> Iterable[str]:
        return ()

    def close(self) -> None:
        pass


class LoggingDisplay(Display):
    """Headless display that writes every event to a logger."""

    def __init__(self, name: str = "nonsense_timer.display"):
        self.logger = logging.getLogger(name)
        self.last_rendered = None

    def render(self, elapsed: float) -> None:
        if self.last_rendered is None or int(elapsed) != int(self.last_rendered):
            self.logger.info(f"Time since last nonsense: {elapsed:.1f}s")
        self.last_rendered = elapsed

    def client_list_changed(self, clients: List[Tuple[str, float]]) -> None:
        self.logger.info(f"Connected displays: {len(clients)}")

    def connected(self, server: str) -> None:
        self.logger.info(f"Connected to server {server[:8]}")

    def disconnected(self, reason: str) -> None:
        self.logger.info(f"Disconnected: {reason}")

    def warning(self, text: str) -> None:
        self.logger.warning(text)


def notify(display: Display, event: str, *args) -> None:
    """
    Deliver one event to the display.

    Errors are logged and swallowed so the engine loop keeps running;
    DisplayUnavailableError is re-raised.
    """
    try:
        getattr(display, event)(*args)
    except DisplayUnavailableError:
        raise
    except Exception:
        logger.exception(f"Display failed while handling '{event}'")


def poll_requests(display: Display) -> List[str]:
    """Collect pending local requests, treating display errors like notify()."""
    try:
        return list(display.poll_requests())
    except DisplayUnavailableError:
        raise
    except Exception:
        logger.exception("Display failed while polling for input")
        return []
