"""
Terminal views for the nonsense timer.

ServerDashboard shows the authoritative timer, the connected displays and
the most recent log lines. ClientTimerView shows the time received from the
server. Both are Display implementations driven by the protocol engines.
"""

import logging
import time
from collections import deque
from typing import Deque, List, Optional, Tuple

from rich import box
from rich.align import Align
from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..timesync.display import Display, LocalRequest
from ..timesync.exceptions import DisplayUnavailableError
from .keyboard import KeyReader


TEXT_STYLE = "#ffbfbf"
HIGHLIGHT_STYLE = "bold #ff8080"
BACKGROUND_STYLE = "on #170024"

KEY_BINDINGS = {
    "r": LocalRequest.RESET,
    "q": LocalRequest.QUIT,
}


def format_elapsed(seconds: float, long_days: bool = False) -> str:
    """
    Format elapsed seconds as ``HH:MM:SS``.

    Once a day has passed the day count is prefixed, as ``3D 01:02:03`` or,
    with ``long_days``, ``3 days, 01:02:03``.
    """
    seconds = max(0, int(seconds))
    days, remainder = divmod(seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, secs = divmod(remainder, 60)
    clock = f"{hours:02d}:{minutes:02d}:{secs:02d}"
    if days > 0:
        return f"{days} days, {clock}" if long_days else f"{days}D {clock}"
    return clock


class DisplayLogHandler(logging.Handler):
    """Logging handler that feeds log lines into a RichView."""

    def __init__(self, view: "RichView"):
        super().__init__()
        self.view = view
        self.setFormatter(logging.Formatter("%(asctime)s: %(message)s", datefmt="%H:%M:%S"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.view.add_message(self.format(record), record.levelno)
        except Exception:
            self.handleError(record)


class RichView(Display):
    """
    Base class for full-screen rich views.

    Subclasses implement create_layout(). Until start() is called log lines
    are printed straight to the console.
    """

    MIN_WIDTH = 40
    MIN_HEIGHT = 12

    def __init__(self, console: Optional[Console] = None, key_reader: Optional[KeyReader] = None,
                 max_messages: int = 5):
        self.console = console or Console()
        self.key_reader = key_reader or KeyReader()
        self.messages: Deque[Tuple[str, int]] = deque(maxlen=max_messages)
        self.log_handler = DisplayLogHandler(self)
        self.live: Optional[Live] = None

    def start(self) -> None:
        """
        Switch the terminal to the live view.

        Raises:
            DisplayUnavailableError: If the terminal is too small
        """
        if self.live:
            return

        width, height = self.console.size
        if width < self.MIN_WIDTH or height < self.MIN_HEIGHT:
            raise DisplayUnavailableError(
                f"Screen too small! Minimum size: {self.MIN_WIDTH}x{self.MIN_HEIGHT}"
            )

        self.live = Live(self.create_layout(), console=self.console, screen=True, auto_refresh=False)
        self.live.start()
        self.key_reader.start()

    def refresh(self) -> None:
        if self.live:
            self.live.update(self.create_layout(), refresh=True)

    def add_message(self, line: str, levelno: int = logging.INFO) -> None:
        self.messages.append((line, levelno))
        if self.live:
            self.refresh()
        else:
            self.console.print(line, markup=False, highlight=False)

    def poll_requests(self) -> List[str]:
        return [KEY_BINDINGS[key] for key in self.key_reader.read_keys() if key in KEY_BINDINGS]

    def close(self) -> None:
        self.key_reader.stop()
        if self.live:
            self.live.stop()
            self.live = None

    def create_messages_panel(self) -> Panel:
        text = Text()
        for i, (line, levelno) in enumerate(self.messages):
            if levelno >= logging.ERROR:
                style = "red"
            elif levelno >= logging.WARNING:
                style = "yellow"
            else:
                style = "white"
            text.append(line, style=style)
            if i < len(self.messages) - 1:
                text.append("\n")
        return Panel(text, title="Messages", border_style="white", style="on black")

    def create_layout(self) -> Layout:
        raise NotImplementedError


class ServerDashboard(RichView):
    """
    Server view: elapsed time, connected displays and recent messages.

    Keybindings:
    - R/r: Reset the timer
    - Q/q: Shut down the server (Ctrl+C works too)
    """

    def __init__(self, channel: int, console: Optional[Console] = None,
                 key_reader: Optional[KeyReader] = None, max_messages: int = 5):
        super().__init__(console, key_reader, max_messages)
        self.channel = channel
        self.elapsed = 0.0
        self.clients: List[Tuple[str, float]] = []
        self.clients_received_at = time.monotonic()

    def render(self, elapsed: float) -> None:
        self.elapsed = elapsed
        self.refresh()

    def client_list_changed(self, clients: List[Tuple[str, float]]) -> None:
        self.clients = list(clients)
        self.clients_received_at = time.monotonic()
        self.refresh()

    def warning(self, text: str) -> None:
        self.add_message(text, logging.WARNING)

    def create_clients_table(self) -> Table:
        table = Table(show_header=True, header_style=HIGHLIGHT_STYLE, box=box.SIMPLE, expand=True)
        table.add_column("Display", style=TEXT_STYLE)
        table.add_column("Last seen", style=TEXT_STYLE, justify="right")

        drift = time.monotonic() - self.clients_received_at
        for identity, age in self.clients:
            table.add_row(f"{identity[:8]}...", f"{age + drift:.1f}s ago")
        return table

    def create_timer_panel(self) -> Panel:
        body = [
            Text(f"Time since last nonsense: {format_elapsed(self.elapsed, long_days=True)}",
                 style=HIGHLIGHT_STYLE),
            Text(""),
            Text(f"Connected displays: {len(self.clients)}", style=TEXT_STYLE),
        ]
        if self.clients:
            body.append(Text("Active displays:", style=TEXT_STYLE))
            body.append(self.create_clients_table())
        body.append(Text(""))
        body.append(Text("Press R to reset, Q or Ctrl+C to quit", style=TEXT_STYLE))

        return Panel(
            Group(*body),
            title="=== Nonsense Timer Server ===",
            subtitle=f"channel {self.channel}",
            border_style=TEXT_STYLE,
            box=box.SQUARE,
            style=BACKGROUND_STYLE,
        )

    def create_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="main"),
            Layout(name="messages", size=self.messages.maxlen + 2),
        )
        layout["main"].update(self.create_timer_panel())
        layout["messages"].update(self.create_messages_panel())
        return layout


class ClientTimerView(RichView):
    """
    Client view: the time received from the server.

    The live screen starts once the client is connected; until then log
    lines go to the console as plain text.

    Keybindings:
    - R/r: Ask the server to reset the timer
    - Q/q: Ask the server to shut down and quit
    """

    def __init__(self, console: Optional[Console] = None, key_reader: Optional[KeyReader] = None,
                 max_messages: int = 3):
        super().__init__(console, key_reader, max_messages)
        self.current_time = 0.0
        self.server: Optional[str] = None
        self.status = "Waiting for server..."
        self.status_style = TEXT_STYLE

    def connected(self, server: str) -> None:
        self.server = server
        self.status = f"Connected to server {server[:8]}"
        self.status_style = TEXT_STYLE
        self.start()

    def render(self, elapsed: float) -> None:
        self.current_time = elapsed
        if self.status_style != TEXT_STYLE:
            self.status = f"Connected to server {(self.server or 'unknown')[:8]}"
            self.status_style = TEXT_STYLE
        self.refresh()

    def warning(self, text: str) -> None:
        self.status = text
        self.status_style = "bold yellow"
        self.refresh()

    def disconnected(self, reason: str) -> None:
        self.status = f"Disconnected: {reason}"
        self.status_style = "bold red"
        self.refresh()

    def create_timer_panel(self) -> Panel:
        body = Group(
            Align.center(Text("TIME SINCE LAST", style=TEXT_STYLE)),
            Align.center(Text("NONSENSE", style=HIGHLIGHT_STYLE)),
            Text(""),
            Align.center(Text(format_elapsed(self.current_time), style=HIGHLIGHT_STYLE)),
            Text(""),
            Align.center(Text(self.status, style=self.status_style)),
        )
        return Panel(
            Align.center(body, vertical="middle"),
            border_style=TEXT_STYLE,
            box=box.DOUBLE,
            style=BACKGROUND_STYLE,
        )

    def create_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="timer"),
            Layout(name="messages", size=self.messages.maxlen + 2),
            Layout(name="footer", size=3),
        )
        layout["timer"].update(self.create_timer_panel())
        layout["messages"].update(self.create_messages_panel())

        footer_text = Text("R - reset timer    Q - quit", style="bold white on black", justify="center")
        layout["footer"].update(Panel(footer_text, border_style="white"))
        return layout
