"""
Non-blocking single-key input for the terminal views.

The protocol loops never block on the keyboard: they ask for whatever keys
are already waiting and move on to their bounded network wait.
"""

import logging
import os
import sys
from typing import List


logger = logging.getLogger(__name__)


class KeyReader:
    """
    Reads pending key presses from stdin without blocking.

    On POSIX terminals stdin is switched to cbreak mode while the reader is
    active. Where termios is unavailable the reader falls back to msvcrt,
    and where neither works (or stdin is not a terminal) it reports no keys.
    """

    def __init__(self, stream=None):
        self.stream = stream or sys.stdin
        self.active = False
        self._old_settings = None
        self._mode = None

    def start(self) -> None:
        if self.active:
            return

        try:
            if not self.stream.isatty():
                logger.debug("stdin is not a terminal, keyboard input disabled")
                return
        except (AttributeError, ValueError):
            return

        try:
            import termios
            import tty

            fd = self.stream.fileno()
            self._old_settings = termios.tcgetattr(fd)
            tty.setcbreak(fd)
            self._mode = "posix"
        except ImportError:
            try:
                import msvcrt  # noqa: F401
                self._mode = "windows"
            except ImportError:
                logger.warning("Keyboard input not available on this system")
                return

        self.active = True

    def stop(self) -> None:
        if not self.active:
            return

        if self._mode == "posix" and self._old_settings is not None:
            import termios

            termios.tcsetattr(self.stream.fileno(), termios.TCSADRAIN, self._old_settings)
            self._old_settings = None

        self.active = False

    def read_keys(self) -> List[str]:
        """Return the lower-cased characters typed since the last call."""
        if not self.active:
            return []

        if self._mode == "posix":
            import select

            fd = self.stream.fileno()
            keys = []
            while select.select([fd], [], [], 0)[0]:
                data = os.read(fd, 32)
                if not data:
                    break
                keys.extend(data.decode("utf-8", errors="ignore").lower())
            return keys

        import msvcrt

        keys = []
        while msvcrt.kbhit():
            keys.append(msvcrt.getwch().lower())
        return keys

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False
