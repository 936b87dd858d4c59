"""
Shared fixtures: a controllable clock, an in-memory broadcast channel and a
display that records every event it receives.
"""

from collections import deque

import pytest

from nonsense_timer.timesync.config import TimerConfig
from nonsense_timer.timesync.display import Display
from nonsense_timer.timesync.exceptions import TransportError, TransportUnavailableError
from nonsense_timer.timesync.transport import Transport


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: tests that use real UDP sockets"
    )


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start=0.0):
        self.current = start

    def now(self):
        return self.current

    def advance(self, seconds):
        self.current += seconds

    def set(self, value):
        self.current = value


class MemoryHub:
    """
    In-memory broadcast medium shared by MemoryTransport endpoints.

    ``sent`` logs every (sender address, recipient, message) handed to the hub.
    ``drop`` is an optional predicate; messages it returns True for are lost.
    """

    def __init__(self, clock):
        self.clock = clock
        self.endpoints = []
        self.sent = []
        self.drop = None

    def attach(self, transport):
        self.endpoints.append(transport)

    def deliver(self, sender, message, recipient):
        stamped = message.with_sender(sender.address)
        self.sent.append((sender.address, recipient, stamped))
        if self.drop and self.drop(stamped):
            return
        for endpoint in self.endpoints:
            if endpoint is sender or not endpoint.is_open:
                continue
            if recipient is not None and endpoint.address != recipient:
                continue
            endpoint.inbox.append(stamped)

    def sent_types(self, address=None):
        return [m.msg_type for sender, _, m in self.sent if address is None or sender == address]


class MemoryTransport(Transport):
    """
    Transport over a MemoryHub.

    When nothing is queued, receive() calls ``on_idle(timeout)``; by default
    that advances the hub clock by the timeout, as a real wait would.
    """

    def __init__(self, hub, channel=1234, address=None, fail_open=False):
        super().__init__(channel, address)
        self.hub = hub
        self.inbox = deque()
        self.fail_open = fail_open
        self.opened = False
        self.open_count = 0
        self.close_count = 0
        self.on_idle = hub.clock.advance
        hub.attach(self)

    @property
    def is_open(self):
        return self.opened

    def open(self):
        if self.fail_open:
            raise TransportUnavailableError("No network card")
        self.opened = True
        self.open_count += 1

    def close(self):
        self.opened = False
        self.close_count += 1

    def _send(self, message, recipient):
        if not self.opened:
            raise TransportError("Channel is not open")
        self.hub.deliver(self, message, recipient)
        return True

    def receive(self, timeout):
        if not self.opened:
            raise TransportError("Channel is not open")
        if self.inbox:
            return self.inbox.popleft()
        if self.on_idle:
            self.on_idle(timeout)
        return None

    def inject(self, message, sender="f00dfeedcafe"):
        """Queue a message as if another node had sent it."""
        self.inbox.append(message.with_sender(sender))


class RecordingDisplay(Display):
    """Display that records events and hands out queued local requests."""

    def __init__(self):
        self.events = []
        self.requests = deque()
        self.closed = False

    def render(self, elapsed):
        self.events.append(("render", elapsed))

    def client_list_changed(self, clients):
        self.events.append(("clients", list(clients)))

    def connected(self, server):
        self.events.append(("connected", server))

    def disconnected(self, reason):
        self.events.append(("disconnected", reason))

    def warning(self, text):
        self.events.append(("warning", text))

    def poll_requests(self):
        requests = list(self.requests)
        self.requests.clear()
        return requests

    def close(self):
        self.closed = True

    def of(self, kind):
        return [event[1] for event in self.events if event[0] == kind]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def hub(clock):
    return MemoryHub(clock)


@pytest.fixture
def config():
    return TimerConfig()


@pytest.fixture
def make_transport(hub):
    def factory(**kwargs):
        return MemoryTransport(hub, **kwargs)
    return factory


@pytest.fixture
def display():
    return RecordingDisplay()


@pytest.fixture
def make_display():
    return RecordingDisplay
