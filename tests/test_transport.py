"""
Tests for the UDP broadcast transport.
"""

import json
import socket
from unittest.mock import patch

import pytest

from nonsense_timer.timesync.exceptions import TransportError, TransportUnavailableError
from nonsense_timer.timesync.messages import ProtocolMessage, encode_frame
from nonsense_timer.timesync.transport import UDPBroadcastTransport, new_node_address


class MockSocket:
    """Mock UDP socket for testing."""

    def __init__(self):
        self.options = {}
        self.bound_to = None
        self.timeout = None
        self.sent = []
        self.incoming = []
        self.closed = False
        self.should_raise_on_bind = None
        self.should_raise_on_send = None

    def setsockopt(self, level, option, value):
        self.options[(level, option)] = value

    def bind(self, address):
        if self.should_raise_on_bind:
            raise self.should_raise_on_bind
        self.bound_to = address

    def settimeout(self, timeout):
        self.timeout = timeout

    def sendto(self, data, address):
        if self.should_raise_on_send:
            raise self.should_raise_on_send
        self.sent.append((data, address))

    def recvfrom(self, size):
        if not self.incoming:
            raise socket.timeout("timed out")
        item = self.incoming.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item[:size], ("192.168.1.20", 1234)

    def close(self):
        self.closed = True


class TestUDPBroadcastTransport:
    """Test cases for UDPBroadcastTransport."""

    def setup_method(self):
        """Set up test fixtures."""
        self.mock_socket = MockSocket()
        self.transport = UDPBroadcastTransport(1234, address="localnode0001")

    def open_transport(self):
        with patch("socket.socket", return_value=self.mock_socket):
            self.transport.open()

    def test_initialization(self):
        transport = UDPBroadcastTransport(4321)
        assert transport.channel == 4321
        assert transport.broadcast_address == "<broadcast>"
        assert transport.socket is None
        assert not transport.is_open
        assert len(transport.address) == 32

    def test_node_addresses_are_unique(self):
        assert new_node_address() != new_node_address()

    def test_open_binds_channel_with_broadcast(self):
        self.open_transport()

        assert self.transport.is_open
        assert self.mock_socket.bound_to == ("", 1234)
        assert self.mock_socket.options[(socket.SOL_SOCKET, socket.SO_BROADCAST)] == 1
        assert self.mock_socket.options[(socket.SOL_SOCKET, socket.SO_REUSEADDR)] == 1

    def test_open_twice_keeps_socket(self):
        self.open_transport()
        first = self.transport.socket
        self.transport.open()
        assert self.transport.socket is first

    def test_open_failure(self):
        self.mock_socket.should_raise_on_bind = OSError("Address in use")

        with pytest.raises(TransportUnavailableError, match="channel 1234"):
            self.open_transport()

        assert self.mock_socket.closed
        assert not self.transport.is_open

    def test_broadcast(self):
        self.open_transport()

        assert self.transport.broadcast(ProtocolMessage.time(2.0)) is True

        data, address = self.mock_socket.sent[0]
        assert address == ("<broadcast>", 1234)
        assert json.loads(data) == {"from": "localnode0001", "to": None, "msg": [1234, "time", 2.0]}

    def test_send_to_one(self):
        self.open_transport()

        self.transport.send("othernode", ProtocolMessage.reset())

        data, _ = self.mock_socket.sent[0]
        assert json.loads(data)["to"] == "othernode"

    def test_send_failure_is_not_fatal(self):
        self.open_transport()
        self.mock_socket.should_raise_on_send = OSError("Network unreachable")

        assert self.transport.broadcast(ProtocolMessage.ping()) is False

    def test_send_not_open(self):
        with pytest.raises(TransportError, match="not open"):
            self.transport.broadcast(ProtocolMessage.ping())

    def test_receive_not_open(self):
        with pytest.raises(TransportError):
            self.transport.receive(0.1)

    def test_receive_message(self):
        self.open_transport()
        self.mock_socket.incoming.append(encode_frame(ProtocolMessage.time(9.0), 1234, "servernode"))

        message = self.transport.receive(0.1)

        assert message == ProtocolMessage.time(9.0).with_sender("servernode")
        assert self.mock_socket.timeout == 0.1

    def test_receive_timeout(self):
        self.open_transport()
        assert self.transport.receive(0.1) is None

    def test_receive_negative_timeout_clamped(self):
        self.open_transport()
        self.mock_socket.incoming.append(BlockingIOError())

        assert self.transport.receive(-1.0) is None
        assert self.mock_socket.timeout == 0.0

    def test_receive_drops_own_broadcast(self):
        self.open_transport()
        self.mock_socket.incoming.append(encode_frame(ProtocolMessage.ping(), 1234, "localnode0001"))
        assert self.transport.receive(0.1) is None

    def test_receive_drops_other_channel(self):
        self.open_transport()
        self.mock_socket.incoming.append(encode_frame(ProtocolMessage.ping(), 4321, "othernode"))
        assert self.transport.receive(0.1) is None

    def test_receive_drops_frames_for_other_nodes(self):
        self.open_transport()
        self.mock_socket.incoming.append(
            encode_frame(ProtocolMessage.reset(), 1234, "othernode", recipient="thirdnode")
        )
        assert self.transport.receive(0.1) is None

    def test_receive_accepts_frames_for_this_node(self):
        self.open_transport()
        self.mock_socket.incoming.append(
            encode_frame(ProtocolMessage.reset(), 1234, "othernode", recipient="localnode0001")
        )
        assert self.transport.receive(0.1) == ProtocolMessage.reset().with_sender("othernode")

    @pytest.mark.parametrize("data", [b"garbage", b"{}", b"{\"from\": \"x\", \"msg\": [1234, \"launch\"]}",
                                      b"{\"from\": \"x\", \"to\": null, \"msg\": [1234, \"time\", 1" + b"0" * 400 + b"]}"])
    def test_receive_drops_malformed(self, data):
        self.open_transport()
        self.mock_socket.incoming.append(data)
        assert self.transport.receive(0.1) is None

    def test_receive_socket_error(self):
        self.open_transport()
        self.mock_socket.incoming.append(OSError("Connection reset"))
        assert self.transport.receive(0.1) is None

    def test_receive_propagates_interrupt(self):
        self.open_transport()
        self.mock_socket.incoming.append(KeyboardInterrupt())
        with pytest.raises(KeyboardInterrupt):
            self.transport.receive(0.1)

    def test_close(self):
        self.open_transport()
        self.transport.close()
        self.transport.close()

        assert self.mock_socket.closed
        assert self.transport.socket is None

    def test_context_manager(self):
        with patch("socket.socket", return_value=self.mock_socket):
            with self.transport as transport:
                assert transport.is_open
        assert self.mock_socket.closed
