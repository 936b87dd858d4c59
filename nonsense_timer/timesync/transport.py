"""
Broadcast transport for the nonsense timer.

The transport is the only I/O the protocol engines do. It is unreliable and
connectionless: sends are best effort, receives wait for at most the given
timeout, and anything that does not decode is dropped here so the engines
only ever see well-formed ProtocolMessage objects.
"""

import logging
import socket
import uuid
from typing import Optional

from .config import DEFAULT_BROADCAST_ADDRESS
from .exceptions import MessageDecodingError, TransportError, TransportUnavailableError
from .messages import ProtocolMessage, decode_frame, encode_frame


logger = logging.getLogger(__name__)

BUFFER_SIZE = 4096


def new_node_address() -> str:
    """Generate a channel-unique node address."""
    return uuid.uuid4().hex


class Transport:
    """
    Contract shared by all broadcast transports.

    Subclasses implement open(), close(), _send() and receive().
    """

    def __init__(self, channel: int, address: Optional[str] = None):
        self.channel = channel
        self.address = address or new_node_address()

    @property
    def is_open(self) -> bool:
        raise NotImplementedError

    def open(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    def _send(self, message: ProtocolMessage, recipient: Optional[str]) -> bool:
        raise NotImplementedError

    def receive(self, timeout: float) -> Optional[ProtocolMessage]:
        """
        Wait up to ``timeout`` seconds for one message.

        Returns:
            The received message stamped with its sender, or None if
            nothing usable arrived in time
        """
        raise NotImplementedError

    def broadcast(self, message: ProtocolMessage) -> bool:
        """Send a message to every node on the channel."""
        return self._send(message, None)

    def send(self, recipient: str, message: ProtocolMessage) -> bool:
        """Send a message to a single node on the channel."""
        return self._send(message, recipient)

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class UDPBroadcastTransport(Transport):
    """
    Transport over IPv4 UDP broadcast, one UDP port per channel.

    Every endpoint binds the channel port with address reuse enabled so a
    server and any number of clients can share one host.
    """

    def __init__(
        self,
        channel: int,
        broadcast_address: str = DEFAULT_BROADCAST_ADDRESS,
        bind_host: str = "",
        address: Optional[str] = None,
    ):
        super().__init__(channel, address)
        self.broadcast_address = broadcast_address
        self.bind_host = bind_host
        self.socket: Optional[socket.socket] = None

    @property
    def is_open(self) -> bool:
        return self.socket is not None

    def open(self) -> None:
        """
        Bind the channel port.

        Raises:
            TransportUnavailableError: If the socket cannot be created or bound
        """
        if self.socket:
            return

        sock = None
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if hasattr(socket, "SO_REUSEPORT"):
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.bind((self.bind_host, self.channel))
        except OSError as e:
            if sock is not None:
                sock.close()
            raise TransportUnavailableError(f"Cannot open broadcast channel {self.channel}: {e}")

        self.socket = sock
        logger.info(f"Opened channel {self.channel} as node {self.address[:8]}")

    def close(self) -> None:
        if self.socket:
            try:
                self.socket.close()
                logger.info(f"Closed channel {self.channel}")
            except OSError as e:
                logger.warning(f"Error while closing channel {self.channel}: {e}")
            finally:
                self.socket = None

    def _send(self, message: ProtocolMessage, recipient: Optional[str]) -> bool:
        if not self.socket:
            raise TransportError("Channel is not open")

        data = encode_frame(message, self.channel, self.address, recipient)
        try:
            self.socket.sendto(data, (self.broadcast_address, self.channel))
        except OSError as e:
            logger.warning(f"Failed to send {message.msg_type}: {e}")
            return False

        logger.debug(f"Sent {message.msg_type} to {recipient[:8] if recipient else 'all'}")
        return True

    def receive(self, timeout: float) -> Optional[ProtocolMessage]:
        if not self.socket:
            raise TransportError("Channel is not open")

        self.socket.settimeout(max(timeout, 0.0))
        try:
            data, source = self.socket.recvfrom(BUFFER_SIZE)
        except (socket.timeout, BlockingIOError):
            return None
        except OSError as e:
            logger.warning(f"Receive failed on channel {self.channel}: {e}")
            return None

        try:
            frame = decode_frame(data)
        except MessageDecodingError as e:
            logger.debug(f"Dropped datagram from {source[0]}:{source[1]}: {e}")
            return None

        if frame.sender == self.address:
            return None
        if frame.channel != self.channel:
            logger.debug(f"Dropped {frame.message.msg_type} for channel {frame.channel}")
            return None
        if frame.recipient is not None and frame.recipient != self.address:
            return None

        logger.debug(f"Received {frame.message.msg_type} from {frame.sender[:8]}")
        return frame.message
