"""
Nonsense timer message contract.

Every message is the logical tuple ``(channel, type, payload?)``. On the wire
the tuple travels inside a small JSON envelope that also names the sending
node and, for send-to-one, the recipient:

    {"from": "<node address>", "to": null, "msg": [1234, "time", 12.5]}

Only ``time`` carries a payload (elapsed seconds). Anything that does not
parse into one of the known message types raises MessageDecodingError.
"""

import json
import math
from typing import Any, List, Optional

from .exceptions import MessageDecodingError


class MessageTypes:
    PRESENCE = "presence"
    TIME = "time"
    RESET = "reset"
    SHUTDOWN = "shutdown"
    PING = "ping"
    QUIT = "quit"
    ERROR = "error"

    ALL = frozenset([PRESENCE, TIME, RESET, SHUTDOWN, PING, QUIT, ERROR])
    WITH_PAYLOAD = frozenset([TIME])


def _validate_elapsed(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MessageDecodingError(f"Elapsed time must be numeric, got {value!r}")
    try:
        value = float(value)
    except OverflowError:
        raise MessageDecodingError("Elapsed time is out of range")
    if not math.isfinite(value) or value < 0:
        raise MessageDecodingError(f"Elapsed time must be finite and non-negative, got {value!r}")
    return value


class ProtocolMessage:
    """
    Immutable protocol message.

    ``sender`` is the transport address of the node that sent the message;
    it is ``None`` for a message that has not been sent or received yet.
    """

    __slots__ = ("msg_type", "sender", "payload")

    def __init__(self, msg_type: str, sender: Optional[str] = None, payload: Optional[float] = None):
        if msg_type not in MessageTypes.ALL:
            raise MessageDecodingError(f"Unknown message type: {msg_type!r}")

        if msg_type in MessageTypes.WITH_PAYLOAD:
            if payload is None:
                raise MessageDecodingError(f"'{msg_type}' message requires a payload")
            payload = _validate_elapsed(payload)
        elif payload is not None:
            raise MessageDecodingError(f"'{msg_type}' message takes no payload")

        object.__setattr__(self, "msg_type", msg_type)
        object.__setattr__(self, "sender", sender)
        object.__setattr__(self, "payload", payload)

    def __setattr__(self, name, value):
        raise AttributeError("ProtocolMessage is immutable")

    def __delattr__(self, name):
        raise AttributeError("ProtocolMessage is immutable")

    @classmethod
    def presence(cls) -> "ProtocolMessage":
        return cls(MessageTypes.PRESENCE)

    @classmethod
    def time(cls, elapsed: float) -> "ProtocolMessage":
        return cls(MessageTypes.TIME, payload=elapsed)

    @classmethod
    def reset(cls) -> "ProtocolMessage":
        return cls(MessageTypes.RESET)

    @classmethod
    def shutdown(cls) -> "ProtocolMessage":
        return cls(MessageTypes.SHUTDOWN)

    @classmethod
    def ping(cls) -> "ProtocolMessage":
        return cls(MessageTypes.PING)

    @classmethod
    def quit(cls) -> "ProtocolMessage":
        return cls(MessageTypes.QUIT)

    def with_sender(self, sender: str) -> "ProtocolMessage":
        """Return a copy of this message stamped with a sender address."""
        return ProtocolMessage(self.msg_type, sender, self.payload)

    def to_wire(self, channel: int) -> List[Any]:
        """Return the logical ``(channel, type, payload?)`` tuple as a list."""
        fields: List[Any] = [channel, self.msg_type]
        if self.payload is not None:
            fields.append(self.payload)
        return fields

    @classmethod
    def from_wire(cls, fields: Any, sender: Optional[str] = None) -> "ProtocolMessage":
        """
        Build a message from a decoded ``(channel, type, payload?)`` list.

        The channel is not checked here; see decode_frame.
        """
        if not isinstance(fields, list) or not 2 <= len(fields) <= 3:
            raise MessageDecodingError(f"Malformed message tuple: {fields!r}")

        msg_type = fields[1]
        if not isinstance(msg_type, str):
            raise MessageDecodingError(f"Message type must be a string, got {msg_type!r}")

        payload = fields[2] if len(fields) == 3 else None
        return cls(msg_type, sender, payload)

    def __eq__(self, other):
        if not isinstance(other, ProtocolMessage):
            return NotImplemented
        return (self.msg_type, self.sender, self.payload) == (other.msg_type, other.sender, other.payload)

    def __hash__(self):
        return hash((self.msg_type, self.sender, self.payload))

    def __repr__(self) -> str:
        if self.payload is not None:
            return f"ProtocolMessage({self.msg_type}, sender={self.sender}, payload={self.payload:.3f})"
        return f"ProtocolMessage({self.msg_type}, sender={self.sender})"


class Frame:
    """A decoded datagram: channel, optional recipient and the message."""

    def __init__(self, channel: int, message: ProtocolMessage, recipient: Optional[str] = None):
        self.channel = channel
        self.message = message
        self.recipient = recipient

    @property
    def sender(self) -> Optional[str]:
        return self.message.sender

    def __repr__(self) -> str:
        return f"Frame(channel={self.channel}, recipient={self.recipient}, message={self.message!r})"


def encode_frame(message: ProtocolMessage, channel: int, sender: str, recipient: Optional[str] = None) -> bytes:
    """
    Encode a message for transmission.

    Args:
        message: The message to send
        channel: Channel number the message belongs to
        sender: Node address of the sending endpoint
        recipient: Target node address, or None for a broadcast

    Returns:
        bytes: UTF-8 JSON datagram
    """
    envelope = {
        "from": sender,
        "to": recipient,
        "msg": message.to_wire(channel),
    }
    return json.dumps(envelope, separators=(",", ":")).encode("utf-8")


def decode_frame(data: bytes) -> Frame:
    """
    Decode a datagram produced by encode_frame.

    Raises:
        MessageDecodingError: If the datagram is not a valid frame
    """
    try:
        envelope = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MessageDecodingError(f"Invalid datagram: {e}")

    if not isinstance(envelope, dict):
        raise MessageDecodingError("Datagram is not a JSON object")

    sender = envelope.get("from")
    recipient = envelope.get("to")
    if not isinstance(sender, str) or not sender:
        raise MessageDecodingError("Datagram has no sender address")
    if recipient is not None and not isinstance(recipient, str):
        raise MessageDecodingError(f"Invalid recipient: {recipient!r}")

    fields = envelope.get("msg")
    message = ProtocolMessage.from_wire(fields, sender)

    channel = fields[0]
    if isinstance(channel, bool) or not isinstance(channel, int):
        raise MessageDecodingError(f"Channel must be an integer, got {channel!r}")

    return Frame(channel, message, recipient)
