import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from .errors import MalformedFrame


class ClientMessageType(str, Enum):
    MESSAGE = "message"
    PING = "ping"


class ServerMessageType(str, Enum):
    MESSAGE = "message"
    STATS = "stats"
    PONG = "pong"


def make_frame(msg_type: Union[str, Enum], **fields: Any) -> str:
    if isinstance(msg_type, Enum):
        msg_type = msg_type.value
    return json.dumps({"type": msg_type, **fields}, ensure_ascii=False)


def parse_frame(raw: Union[str, bytes]) -> Optional[Dict[str, Any]]:
    """Parse a received frame; None unless it is a JSON object."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return None
    try:
        frame = json.loads(raw)
    except (ValueError, RecursionError):
        # ValueError covers JSONDecodeError and over-long integer literals;
        # RecursionError comes from deeply nested arrays or objects.
        return None
    return frame if isinstance(frame, dict) else None


def _require_str(frame: Dict[str, Any], key: str) -> str:
    value = frame.get(key)
    if not isinstance(value, str):
        raise MalformedFrame(f"{frame.get('type')!r} frame needs string field {key!r}")
    return value


def _require_int(frame: Dict[str, Any], key: str) -> int:
    value = frame.get(key)
    # bool is an int subclass but never a timestamp
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedFrame(f"{frame.get('type')!r} frame needs integer field {key!r}")
    return value


@dataclass(frozen=True)
class ChatMessage:
    sender_display_name: str
    body: str
    timestamp: str
    # Unknown wire fields are relayed untouched.
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_wire(cls, frame: Dict[str, Any]) -> "ChatMessage":
        extra = {
            k: v for k, v in frame.items()
            if k not in ("type", "username", "message", "time")
        }
        return cls(
            sender_display_name=_require_str(frame, "username"),
            body=_require_str(frame, "message"),
            timestamp=_require_str(frame, "time"),
            extra=extra,
        )

    def to_wire(self) -> Dict[str, Any]:
        return {
            "type": ServerMessageType.MESSAGE.value,
            "username": self.sender_display_name,
            "message": self.body,
            "time": self.timestamp,
            **self.extra,
        }

    def encode(self) -> str:
        return json.dumps(self.to_wire(), ensure_ascii=False)


@dataclass(frozen=True)
class LatencyProbe:
    probe_id: str
    client_send_time: int

    @classmethod
    def from_wire(cls, frame: Dict[str, Any]) -> "LatencyProbe":
        return cls(
            probe_id=_require_str(frame, "id"),
            client_send_time=_require_int(frame, "time"),
        )

    def reply(self) -> str:
        return make_frame(ServerMessageType.PONG, id=self.probe_id, time=self.client_send_time)


@dataclass(frozen=True)
class PresenceReport:
    online_count: int

    def encode(self) -> str:
        return make_frame(ServerMessageType.STATS, onlineCount=self.online_count)


Inbound = Union[ChatMessage, LatencyProbe]


def decode_frame(raw: Union[str, bytes]) -> Optional[Inbound]:
    """Classify an inbound frame.

    Returns None for a well-formed frame with an unrecognised ``type``;
    raises MalformedFrame for anything that cannot be decoded or lacks the
    fields its type requires.
    """
    frame = parse_frame(raw)
    if frame is None:
        raise MalformedFrame("frame is not a JSON object")

    msg_type = frame.get("type")
    if msg_type == ClientMessageType.MESSAGE.value:
        return ChatMessage.from_wire(frame)
    if msg_type == ClientMessageType.PING.value:
        return LatencyProbe.from_wire(frame)
    return None
