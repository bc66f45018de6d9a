from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class EventKind(Enum):
    OPENED = "opened"
    FRAME = "frame"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass(frozen=True)
class PeerEvent:
    """Connection lifecycle event handed from the transport to the registry."""

    kind: EventKind
    data: Optional[Union[str, bytes]] = None
    reason: Optional[str] = None

    @classmethod
    def opened(cls) -> "PeerEvent":
        return cls(EventKind.OPENED)

    @classmethod
    def frame(cls, data: Union[str, bytes]) -> "PeerEvent":
        return cls(EventKind.FRAME, data=data)

    @classmethod
    def closed(cls) -> "PeerEvent":
        return cls(EventKind.CLOSED)

    @classmethod
    def failed(cls, reason: str) -> "PeerEvent":
        return cls(EventKind.FAILED, reason=reason)

    @property
    def ends_connection(self) -> bool:
        return self.kind in (EventKind.CLOSED, EventKind.FAILED)
