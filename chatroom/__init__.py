from .config import ServerConfig
from .events import EventKind, PeerEvent
from .registry import ConnectionRegistry, Peer, PeerState
from .server import ChatServer

__version__ = "1.0.0"

__all__ = [
    "ChatServer",
    "ConnectionRegistry",
    "EventKind",
    "Peer",
    "PeerEvent",
    "PeerState",
    "ServerConfig",
]
