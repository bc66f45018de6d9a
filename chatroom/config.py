import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
from urllib.parse import urlparse

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 5000
SEND_TIMEOUT = 5.0
HEARTBEAT_INTERVAL = 15
HEARTBEAT_TIMEOUT = 45
MAX_FRAME_SIZE = 64 * 1024
STATUS_INTERVAL = 20
STATIC_DIR = Path(__file__).resolve().parent / "static"


def parse_bind(bind_uri: str) -> tuple[str, int]:
    # Accept ws://host:port, host:port, :port or just port
    if bind_uri.startswith("ws://") or bind_uri.startswith("wss://"):
        p = urlparse(bind_uri)
        host = p.hostname or DEFAULT_HOST
        port = p.port or DEFAULT_PORT
        return host, int(port)
    if ":" in bind_uri:
        host, port = bind_uri.rsplit(":", 1)
        host = host or DEFAULT_HOST
        return host, int(port)
    return DEFAULT_HOST, int(bind_uri)


@dataclass
class ServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    static_dir: Path = STATIC_DIR
    send_timeout: float = SEND_TIMEOUT
    ping_interval: Optional[float] = HEARTBEAT_INTERVAL
    ping_timeout: Optional[float] = HEARTBEAT_TIMEOUT
    max_frame_size: int = MAX_FRAME_SIZE
    status_interval: float = STATUS_INTERVAL
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        env = os.environ if environ is None else environ
        return cls(
            host=env.get("CHAT_HOST", DEFAULT_HOST),
            port=int(env.get("CHAT_PORT", DEFAULT_PORT)),
            static_dir=Path(env.get("CHAT_STATIC_DIR", STATIC_DIR)),
            send_timeout=float(env.get("CHAT_SEND_TIMEOUT", SEND_TIMEOUT)),
            max_frame_size=int(env.get("CHAT_MAX_FRAME", MAX_FRAME_SIZE)),
            status_interval=float(env.get("CHAT_STATUS_INTERVAL", STATUS_INTERVAL)),
            log_level=env.get("CHAT_LOG_LEVEL", "INFO").upper(),
        )

    @property
    def bind(self) -> str:
        return f"{self.host}:{self.port}"
