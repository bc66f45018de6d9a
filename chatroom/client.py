import asyncio
import logging
import os
import sys
import time
import uuid
from datetime import datetime
from typing import Callable, Optional, Tuple

import websockets
from websockets.asyncio.client import ClientConnection, connect

from .protocol import ClientMessageType, ServerMessageType, make_frame, parse_frame

RECONNECT_DELAY = 3.0
LATENCY_INTERVAL = 5.0
DEFAULT_USERNAME = "anonymous"

CLOSE_COMMAND = "/quit"
STATS_COMMAND = "/stats"


# Color codes for terminal output
class Colors:
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'

    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    BLUE = '\033[34m'
    MAGENTA = '\033[35m'
    CYAN = '\033[36m'


def colorize(text, color):
    """Add color to text if terminal supports it"""
    if os.getenv('TERM') and os.getenv('TERM') != 'dumb' and sys.stdout.isatty():
        return f"{color}{text}{Colors.RESET}"
    return text


def _now_ms() -> int:
    return int(time.time() * 1000)


class ChatClient:
    def __init__(
        self,
        username: str = DEFAULT_USERNAME,
        reconnect_delay: float = RECONNECT_DELAY,
        latency_interval: float = LATENCY_INTERVAL,
        out: Callable[[str], None] = print,
    ):
        self.username = username.strip() or DEFAULT_USERNAME
        self.reconnect_delay = reconnect_delay
        self.latency_interval = latency_interval
        self.out = out

        self.online_count = 0
        self.message_count = 0
        self.my_message_count = 0
        self.latency_ms: Optional[int] = None
        # (probe id, send time ms) of the latest probe; an older pong is stale
        self._pending_ping: Optional[Tuple[str, int]] = None
        self._lines: Optional[asyncio.Queue] = None
        self._stopping = False

    def compose_message(self, text: str) -> str:
        return make_frame(
            ClientMessageType.MESSAGE,
            username=self.username,
            message=text,
            time=datetime.now().strftime("%H:%M:%S"),
        )

    def make_ping(self) -> str:
        probe_id = uuid.uuid4().hex[:9]
        sent_at = _now_ms()
        self._pending_ping = (probe_id, sent_at)
        return make_frame(ClientMessageType.PING, id=probe_id, time=sent_at)

    def handle_frame(self, raw) -> None:
        frame = parse_frame(raw)
        if not frame:
            logging.debug("Unparseable frame from server: %r", raw)
            return

        msg_type = frame.get("type")
        if msg_type == ServerMessageType.STATS.value:
            count = frame.get("onlineCount")
            if isinstance(count, int):
                self.online_count = count
                self.out(colorize(f"[{self.online_count} online]", Colors.BLUE))
        elif msg_type == ServerMessageType.MESSAGE.value:
            username = frame.get("username", "")
            self.message_count += 1
            # The server echoes our own messages back; match by display name
            if username == self.username:
                self.my_message_count += 1
                color = Colors.GREEN
            else:
                color = Colors.CYAN
            self.out(f"{frame.get('time', '')} {colorize(username, color + Colors.BOLD)}: {frame.get('message', '')}")
        elif msg_type == ServerMessageType.PONG.value:
            pending = self._pending_ping
            if pending is not None and frame.get("id") == pending[0]:
                self._pending_ping = None
                self.latency_ms = _now_ms() - pending[1]
                logging.debug("Latency %d ms", self.latency_ms)

    def stats_line(self) -> str:
        latency = f"{self.latency_ms} ms" if self.latency_ms is not None else "-"
        return (
            f"online: {self.online_count}  messages: {self.message_count}  "
            f"mine: {self.my_message_count}  latency: {latency}"
        )

    async def _read_stdin(self):
        # One reader for the whole session so a pending input() survives reconnects
        loop = asyncio.get_running_loop()
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                await self._lines.put(CLOSE_COMMAND)
                return
            line = line.rstrip("\n")
            await self._lines.put(line)
            if line.strip() == CLOSE_COMMAND:
                return

    async def sender(self, ws: ClientConnection):
        while True:
            cmd = (await self._lines.get()).strip()
            if not cmd:
                continue
            if cmd == CLOSE_COMMAND:
                self._stopping = True
                await ws.close(code=1000)
                self.out(f"[CLIENT:{self.username}] Disconnected")
                return
            if cmd == STATS_COMMAND:
                self.out(colorize(self.stats_line(), Colors.BLUE + Colors.BOLD))
                continue
            await ws.send(self.compose_message(cmd))

    async def receiver(self, ws: ClientConnection):
        async for raw in ws:
            self.handle_frame(raw)

    async def pinger(self, ws: ClientConnection):
        while True:
            await ws.send(self.make_ping())
            await asyncio.sleep(self.latency_interval)

    async def run_once(self, uri: str) -> None:
        self._pending_ping = None
        async with connect(uri) as ws:
            self.out(colorize(f"[CLIENT:{self.username}] Connected to {uri}", Colors.GREEN + Colors.BOLD))
            tasks = [
                asyncio.create_task(self.sender(ws)),
                asyncio.create_task(self.receiver(ws)),
                asyncio.create_task(self.pinger(ws)),
            ]
            try:
                done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
            for task in done:
                exc = task.exception()
                if exc is not None:
                    raise exc

    async def run_client(self, host: str = "localhost", port: int = 5000, lines: Optional[asyncio.Queue] = None) -> None:
        uri = f"ws://{host}:{port}"
        reader = None
        if lines is None:
            self._lines = asyncio.Queue()
            reader = asyncio.create_task(self._read_stdin())
        else:
            self._lines = lines
        try:
            while not self._stopping:
                try:
                    await self.run_once(uri)
                except (OSError, websockets.exceptions.WebSocketException) as exc:
                    logging.debug("Connection to %s lost: %r", uri, exc)
                if self._stopping:
                    break
                self.out(colorize(f"[CLIENT] Offline; reconnecting in {self.reconnect_delay:g}s", Colors.YELLOW))
                await asyncio.sleep(self.reconnect_delay)
        finally:
            if reader is not None:
                reader.cancel()
