import asyncio
import logging
from typing import Optional

import websockets
from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.http11 import Request, Response

from .config import ServerConfig
from .events import PeerEvent
from .registry import ConnectionRegistry, Peer
from .static_files import StaticFiles


class ChatServer:
    def __init__(self, config: Optional[ServerConfig] = None, registry: Optional[ConnectionRegistry] = None):
        self.config = config or ServerConfig()
        self.registry = registry or ConnectionRegistry(send_timeout=self.config.send_timeout)
        self.static = StaticFiles(self.config.static_dir)
        self._server: Optional[Server] = None
        self._status_task: Optional[asyncio.Task] = None

    @property
    def port(self) -> int:
        if self._server is None:
            return self.config.port
        return self._server.sockets[0].getsockname()[1]

    async def handler(self, ws: ServerConnection) -> None:
        peer = Peer(ws, remote_address=ws.remote_address)
        await self.registry.dispatch(peer, PeerEvent.opened())
        last_event = PeerEvent.closed()
        try:
            async for raw in ws:
                await self.registry.dispatch(peer, PeerEvent.frame(raw))
        except websockets.exceptions.ConnectionClosedError as exc:
            last_event = PeerEvent.failed(str(exc))
        finally:
            await self.registry.dispatch(peer, last_event)

    def process_request(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        # Upgrade requests go on to the WebSocket handshake; anything else is a
        # plain page/asset fetch on the same port.
        if request.headers.get("Upgrade", "").lower() == "websocket":
            return None
        return self.static.respond(request.path)

    async def start(self) -> None:
        self._server = await serve(
            self.handler,
            self.config.host,
            self.config.port,
            process_request=self.process_request,
            ping_interval=self.config.ping_interval,
            ping_timeout=self.config.ping_timeout,
            max_size=self.config.max_frame_size,
        )
        if self.config.status_interval > 0:
            self._status_task = asyncio.create_task(self.status_loop(self.config.status_interval))
        logging.info("Chat server listening on %s:%s", self.config.host, self.port)

    async def status_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            logging.info("Online: %d", self.registry.online_count)

    async def stop(self) -> None:
        if self._status_task:
            self._status_task.cancel()
            try:
                await self._status_task
            except asyncio.CancelledError:
                pass
            self._status_task = None
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        await self.registry.close_all()
        logging.info("Chat server stopped")

    async def serve_forever(self, stop: asyncio.Event) -> None:
        await self.start()
        try:
            await stop.wait()
        finally:
            await self.stop()
