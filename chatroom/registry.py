"""Live set of chat connections and the broadcast relay.

All Live Set mutation and every fan-out run under one asyncio.Lock. Peers
whose send fails or times out are removed after the lock is released, each
removal followed by a fresh presence report.
"""

import asyncio
import logging
import time
import uuid
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from .config import SEND_TIMEOUT
from .errors import MalformedFrame
from .events import EventKind, PeerEvent
from .protocol import ChatMessage, LatencyProbe, PresenceReport, decode_frame


class PeerState(Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class Peer:
    def __init__(self, ws, peer_id: Optional[str] = None, remote_address: Any = None):
        self.ws = ws
        self.peer_id = peer_id or uuid.uuid4().hex
        self.remote_address = remote_address
        self.state = PeerState.CONNECTING
        self.connected_at = time.time()

    def __repr__(self) -> str:
        return f"Peer({self.peer_id[:8]}, {self.state.value})"

    async def send(self, raw: str, timeout: float) -> None:
        await asyncio.wait_for(self.ws.send(raw), timeout)

    def abort(self) -> None:
        # Drop the transport without a closing handshake; the read loop then
        # ends and reports the close.
        transport = getattr(self.ws, "transport", None)
        if transport is not None:
            transport.abort()

    async def close(self) -> None:
        self.state = PeerState.CLOSED
        try:
            await self.ws.close()
        except Exception as exc:
            logging.debug("Closing peer %s failed: %r", self.peer_id, exc)


class ConnectionRegistry:
    def __init__(self, send_timeout: float = SEND_TIMEOUT):
        self.send_timeout = send_timeout
        # peer_id -> Peer
        self._peers: Dict[str, Peer] = {}
        self.lock = asyncio.Lock()

    @property
    def online_count(self) -> int:
        return len(self._peers)

    def peers(self) -> List[Peer]:
        return list(self._peers.values())

    def __contains__(self, peer: Peer) -> bool:
        return self._peers.get(peer.peer_id) is peer

    def __len__(self) -> int:
        return len(self._peers)

    async def register(self, peer: Peer) -> None:
        async with self.lock:
            self._peers[peer.peer_id] = peer
            peer.state = PeerState.OPEN
            count = len(self._peers)
        logging.info("Peer %s connected from %s; online: %d", peer.peer_id, peer.remote_address, count)
        await self.broadcast_presence()

    async def unregister(self, peer: Peer) -> bool:
        async with self.lock:
            removed = self._peers.pop(peer.peer_id, None) is not None
            peer.state = PeerState.CLOSED
            count = len(self._peers)
        if not removed:
            return False
        logging.info("Peer %s disconnected; online: %d", peer.peer_id, count)
        await self.broadcast_presence()
        return True

    async def broadcast_presence(self) -> None:
        async with self.lock:
            report = PresenceReport(online_count=len(self._peers))
            failed = await self._fan_out(report.encode(), self._peers.values())
        await self._drop(failed)

    async def relay_message(self, sender: Peer, message: ChatMessage) -> None:
        raw = message.encode()
        async with self.lock:
            # The sender is included; clients render only what comes back.
            failed = await self._fan_out(raw, self._peers.values())
        logging.debug("Relayed message from peer %s (%s)", sender.peer_id, message.sender_display_name)
        await self._drop(failed)

    async def respond_to_probe(self, sender: Peer, probe: LatencyProbe) -> None:
        async with self.lock:
            if sender not in self:
                return
            failed = await self._fan_out(probe.reply(), [sender])
        await self._drop(failed)

    async def handle_frame(self, peer: Peer, raw: Union[str, bytes]) -> None:
        try:
            inbound = decode_frame(raw)
        except MalformedFrame as exc:
            logging.warning("Dropping malformed frame from peer %s: %s", peer.peer_id, exc)
            return

        if isinstance(inbound, LatencyProbe):
            await self.respond_to_probe(peer, inbound)
        elif isinstance(inbound, ChatMessage):
            await self.relay_message(peer, inbound)
        else:
            logging.debug("Ignoring frame of unknown type from peer %s", peer.peer_id)

    async def dispatch(self, peer: Peer, event: PeerEvent) -> None:
        if event.kind is EventKind.OPENED:
            await self.register(peer)
        elif event.kind is EventKind.FRAME:
            await self.handle_frame(peer, event.data)
        elif event.kind is EventKind.FAILED:
            logging.warning("Peer %s failed: %s", peer.peer_id, event.reason)
            await self.unregister(peer)
        else:
            await self.unregister(peer)

    async def close_all(self) -> None:
        async with self.lock:
            peers = list(self._peers.values())
            self._peers.clear()
        for peer in peers:
            await peer.close()

    async def _fan_out(self, raw: str, recipients: Iterable[Peer]) -> List[Peer]:
        # Caller holds the lock.
        recipients = list(recipients)
        if not recipients:
            return []
        results = await asyncio.gather(
            *(peer.send(raw, self.send_timeout) for peer in recipients),
            return_exceptions=True,
        )
        failed = []
        for peer, result in zip(recipients, results):
            if isinstance(result, Exception):
                logging.info("Send to peer %s failed: %r", peer.peer_id, result)
                failed.append(peer)
        return failed

    async def _drop(self, peers: List[Peer]) -> None:
        for peer in peers:
            peer.abort()
            await self.unregister(peer)
