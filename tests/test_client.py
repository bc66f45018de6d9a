"""
Tests for client.py - frame handling, counters and a live session.
"""

import asyncio
import json

import pytest
import pytest_asyncio

from chatroom.client import ChatClient, colorize, Colors
from chatroom.config import ServerConfig
from chatroom.server import ChatServer


@pytest.fixture
def lines():
    return []


@pytest.fixture
def client(lines):
    return ChatClient(username="Alice", out=lines.append)


@pytest_asyncio.fixture
async def server(tmp_path):
    srv = ChatServer(ServerConfig(host="127.0.0.1", port=0, static_dir=tmp_path, status_interval=0))
    await srv.start()
    yield srv
    await srv.stop()


async def _until(predicate, timeout=2.0):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)


class TestFrames:
    def test_compose_message(self, client):
        frame = json.loads(client.compose_message("hello"))

        assert frame["type"] == "message"
        assert frame["username"] == "Alice"
        assert frame["message"] == "hello"
        assert len(frame["time"]) == len("10:00:00")

    def test_blank_username_falls_back(self):
        assert ChatClient(username="   ").username == "anonymous"

    def test_make_ping_tracks_probe(self, client):
        frame = json.loads(client.make_ping())

        assert frame["type"] == "ping"
        assert len(frame["id"]) == 9
        assert isinstance(frame["time"], int)
        assert client._pending_ping == (frame["id"], frame["time"])

    def test_stats_updates_online_count(self, client, lines):
        client.handle_frame('{"type": "stats", "onlineCount": 4}')

        assert client.online_count == 4
        assert "4 online" in lines[-1]

    def test_own_message_is_counted_from_echo(self, client, lines):
        client.handle_frame('{"type": "message", "username": "Alice", "message": "hi", "time": "10:00:00"}')
        client.handle_frame('{"type": "message", "username": "Bob", "message": "yo", "time": "10:00:01"}')

        assert client.message_count == 2
        assert client.my_message_count == 1
        assert "yo" in lines[-1]

    def test_pong_sets_latency(self, client):
        ping = json.loads(client.make_ping())

        client.handle_frame(json.dumps({"type": "pong", "id": ping["id"], "time": ping["time"]}))

        assert client.latency_ms is not None
        assert client.latency_ms >= 0
        assert client._pending_ping is None

    def test_only_latest_ping_is_tracked(self, client):
        stale = json.loads(client.make_ping())
        for _ in range(50):
            latest = json.loads(client.make_ping())

        client.handle_frame(json.dumps({"type": "pong", "id": stale["id"], "time": stale["time"]}))

        assert client.latency_ms is None
        assert client._pending_ping == (latest["id"], latest["time"])

        client.handle_frame(json.dumps({"type": "pong", "id": latest["id"], "time": latest["time"]}))

        assert client.latency_ms is not None
        assert client._pending_ping is None

    def test_unknown_pong_is_ignored(self, client):
        client.handle_frame('{"type": "pong", "id": "someone-else", "time": 1}')

        assert client.latency_ms is None

    def test_garbage_is_ignored(self, client, lines):
        client.handle_frame("<<<")

        assert lines == []
        assert "latency: -" in client.stats_line()

    def test_colorize_without_tty(self, monkeypatch):
        monkeypatch.delenv("TERM", raising=False)

        assert colorize("plain", Colors.RED) == "plain"


class TestSession:
    @pytest.mark.asyncio
    async def test_send_echo_ping_and_quit(self, server, client):
        client._lines = asyncio.Queue()
        session = asyncio.create_task(client.run_once(f"ws://127.0.0.1:{server.port}"))

        await _until(lambda: client.online_count == 1)
        await client._lines.put("hello there")
        await _until(lambda: client.my_message_count == 1)
        await _until(lambda: client.latency_ms is not None)

        await client._lines.put("/quit")
        await asyncio.wait_for(session, 2.0)

        assert client._stopping
        await _until(lambda: server.registry.online_count == 0)

    @pytest.mark.asyncio
    async def test_run_client_reconnects_after_server_drop(self, server, lines):
        client = ChatClient(username="Bob", reconnect_delay=0.05, out=lines.append)
        session = asyncio.create_task(client.run_client("127.0.0.1", server.port, lines=asyncio.Queue()))
        try:
            await _until(lambda: server.registry.online_count == 1)
            first = server.registry.peers()[0]
            first.abort()

            await _until(lambda: any("reconnecting" in line for line in lines))
            await _until(
                lambda: server.registry.online_count == 1 and server.registry.peers()[0] is not first
            )
        finally:
            session.cancel()
            await asyncio.gather(session, return_exceptions=True)
