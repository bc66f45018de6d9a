"""
Test doubles and frame builders shared across the suite.

FakeConnection stands in for a websockets ServerConnection: it records every
frame sent to it and can be switched to fail or stall on send.
"""

import asyncio
import json
from unittest.mock import MagicMock


class FakeConnection:
    def __init__(self, name: str = "peer"):
        self.name = name
        self.sent = []
        self.fail = False
        self.stall = False
        self.closed = False
        self.transport = MagicMock()
        self.remote_address = ("127.0.0.1", 50000)
        # Called with each raw frame at the moment send() is entered.
        self.on_send = None

    async def send(self, raw):
        if self.on_send is not None:
            self.on_send(raw)
        if self.fail:
            raise ConnectionResetError(f"{self.name} is gone")
        if self.stall:
            await asyncio.sleep(3600)
        self.sent.append(json.loads(raw))

    async def close(self):
        self.closed = True

    def of_type(self, msg_type):
        return [frame for frame in self.sent if frame["type"] == msg_type]

    def online_counts(self):
        return [frame["onlineCount"] for frame in self.of_type("stats")]


def chat_frame(username="Alice", message="hi", time="10:00:00", **extra):
    return json.dumps({"type": "message", "username": username, "message": message, "time": time, **extra})


def ping_frame(probe_id="abc123def", time=1700000000000):
    return json.dumps({"type": "ping", "id": probe_id, "time": time})
