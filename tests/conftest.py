"""
Shared pytest fixtures for the chat room test suite.
"""

import pytest

from chatroom.registry import ConnectionRegistry, Peer
from tests.helpers import FakeConnection


@pytest.fixture
def registry():
    """Registry with a short send timeout so stalled peers are dropped quickly."""
    return ConnectionRegistry(send_timeout=0.05)


@pytest.fixture
def make_peer():
    """Factory for peers backed by FakeConnection."""

    def _make(name: str = "peer") -> Peer:
        ws = FakeConnection(name)
        return Peer(ws, remote_address=ws.remote_address)

    return _make
