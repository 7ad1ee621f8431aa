"""Root conftest — shared fixtures for draw session tests."""

import os
import random
import tempfile

# Settings are read once at import time, so configure them before any app import
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.gettempdir(), 'lucky_draw_test.db')}",
)
os.environ.setdefault("ADMIN_SECRET", "test-secret")
os.environ.setdefault("REVEAL_DELAY_SECONDS", "0")

import pytest

from core.admin_gate import AdminGate
from core.broadcast_hub import BroadcastHub
from core.session_manager import SessionManager
from core.session_registry import InMemorySessionRepository
from services.draw_service import DrawEngine

ADMIN_SECRET = "test-secret"


class FakeConnection:
    """Records everything sent to it, like a WebSocket that never fails."""

    def __init__(self):
        self.sent = []

    async def send_json(self, data):
        self.sent.append(data)

    def of_type(self, event_type):
        return [m for m in self.sent if m["type"] == event_type]

    def last_snapshot(self):
        snapshots = self.of_type("STATE_SNAPSHOT")
        return snapshots[-1]["session"] if snapshots else None


class BrokenConnection:
    async def send_json(self, data):
        raise RuntimeError("socket closed")


@pytest.fixture
def make_manager():
    """Build a SessionManager with in-memory storage and a seeded RNG."""

    def _make(reveal_delay=0.0, reset_clears_history=False, seed=7):
        return SessionManager(
            InMemorySessionRepository(),
            BroadcastHub(),
            AdminGate(ADMIN_SECRET),
            DrawEngine(reveal_delay, rng=random.Random(seed)),
            reset_clears_history=reset_clears_history,
            test_account_prefixes=["bot-", "test-"],
        )

    return _make


@pytest.fixture
def manager(make_manager):
    return make_manager()


@pytest.fixture
async def admin(manager):
    """An operator console connection holding a valid capability token."""
    conn = FakeConnection()
    manager.connect("admin", conn)
    capability = await manager.authenticate("admin", ADMIN_SECRET)
    conn.token = capability.token
    return conn


@pytest.fixture
def viewer(manager):
    conn = FakeConnection()
    manager.connect("viewer", conn)
    return conn
