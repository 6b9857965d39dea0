import asyncio

import pytest

from imposter.logic.registry import RoomRegistry
from imposter.logic.rng import GameRandom
from imposter.messaging.router import MessageRouter
from imposter.session.manager import SessionManager
from imposter.tests.helpers.rooms import create_room_with_players
from imposter.tests.mocks import MockConnection

# Long enough that no countdown fires during a test unless the test asks for it.
IDLE_TICK_SECONDS = 60.0


@pytest.fixture
def rng():
    return GameRandom(seed=20240611)


@pytest.fixture
def registry(rng):
    return RoomRegistry(rng)


@pytest.fixture
def room(registry):
    """A lobby room with Alice (host), Bob, Carol and Dave."""
    return create_room_with_players(registry)


@pytest.fixture
async def session_manager(rng):
    manager = SessionManager(rng=rng, tick_seconds=IDLE_TICK_SECONDS)
    yield manager
    manager.cancel_all_timers()
    await asyncio.sleep(0)


@pytest.fixture
def message_router(session_manager):
    return MessageRouter(session_manager)


@pytest.fixture
def mock_connection():
    return MockConnection()

