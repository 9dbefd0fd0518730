import pytest

from relay.session.coordinator import SessionCoordinator
from relay.session.registry import RoomRegistry
from relay.session.timeout_manager import TimeoutManager, TimeoutPolicy


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def policy():
    """Long enough that no timer fires during an ordinary test."""
    return TimeoutPolicy(idle_seconds=600, one_player_seconds=3600, two_player_seconds=7200)


@pytest.fixture
async def timeouts(registry, policy):
    manager = TimeoutManager(registry, policy)
    yield manager
    manager.cancel_all()


@pytest.fixture
async def coordinator(registry, timeouts):
    return SessionCoordinator(registry, timeouts, max_rooms=10)
