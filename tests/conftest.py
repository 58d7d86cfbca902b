"""
Shared fixtures: a controllable clock and a fully wired arena
"""
import asyncio

import pytest

from classroom_arena.models import Settings
from classroom_arena.state import build_arena

START_MS = 1_700_000_000_000
OPERATOR_EMAIL = "admin@classroom.local"
OPERATOR_PASSWORD = "secret"


class FakeClock:
    """Epoch-millisecond clock that only moves when told to"""

    def __init__(self, now_ms: int = START_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        tick_interval=0.01,
        store_timeout=1.0,
        operator_email=OPERATOR_EMAIL,
        operator_password=OPERATOR_PASSWORD,
    )


@pytest.fixture
def arena(settings, clock):
    arena = build_arena(settings, clock)
    asyncio.run(arena.sessions.bootstrap())
    return arena


@pytest.fixture
def token(arena):
    return arena.auth.sign_in(OPERATOR_EMAIL, OPERATOR_PASSWORD)
