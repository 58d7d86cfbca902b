"""
Global application state
Shared handles wired at startup and used by every router
"""
from dataclasses import dataclass
from typing import Optional

from classroom_arena.core.auth import OperatorAuth
from classroom_arena.core.roster import Roster
from classroom_arena.core.session import SessionController
from classroom_arena.core.session_store import SessionStore
from classroom_arena.core.store import InMemoryDocumentStore
from classroom_arena.models import Settings
from classroom_arena.utils import Clock, system_clock


@dataclass
class Arena:
    """Everything one running session needs, owned in one place"""
    settings: Settings
    store: InMemoryDocumentStore
    sessions: SessionStore
    auth: OperatorAuth
    controller: SessionController
    roster: Roster
    clock: Clock


def build_arena(settings: Settings, clock: Clock = system_clock) -> Arena:
    store = InMemoryDocumentStore(timeout=settings.store_timeout)
    sessions = SessionStore(store, settings.session_id)
    auth = OperatorAuth(settings.operator_email, settings.operator_password)
    controller = SessionController(sessions, auth, clock)
    roster = Roster(sessions, controller, settings.challenges, clock)
    return Arena(
        settings=settings,
        store=store,
        sessions=sessions,
        auth=auth,
        controller=controller,
        roster=roster,
        clock=clock,
    )


# Set by the application lifespan
ARENA: Optional[Arena] = None


def get_arena() -> Arena:
    if ARENA is None:
        raise RuntimeError("Arena is not initialized")
    return ARENA
