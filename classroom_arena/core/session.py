"""
Session state machine

idle -> active (running <-> paused) -> revealed, plus a terminal closed state.
Only the operator mutates the session document. Every transition writes the
complete set of timer fields it owns, so a write that lands late can never
leave a stale endTime next to a paused remainingSeconds.
"""
import asyncio
import logging
from typing import Optional

from classroom_arena.core.auth import OperatorAuth
from classroom_arena.core.session_store import SessionStore
from classroom_arena.core.timer import displayed_remaining
from classroom_arena.errors import ValidationError
from classroom_arena.models import SessionConfig, SessionStatus, idle_config
from classroom_arena.utils import Clock, minutes_to_ms, system_clock


logger = logging.getLogger(__name__)


class SessionController:
    """Operator-side transitions over the shared SessionConfig"""

    def __init__(self, sessions: SessionStore, auth: OperatorAuth, clock: Clock = system_clock):
        self.sessions = sessions
        self.auth = auth
        self.clock = clock

    async def start(self, token: Optional[str], minutes: float) -> SessionConfig:
        """Any state -> active/running, ending `minutes` from now"""
        self.auth.require(token)
        if minutes is None or minutes <= 0:
            raise ValidationError("Duration must be a positive number of minutes")

        end_time = self.clock() + minutes_to_ms(minutes)
        config = await self.sessions.write_config({
            "status": SessionStatus.ACTIVE.value,
            "isRunning": True,
            "endTime": end_time,
            "remainingSeconds": None,
        })
        logger.info(f"▶️ Session started for {minutes} min (endTime={end_time})")
        return config

    async def pause(self, token: Optional[str], observed_remaining: Optional[int] = None) -> SessionConfig:
        """
        active/running -> active/paused

        `observed_remaining` is the countdown the operator was looking at.
        It is stored as-is rather than recomputed from endTime when the
        write lands, so network delay cannot stretch or shrink the pause.
        """
        self.auth.require(token)
        current = await self.sessions.read_config()
        if not (current.is_active and current.is_running):
            logger.warning(f"⚠️ Pause ignored: session is {current.status.value} (running={current.is_running})")
            return current

        if observed_remaining is None:
            observed_remaining = displayed_remaining(current, self.clock())
        remaining = max(0, int(observed_remaining))

        config = await self.sessions.write_config({
            "isRunning": False,
            "remainingSeconds": remaining,
            "endTime": None,
        })
        logger.info(f"⏸️ Session paused with {remaining}s left")
        return config

    async def resume(self, token: Optional[str]) -> SessionConfig:
        """active/paused -> active/running"""
        self.auth.require(token)
        current = await self.sessions.read_config()
        if not current.is_paused:
            logger.warning(f"⚠️ Resume ignored: session is {current.status.value} (running={current.is_running})")
            return current

        remaining = current.remaining_seconds or 0
        end_time = self.clock() + remaining * 1000
        config = await self.sessions.write_config({
            "isRunning": True,
            "endTime": end_time,
            "remainingSeconds": None,
        })
        logger.info(f"▶️ Session resumed with {remaining}s left")
        return config

    async def stop(self, token: Optional[str]) -> SessionConfig:
        """active (either substate) -> idle"""
        self.auth.require(token)
        current = await self.sessions.read_config()
        if not current.is_active:
            logger.warning(f"⚠️ Stop ignored: session is {current.status.value}")
            return current

        config = await self.sessions.write_config(_idle_fields())
        logger.info("🛑 Session stopped")
        return config

    async def reveal(self, token: Optional[str]) -> SessionConfig:
        """Any state -> revealed; timer fields are left untouched"""
        self.auth.require(token)
        config = await self.sessions.write_config({"status": SessionStatus.REVEALED.value})
        logger.info("🏆 Leaderboard revealed")
        return config

    async def close(self, token: Optional[str]) -> SessionConfig:
        """Any state -> closed; registration and submission are locked"""
        self.auth.require(token)
        config = await self.sessions.write_config({
            **_idle_fields(),
            "status": SessionStatus.CLOSED.value,
        })
        logger.info("🔒 Session closed")
        return config

    async def reset(self, token: Optional[str]) -> SessionConfig:
        """
        Any state -> idle, and every team document is deleted

        Callers are expected to have passed the two-step confirmation
        (see roster.ResetGuard).
        """
        self.auth.require(token)
        config = await self.sessions.replace_config(idle_config())
        teams = await self.sessions.list_teams()
        await asyncio.gather(*(self.sessions.delete_team(team.id) for team in teams))
        logger.info(f"🔄 Session reset. Removed {len(teams)} teams.")
        return config


def _idle_fields() -> dict:
    return {
        "status": SessionStatus.IDLE.value,
        "isRunning": False,
        "endTime": None,
        "remainingSeconds": 0,
    }
