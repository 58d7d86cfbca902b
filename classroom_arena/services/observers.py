"""
Observer runtimes for the team client, the operator console and the
public display

Each observer holds exactly one subscription per document of interest and
one local countdown ticker. A snapshot replaces the observer's local copy
wholesale; the view is re-projected and handed to `on_view` after every
snapshot and every tick. close() cancels everything, so no callback outlives
the view it belongs to.
"""
import asyncio
import logging
from typing import Any, Callable, List, Optional

from classroom_arena.core.identity import IdentityCache
from classroom_arena.core.roster import Roster
from classroom_arena.core.session_store import SessionStore
from classroom_arena.core.timer import CountdownTicker
from classroom_arena.errors import ArenaError, NotFoundError, StoreUnavailableError
from classroom_arena.models import (
    Challenge,
    DisplayView,
    LeaderboardEntry,
    OperatorView,
    SessionConfig,
    SessionStatus,
    Team,
    TeamView,
)
from classroom_arena.services.leaderboard import read_leaderboard
from classroom_arena.services.projections import (
    PendingActions,
    grade_key,
    project_display_view,
    project_operator_view,
    project_team_view,
    submit_key,
)
from classroom_arena.utils import Clock, system_clock


logger = logging.getLogger(__name__)


class Observer:
    def __init__(
        self,
        sessions: SessionStore,
        on_view: Optional[Callable[[Any], None]] = None,
        clock: Clock = system_clock,
        tick_interval: float = 1.0,
    ):
        self.sessions = sessions
        self.on_view = on_view
        self.clock = clock
        self.config: Optional[SessionConfig] = None
        self.view = None
        self.pending = PendingActions()
        self.ticker = CountdownTicker(clock, self._on_tick, tick_interval)
        self._tasks: List[asyncio.Task] = []
        self._closed = False

    @property
    def remaining(self) -> int:
        return self.ticker.remaining

    async def start(self):
        self._spawn(self._watch_config())
        return self

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.ticker.close()
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self):
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def on_config(self, config: SessionConfig) -> None:
        """Hook run for every session snapshot, before the countdown is reconciled"""

    def project(self):
        raise NotImplementedError

    def publish(self) -> None:
        if self._closed:
            return
        self.view = self.project()
        if self.on_view is not None:
            self.on_view(self.view)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        task.add_done_callback(self._report)
        self._tasks.append(task)
        return task

    def _report(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"❌ {type(self).__name__} watcher stopped: {task.exception()!r}")

    async def _watch_config(self) -> None:
        async for config in self.sessions.watch_config():
            self.config = config
            await self.on_config(config)
            self.ticker.reconcile(config)

    def _on_tick(self, remaining: int) -> None:
        self.publish()


class TeamObserver(Observer):
    """Team client: its own team document plus the session document"""

    def __init__(
        self,
        sessions: SessionStore,
        identity: IdentityCache,
        challenges: List[Challenge],
        **kwargs,
    ):
        super().__init__(sessions, **kwargs)
        self.identity = identity
        self.challenges = challenges
        self.team: Optional[Team] = None
        self.team_id: Optional[str] = None
        self._team_task: Optional[asyncio.Task] = None

    async def start(self):
        await super().start()
        cached_id = self.identity.load()
        if cached_id:
            self._follow(cached_id)
        return self

    async def register(self, roster: Roster, team_name: str) -> Team:
        team = await roster.register(team_name, self.identity)
        self.team = team
        self._follow(team.id)
        self.publish()
        return team

    async def submit(self, roster: Roster, challenge_id: int, url: str) -> bool:
        """
        Submit with the countdown this client is showing

        The challenge stays "in flight" until a team snapshot confirms it.
        Failures are recorded on the view and re-raised; nothing is retried.
        """
        if self.team_id is None:
            raise NotFoundError("Register a team first")

        key = submit_key(challenge_id)
        self.pending.begin(key)
        self.publish()
        try:
            accepted = await roster.submit(
                self.team_id,
                challenge_id,
                url,
                remaining=self.remaining if self.config is not None else None,
                config=self.config,
            )
        except ArenaError as exc:
            self.pending.fail(key, exc)
            self.publish()
            raise
        if not accepted:
            self.pending.discard(key)
            self.publish()
        return accepted

    def project(self) -> TeamView:
        return project_team_view(self.team, self.config, self.remaining, self.challenges, self.pending)

    def _follow(self, team_id: str) -> None:
        if self._team_task is not None:
            self._team_task.cancel()
        self.team_id = team_id
        self._team_task = self._spawn(self._watch_team(team_id))

    async def _watch_team(self, team_id: str) -> None:
        async for team in self.sessions.watch_team(team_id):
            self.team = team
            self.pending.reconcile(team)
            self.publish()


class OperatorObserver(Observer):
    """Operator console: every team document plus the session document"""

    def __init__(self, sessions: SessionStore, roster: Roster, token: Optional[str], **kwargs):
        super().__init__(sessions, **kwargs)
        self.roster = roster
        self.token = token
        self.teams: List[Team] = []
        self.search = ""
        self.inspect_id: Optional[str] = None

    async def start(self):
        self.roster.auth.require(self.token)
        await super().start()
        self._spawn(self._watch_teams())
        return self

    def set_search(self, search: str) -> None:
        self.search = search or ""
        self.publish()

    def inspect(self, team_id: Optional[str]) -> None:
        self.inspect_id = team_id
        self.publish()

    # ---- timer controls ----

    async def start_session(self, minutes: float) -> SessionConfig:
        return await self.roster.controller.start(self.token, minutes)

    async def pause(self) -> SessionConfig:
        # Freeze the value on screen, not one re-derived when the write lands.
        # Before the first snapshot nothing is on screen yet.
        observed = self.remaining if self.config is not None else None
        return await self.roster.controller.pause(self.token, observed_remaining=observed)

    async def resume(self) -> SessionConfig:
        return await self.roster.controller.resume(self.token)

    async def stop(self) -> SessionConfig:
        return await self.roster.controller.stop(self.token)

    async def reveal(self) -> SessionConfig:
        return await self.roster.controller.reveal(self.token)

    # ---- grading ----

    async def grade(self, team_id: str, challenge_id: int, points: Optional[int] = None) -> Team:
        key = grade_key(team_id, challenge_id)
        self.pending.begin(key)
        self.publish()
        try:
            return await self.roster.grade(self.token, team_id, challenge_id, points)
        except ArenaError as exc:
            self.pending.fail(key, exc)
            self.publish()
            raise

    def project(self) -> OperatorView:
        return project_operator_view(
            self.teams,
            self.config,
            self.remaining,
            self.roster.challenge_ids,
            search=self.search,
            inspect_id=self.inspect_id,
            pending=self.pending,
            reset_unlocked=self.roster.reset_guard.unlocked,
        )

    async def _watch_teams(self) -> None:
        async for teams in self.sessions.watch_teams():
            self.teams = teams
            self.pending.reconcile_all(teams)
            self.publish()


class DisplayObserver(Observer):
    """Public display: the session document, plus a one-shot read at reveal"""

    def __init__(self, sessions: SessionStore, leaderboard_size: int = 5, **kwargs):
        super().__init__(sessions, **kwargs)
        self.leaderboard_size = leaderboard_size
        self.leaderboard: List[LeaderboardEntry] = []
        self._announced = False

    async def on_config(self, config: SessionConfig) -> None:
        if config.status != SessionStatus.REVEALED:
            self._announced = False
            self.leaderboard = []
            return
        if self._announced:
            return
        try:
            self.leaderboard = await read_leaderboard(self.sessions, self.leaderboard_size)
            self._announced = True
        except StoreUnavailableError as exc:
            # Retried on the next session snapshot
            logger.error(f"❌ Leaderboard read failed: {exc}")
            self.leaderboard = []

    def project(self) -> DisplayView:
        return project_display_view(self.config, self.remaining, self.leaderboard)
