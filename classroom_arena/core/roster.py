"""
Roster & submission workflow

Teams register and submit evidence for challenges; the operator grades them.
Every write touches exactly one team document, and grading is a single
conditional update so two quick grades can never lose or double an increment.
"""
import logging
import uuid
from typing import Iterable, List, Optional

from classroom_arena.core.identity import IdentityCache
from classroom_arena.core.session import SessionController
from classroom_arena.core.session_store import SessionStore
from classroom_arena.core.store import ArrayRemove, ArrayUnion, Increment
from classroom_arena.core.timer import displayed_remaining
from classroom_arena.errors import (
    AuthorizationError,
    NotFoundError,
    PreconditionFailed,
    SessionClosedError,
    ValidationError,
)
from classroom_arena.models import Challenge, QueueMetrics, SessionConfig, SessionStatus, Team
from classroom_arena.utils import Clock, slugify, system_clock


logger = logging.getLogger(__name__)


def _generate_team_id(team_name: str) -> str:
    slug = slugify(team_name)
    unique_suffix = uuid.uuid4().hex[:6]
    return f"team-{slug}-{unique_suffix}" if slug else f"team-{unique_suffix}"


def is_fully_complete(team: Team, challenge_ids: Iterable[int]) -> bool:
    ids = list(challenge_ids)
    return bool(ids) and all(cid in team.completed_challenges for cid in ids)


def review_queue(teams: List[Team], challenge_ids: Iterable[int]) -> List[Team]:
    """
    Operator queue order: pending work first, finished teams next,
    then most recently joined. Never depends on a field only later
    actions set, so a brand-new team is listed too.
    """
    ids = list(challenge_ids)
    return sorted(
        teams,
        key=lambda t: (t.has_pending, is_fully_complete(t, ids), t.joined_at, t.id),
        reverse=True,
    )


def queue_metrics(teams: List[Team], challenge_ids: Iterable[int]) -> QueueMetrics:
    ids = list(challenge_ids)
    finished = sum(1 for t in teams if is_fully_complete(t, ids))
    return QueueMetrics(
        total=len(teams),
        pending=sum(1 for t in teams if t.has_pending),
        active=len(teams) - finished,
        finished=finished,
    )


class ResetGuard:
    """
    Two-step confirmation (unlock, then confirm) in front of a full reset

    The unlock belongs to the operator session that made it; another
    session cannot confirm it.
    """

    def __init__(self):
        self._unlocked_by: Optional[str] = None

    @property
    def unlocked(self) -> bool:
        return self._unlocked_by is not None

    def unlock(self, token: str) -> None:
        self._unlocked_by = token

    def lock(self) -> None:
        self._unlocked_by = None

    def check(self, token: Optional[str]) -> None:
        if self._unlocked_by is None or self._unlocked_by != token:
            raise AuthorizationError("Reset is locked. Unlock it before confirming.")


class Roster:
    def __init__(
        self,
        sessions: SessionStore,
        controller: SessionController,
        challenges: List[Challenge],
        clock: Clock = system_clock,
    ):
        self.sessions = sessions
        self.controller = controller
        self.auth = controller.auth
        self.challenges = list(challenges)
        self.clock = clock
        self.reset_guard = ResetGuard()

    @property
    def challenge_ids(self) -> List[int]:
        return [c.id for c in self.challenges]

    def get_challenge(self, challenge_id: int) -> Challenge:
        for challenge in self.challenges:
            if challenge.id == challenge_id:
                return challenge
        raise ValidationError(f"Unknown challenge {challenge_id}")

    def challenge_points(self, challenge_id: int) -> int:
        """Default accept points for a catalog challenge"""
        for challenge in self.challenges:
            if challenge.id == challenge_id:
                return challenge.points
        raise NotFoundError(f"Challenge {challenge_id} does not exist")

    # ==================== TEAM ACTIONS ====================

    async def register(self, team_name: str, identity: IdentityCache) -> Team:
        """
        Create a team, or resume the one whose id the client already holds

        Raises:
            ValidationError: blank name (and no team to resume)
            SessionClosedError: session is closed
        """
        cached_id = identity.load()
        if cached_id:
            existing = await self.sessions.read_team(cached_id)
            if existing is not None:
                logger.info(f"🔁 Team {existing.id} resumed")
                return existing

        if team_name is not None and not isinstance(team_name, str):
            raise ValidationError("team_name must be a string")
        clean_name = (team_name or "").strip()
        if not clean_name:
            raise ValidationError("team_name required")

        config = await self.sessions.read_config()
        if config.status == SessionStatus.CLOSED:
            raise SessionClosedError("Registration is closed")

        team = Team(id=_generate_team_id(clean_name), name=clean_name, joined_at=self.clock())
        created = await self.sessions.create_team(team)
        identity.save(created.id)
        logger.info(f"✅ Team registered: {created.id} ({clean_name})")
        return created

    async def submit(
        self,
        team_id: str,
        challenge_id: int,
        url: str,
        remaining: Optional[int] = None,
        config: Optional[SessionConfig] = None,
    ) -> bool:
        """
        Queue a challenge for review

        `remaining` is the countdown the team is looking at; when omitted it
        is derived from the session document and the local clock. A zero
        countdown closes submissions even if the session still says active.

        Returns:
            True if the challenge is now pending, False if it was already
            pending or completed (nothing written).
        """
        self.get_challenge(challenge_id)
        if url is not None and not isinstance(url, str):
            raise ValidationError("Submission link must be a string")
        clean_url = (url or "").strip()
        if not clean_url:
            raise ValidationError("Submission link required")

        if config is None:
            config = await self.sessions.read_config()
        if remaining is None:
            remaining = displayed_remaining(config, self.clock())
        if config.status != SessionStatus.ACTIVE or remaining <= 0:
            raise SessionClosedError("Submissions are closed")

        team = await self.sessions.read_team(team_id)
        if team is None:
            raise NotFoundError(f"Team {team_id} not found")
        if team.is_pending(challenge_id) or team.is_completed(challenge_id):
            logger.warning(f"⚠️ Team {team_id} resubmitted challenge {challenge_id}; ignored")
            return False

        try:
            await self.sessions.update_team(
                team_id,
                {
                    "pendingChallengeIds": ArrayUnion(challenge_id),
                    "submissionUrl": clean_url,
                    "pendingSubmission": True,
                    "lastActiveAt": self.clock(),
                },
                precondition=lambda data: challenge_id not in (data.get("completedChallenges") or []),
            )
        except PreconditionFailed:
            logger.warning(f"⚠️ Challenge {challenge_id} was graded for {team_id} meanwhile; ignored")
            return False

        logger.info(f"📥 Team {team_id} submitted challenge {challenge_id}")
        return True

    # ==================== OPERATOR ACTIONS ====================

    async def grade(
        self, token: Optional[str], team_id: str, challenge_id: int, points: Optional[int] = None
    ) -> Team:
        """
        Accept a pending challenge: score += points, pending -> completed

        `points` defaults to the catalog value of the challenge.

        Applied as one conditional update on "challenge is still pending",
        so grading the same challenge twice fails instead of scoring twice.
        """
        self.auth.require(token)
        if points is None:
            points = self.challenge_points(challenge_id)
        if isinstance(points, bool) or not isinstance(points, int) or points < 0:
            raise ValidationError("Points must be a non-negative integer")

        team = await self.sessions.read_team(team_id)
        if team is None:
            raise NotFoundError(f"Team {team_id} not found")
        if not team.is_pending(challenge_id):
            raise NotFoundError(f"Challenge {challenge_id} is not pending for team {team_id}")

        try:
            updated = await self.sessions.update_team(
                team_id,
                {
                    "score": Increment(points),
                    "pendingChallengeIds": ArrayRemove(challenge_id),
                    "completedChallenges": ArrayUnion(challenge_id),
                    "pendingSubmission": False,
                },
                precondition=lambda data: challenge_id in (data.get("pendingChallengeIds") or []),
            )
        except PreconditionFailed as exc:
            raise NotFoundError(
                f"Challenge {challenge_id} is no longer pending for team {team_id}"
            ) from exc

        logger.info(f"✅ Graded {team_id} | challenge {challenge_id} | +{points} -> {updated.score}")
        return updated

    def unlock_reset(self, token: Optional[str]) -> None:
        self.auth.require(token)
        self.reset_guard.unlock(token)
        logger.warning("⚠️ Reset unlocked")

    def lock_reset(self, token: Optional[str]) -> None:
        self.auth.require(token)
        self.reset_guard.lock()

    async def reset_all(self, token: Optional[str]) -> SessionConfig:
        """Delete every team and return the session to idle (after unlock)"""
        self.auth.require(token)
        self.reset_guard.check(token)
        try:
            return await self.controller.reset(token)
        finally:
            self.reset_guard.lock()
