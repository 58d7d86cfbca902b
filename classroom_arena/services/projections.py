"""
Read-side projections for the three observers

Pure functions from (documents, displayed remaining, local UI state) to a
view model. Nothing here is persisted; every new snapshot replaces the
inputs wholesale and the view is recomputed from scratch.
"""
from typing import Dict, Iterable, List, Optional, Set

from classroom_arena.core.roster import is_fully_complete, queue_metrics, review_queue
from classroom_arena.models import (
    Challenge,
    ChallengeCard,
    DisplayView,
    LeaderboardEntry,
    OperatorView,
    QueueEntry,
    SessionConfig,
    SessionStatus,
    Team,
    TeamScreen,
    TeamView,
    idle_config,
)
from classroom_arena.utils import format_clock


def submit_key(challenge_id: int) -> str:
    return f"submit:{challenge_id}"


def grade_key(team_id: str, challenge_id: int) -> str:
    return f"grade:{team_id}:{challenge_id}"


class PendingActions:
    """
    Local "in flight" markers overlaid on the last confirmed snapshot

    A marker is cleared when a snapshot confirms the action or when the
    write fails (the error is kept for display until the action is retried).
    """

    def __init__(self):
        self.in_flight: Set[str] = set()
        self.errors: Dict[str, str] = {}

    def begin(self, key: str) -> None:
        self.in_flight.add(key)
        self.errors.pop(key, None)

    def fail(self, key: str, error: Exception) -> None:
        self.in_flight.discard(key)
        self.errors[key] = str(error)

    def discard(self, key: str) -> None:
        self.in_flight.discard(key)

    def is_in_flight(self, key: str) -> bool:
        return key in self.in_flight

    def reconcile(self, team: Optional[Team]) -> None:
        if team is None:
            return
        for key in list(self.in_flight):
            kind, _, rest = key.partition(":")
            if kind == "submit":
                cid = int(rest)
                if team.is_pending(cid) or team.is_completed(cid):
                    self.in_flight.discard(key)
            elif kind == "grade":
                team_id, _, cid = rest.rpartition(":")
                if team_id == team.id and team.is_completed(int(cid)):
                    self.in_flight.discard(key)

    def reconcile_all(self, teams: Iterable[Team]) -> None:
        for team in teams:
            self.reconcile(team)


# ==================== TEAM ====================

def project_team_view(
    team: Optional[Team],
    config: Optional[SessionConfig],
    remaining: int,
    challenges: List[Challenge],
    pending: Optional[PendingActions] = None,
) -> TeamView:
    config = config or idle_config()
    pending = pending or PendingActions()
    base = dict(
        status=config.status,
        is_running=config.is_running,
        remaining=remaining,
        clock=format_clock(remaining),
        team=team,
        total_challenges=len(challenges),
        errors=dict(pending.errors),
    )

    if team is None:
        return TeamView(screen=TeamScreen.LOGIN, **base)

    completed = sum(1 for c in challenges if team.is_completed(c.id))
    base["completed_count"] = completed

    if config.status == SessionStatus.IDLE:
        return TeamView(screen=TeamScreen.STANDBY, **base)
    if config.status in (SessionStatus.REVEALED, SessionStatus.CLOSED):
        return TeamView(screen=TeamScreen.LOCKED, **base)

    # Gated on the local countdown, not on a fresh session snapshot
    submissions_open = remaining > 0
    cards = []
    for challenge in challenges:
        if team.is_completed(challenge.id):
            state = "completed"
        elif team.is_pending(challenge.id):
            state = "pending"
        else:
            state = "open"
        in_flight = pending.is_in_flight(submit_key(challenge.id))
        cards.append(ChallengeCard(
            id=challenge.id,
            name=challenge.name,
            description=challenge.description,
            state=state,
            in_flight=in_flight,
            can_submit=submissions_open and state == "open" and not in_flight,
        ))

    return TeamView(
        screen=TeamScreen.BOARD,
        challenges=cards,
        submissions_open=submissions_open,
        **base,
    )


# ==================== OPERATOR ====================

def _queue_entry(team: Team, challenge_ids: List[int], pending: PendingActions) -> QueueEntry:
    return QueueEntry(
        team=team,
        pending_count=len(team.pending_challenge_ids),
        completed_count=len(team.completed_challenges),
        is_finished=is_fully_complete(team, challenge_ids),
        grading_in_flight=[
            cid for cid in team.pending_challenge_ids
            if pending.is_in_flight(grade_key(team.id, cid))
        ],
    )


def project_operator_view(
    teams: List[Team],
    config: Optional[SessionConfig],
    remaining: int,
    challenge_ids: Iterable[int],
    search: str = "",
    inspect_id: Optional[str] = None,
    pending: Optional[PendingActions] = None,
    reset_unlocked: bool = False,
) -> OperatorView:
    config = config or idle_config()
    pending = pending or PendingActions()
    ids = list(challenge_ids)

    needle = (search or "").strip().lower()
    ordered = review_queue(teams, ids)
    shown = [t for t in ordered if needle in t.name.lower()] if needle else ordered

    inspected = None
    if inspect_id:
        match = next((t for t in teams if t.id == inspect_id), None)
        if match is not None:
            inspected = _queue_entry(match, ids, pending)

    return OperatorView(
        status=config.status,
        is_running=config.is_running,
        remaining=remaining,
        clock=format_clock(remaining),
        queue=[_queue_entry(t, ids, pending) for t in shown],
        metrics=queue_metrics(teams, ids),
        search=search or "",
        inspected=inspected,
        reset_unlocked=reset_unlocked,
        can_start=not config.is_active,
        can_pause=config.is_active and config.is_running,
        can_resume=config.is_paused,
        can_stop=config.is_active,
        can_reveal=config.status != SessionStatus.REVEALED,
        errors=dict(pending.errors),
    )


# ==================== DISPLAY ====================

def rank_teams(teams: List[Team]) -> List[LeaderboardEntry]:
    return [
        LeaderboardEntry(
            rank=idx + 1,
            team_id=team.id,
            name=team.name,
            score=team.score,
            completed_count=len(team.completed_challenges),
        )
        for idx, team in enumerate(teams)
    ]


def project_display_view(
    config: Optional[SessionConfig],
    remaining: int,
    leaderboard: Optional[List[LeaderboardEntry]] = None,
) -> DisplayView:
    config = config or idle_config()
    return DisplayView(
        status=config.status,
        is_running=config.is_running,
        remaining=remaining,
        clock=format_clock(remaining),
        leaderboard=list(leaderboard or []) if config.status == SessionStatus.REVEALED else [],
    )
