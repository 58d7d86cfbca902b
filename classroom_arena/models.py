"""
Data models for session documents, settings and observer views
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SessionStatus(str, Enum):
    """Which screen every observer renders"""
    IDLE = "idle"
    ACTIVE = "active"
    REVEALED = "revealed"
    CLOSED = "closed"


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_id_list(value: Any) -> List[int]:
    if not isinstance(value, (list, tuple, set)):
        return []
    ids = []
    for item in value:
        try:
            cid = int(item)
        except (TypeError, ValueError):
            continue
        if cid not in ids:
            ids.append(cid)
    return ids


class SessionConfig(BaseModel):
    """
    Singleton session document (system/config)

    While running only `end_time` is meaningful; while paused only
    `remaining_seconds` is.
    """
    model_config = ConfigDict(populate_by_name=True)

    status: SessionStatus = SessionStatus.IDLE
    is_running: bool = Field(default=False, alias="isRunning")
    end_time: Optional[int] = Field(default=None, alias="endTime")  # epoch ms
    remaining_seconds: Optional[int] = Field(default=0, alias="remainingSeconds")

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value):
        try:
            return SessionStatus(value)
        except ValueError:
            # Unknown or legacy values ("waiting") render as standby
            return SessionStatus.IDLE

    @field_validator("is_running", mode="before")
    @classmethod
    def _coerce_running(cls, value):
        return bool(value)

    @field_validator("end_time", "remaining_seconds", mode="before")
    @classmethod
    def _coerce_optional_int(cls, value):
        if value is None:
            return None
        return _as_int(value)

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @property
    def is_paused(self) -> bool:
        return self.is_active and not self.is_running

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def idle_config() -> SessionConfig:
    return SessionConfig(status=SessionStatus.IDLE, is_running=False, end_time=None, remaining_seconds=0)


class Team(BaseModel):
    """One registered team (sessions/<session>/teams/<id>)"""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    score: int = 0
    completed_challenges: List[int] = Field(default_factory=list, alias="completedChallenges")
    pending_challenge_ids: List[int] = Field(default_factory=list, alias="pendingChallengeIds")
    submission_url: Optional[str] = Field(default=None, alias="submissionUrl")
    pending_submission: bool = Field(default=False, alias="pendingSubmission")
    joined_at: int = Field(default=0, alias="joinedAt")  # epoch ms
    last_active_at: Optional[int] = Field(default=None, alias="lastActiveAt")

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value):
        return "" if value is None else str(value)

    @field_validator("score", "joined_at", mode="before")
    @classmethod
    def _coerce_counter(cls, value):
        return max(0, _as_int(value))

    @field_validator("completed_challenges", "pending_challenge_ids", mode="before")
    @classmethod
    def _coerce_ids(cls, value):
        return _as_id_list(value)

    @field_validator("pending_submission", mode="before")
    @classmethod
    def _coerce_flag(cls, value):
        return bool(value)

    @classmethod
    def from_document(cls, team_id: str, data: Optional[Dict[str, Any]]) -> "Team":
        return cls.model_validate({**(data or {}), "id": team_id})

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"id"})

    @property
    def has_pending(self) -> bool:
        return bool(self.pending_challenge_ids)

    def is_completed(self, challenge_id: int) -> bool:
        return challenge_id in self.completed_challenges

    def is_pending(self, challenge_id: int) -> bool:
        return challenge_id in self.pending_challenge_ids


class Challenge(BaseModel):
    """One gradable task from the fixed catalog"""
    id: int
    name: str
    description: str = ""
    points: int = 20


DEFAULT_CHALLENGES: List[Dict[str, Any]] = [
    {"id": 1, "name": "Bubble Sort", "description": "Visualizer Engine"},
    {"id": 2, "name": "Merge Sort", "description": "Recursive Logic"},
    {"id": 3, "name": "Quick Sort", "description": "Partitioning"},
    {"id": 4, "name": "Pathfinding", "description": "BFS/DFS Traversal"},
    {"id": 5, "name": "Dijkstra", "description": "Shortest Path"},
]


class Settings(BaseModel):
    """Runtime settings loaded from config/arena.yaml"""
    session_id: str = "vibe-live"
    challenges: List[Challenge] = Field(
        default_factory=lambda: [Challenge(**c) for c in DEFAULT_CHALLENGES]
    )
    leaderboard_size: int = 5
    tick_interval: float = 1.0      # seconds between local countdown ticks
    store_timeout: float = 5.0      # seconds before a store call is reported unavailable
    operator_email: str = "admin@classroom.local"
    operator_password: str = "changeme"


# ==================== OBSERVER VIEWS ====================

class TeamScreen(str, Enum):
    LOGIN = "login"
    STANDBY = "standby"
    LOCKED = "locked"
    BOARD = "board"


class ChallengeCard(BaseModel):
    id: int
    name: str
    description: str = ""
    state: str = "open"  # "open" | "pending" | "completed"
    can_submit: bool = False
    in_flight: bool = False


class TeamView(BaseModel):
    screen: TeamScreen
    status: SessionStatus
    is_running: bool = False
    remaining: int = 0
    clock: str = "0:00"
    team: Optional[Team] = None
    challenges: List[ChallengeCard] = []
    completed_count: int = 0
    total_challenges: int = 0
    submissions_open: bool = False
    errors: Dict[str, str] = {}


class QueueEntry(BaseModel):
    team: Team
    pending_count: int = 0
    completed_count: int = 0
    is_finished: bool = False
    grading_in_flight: List[int] = []


class QueueMetrics(BaseModel):
    total: int = 0
    pending: int = 0
    active: int = 0
    finished: int = 0


class OperatorView(BaseModel):
    status: SessionStatus
    is_running: bool = False
    remaining: int = 0
    clock: str = "0:00"
    queue: List[QueueEntry] = []
    metrics: QueueMetrics = QueueMetrics()
    search: str = ""
    inspected: Optional[QueueEntry] = None
    reset_unlocked: bool = False
    can_start: bool = False
    can_pause: bool = False
    can_resume: bool = False
    can_stop: bool = False
    can_reveal: bool = False
    errors: Dict[str, str] = {}


class LeaderboardEntry(BaseModel):
    rank: int
    team_id: str
    name: str
    score: int
    completed_count: int = 0


class DisplayView(BaseModel):
    status: SessionStatus
    is_running: bool = False
    remaining: int = 0
    clock: str = "0:00"
    leaderboard: List[LeaderboardEntry] = []
