"""
Client-held team identity

Each team's device keeps its assigned team id outside the document store so
that a reload resumes the same team instead of registering a new one.
"""
import json
import logging
from pathlib import Path
from typing import Optional, Protocol


logger = logging.getLogger(__name__)


class IdentityCache(Protocol):
    def load(self) -> Optional[str]: ...

    def save(self, team_id: str) -> None: ...

    def clear(self) -> None: ...


class MemoryIdentityCache:
    """Identity held by the caller (e.g. a team id echoed back by a browser)"""

    def __init__(self, team_id: Optional[str] = None):
        self.team_id = team_id or None

    def load(self) -> Optional[str]:
        return self.team_id

    def save(self, team_id: str) -> None:
        self.team_id = team_id

    def clear(self) -> None:
        self.team_id = None


class FileIdentityCache:
    """Identity persisted in a small JSON file on the team's machine"""

    def __init__(self, path: str):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"⚠️ Ignoring unreadable identity file {self.path}: {e}")
            return None
        team_id = data.get("team_id") if isinstance(data, dict) else None
        return team_id or None

    def save(self, team_id: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump({"team_id": team_id}, f)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
