"""
Typed accessors over the document store

Owns the document layout and nothing else:
- system/config                       -> SessionConfig (singleton)
- sessions/<session_id>/teams/<id>    -> Team
"""
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from classroom_arena.core.store import DocumentStore, Precondition
from classroom_arena.errors import NotFoundError
from classroom_arena.models import SessionConfig, Team, idle_config


logger = logging.getLogger(__name__)

CONFIG_PATH = "system/config"


def is_valid_team_id(team_id) -> bool:
    """A team id must be one non-empty path segment"""
    return isinstance(team_id, str) and bool(team_id.strip()) and "/" not in team_id


class SessionStore:
    def __init__(self, store: DocumentStore, session_id: str):
        self.store = store
        self.session_id = session_id

    @property
    def teams_collection(self) -> str:
        return f"sessions/{self.session_id}/teams"

    def team_path(self, team_id: str) -> str:
        if not is_valid_team_id(team_id):
            raise NotFoundError(f"Team {team_id!r} not found")
        return f"{self.teams_collection}/{team_id}"

    # ---- session config ----

    async def bootstrap(self) -> SessionConfig:
        """Create the session document if it does not exist yet"""
        snap = await self.store.read_once(CONFIG_PATH)
        if snap.exists:
            return SessionConfig.model_validate(snap.data)
        config = idle_config()
        await self.store.write(CONFIG_PATH, config.to_document(), merge=False)
        logger.info("✅ Session config bootstrapped (idle)")
        return config

    async def read_config(self) -> SessionConfig:
        snap = await self.store.read_once(CONFIG_PATH)
        return SessionConfig.model_validate(snap.data or {})

    async def write_config(self, fields: Dict[str, Any]) -> SessionConfig:
        snap = await self.store.write(CONFIG_PATH, fields, merge=True)
        return SessionConfig.model_validate(snap.data)

    async def replace_config(self, config: SessionConfig) -> SessionConfig:
        snap = await self.store.write(CONFIG_PATH, config.to_document(), merge=False)
        return SessionConfig.model_validate(snap.data)

    async def watch_config(self) -> AsyncIterator[SessionConfig]:
        """Current config, then one value per change; each call starts fresh"""
        async with self.store.subscribe(CONFIG_PATH) as sub:
            async for snap in sub:
                yield SessionConfig.model_validate(snap.data or {})

    # ---- teams ----

    async def read_team(self, team_id: str) -> Optional[Team]:
        if not is_valid_team_id(team_id):
            return None
        snap = await self.store.read_once(self.team_path(team_id))
        if not snap.exists:
            return None
        return Team.from_document(team_id, snap.data)

    async def create_team(self, team: Team) -> Team:
        snap = await self.store.write(self.team_path(team.id), team.to_document(), merge=False)
        return Team.from_document(team.id, snap.data)

    async def update_team(
        self, team_id: str, fields: Dict[str, Any], precondition: Optional[Precondition] = None
    ) -> Team:
        snap = await self.store.update(self.team_path(team_id), fields, precondition=precondition)
        return Team.from_document(team_id, snap.data)

    async def delete_team(self, team_id: str) -> None:
        await self.store.delete(self.team_path(team_id))

    async def list_teams(self) -> List[Team]:
        result = await self.store.query(self.teams_collection)
        return [Team.from_document(doc.id, doc.data) for doc in result]

    async def top_teams(self, limit: int) -> List[Team]:
        """One-shot read of the highest scores (not a live subscription)"""
        result = await self.store.query(
            self.teams_collection, order_by="score", descending=True, limit=limit
        )
        return [Team.from_document(doc.id, doc.data) for doc in result]

    async def watch_team(self, team_id: str) -> AsyncIterator[Optional[Team]]:
        """Yields None while the team document does not exist"""
        if not is_valid_team_id(team_id):
            yield None
            return
        async with self.store.subscribe(self.team_path(team_id)) as sub:
            async for snap in sub:
                yield Team.from_document(team_id, snap.data) if snap.exists else None

    async def watch_teams(self) -> AsyncIterator[List[Team]]:
        async with self.store.subscribe_query(self.teams_collection) as sub:
            async for result in sub:
                yield [Team.from_document(doc.id, doc.data) for doc in result]
