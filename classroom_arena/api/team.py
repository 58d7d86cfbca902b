"""
Team endpoints: registration, team view and submissions
"""
import logging

from fastapi import APIRouter, HTTPException

from classroom_arena.core.identity import MemoryIdentityCache
from classroom_arena.core.timer import displayed_remaining
from classroom_arena.errors import NotFoundError
from classroom_arena.services.projections import project_team_view
from classroom_arena.state import get_arena


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/teams", tags=["team"])


@router.post("/register")
async def register_team(request: dict):
    """
    Register a team, or resume the one the client already holds

    Request:
        {
            "team_name": "Ada Lovelace",
            "team_id": "team-ada-lovelace-1f2e3d"   # optional, from a previous visit
        }

    Response:
        {"success": true, "team_id": "...", "team": {...}}
    """
    team_name = request.get("team_name") or request.get("teamName") or ""
    cached_id = request.get("team_id") or request.get("teamId")
    if not isinstance(team_name, str):
        raise HTTPException(status_code=400, detail="team_name must be a string")
    if cached_id is not None and not isinstance(cached_id, str):
        raise HTTPException(status_code=400, detail="team_id must be a string")
    identity = MemoryIdentityCache(cached_id)

    team = await get_arena().roster.register(team_name, identity)
    return {
        "success": True,
        "team_id": identity.load(),
        "team": team.model_dump(),
    }


@router.get("/{team_id}")
async def get_team_view(team_id: str):
    """Team board as this team's client would render it right now"""
    arena = get_arena()
    team = await arena.sessions.read_team(team_id)
    if team is None:
        raise NotFoundError(f"Team {team_id} not found")
    config = await arena.sessions.read_config()
    view = project_team_view(
        team,
        config,
        displayed_remaining(config, arena.clock()),
        arena.settings.challenges,
    )
    return view.model_dump(mode="json")


@router.post("/{team_id}/submit")
async def submit_challenge(team_id: str, request: dict):
    """
    Queue a challenge for review

    Request:
        {"challenge_id": 3, "url": "https://example.org/demo"}

    Response:
        {"success": true, "accepted": true}
        `accepted` is false when the challenge was already pending or completed.
    """
    challenge_id = request.get("challenge_id", request.get("challengeId"))
    if isinstance(challenge_id, bool) or not isinstance(challenge_id, int):
        raise HTTPException(status_code=400, detail="challenge_id must be an integer")

    url = request.get("url", "")
    if not isinstance(url, str):
        raise HTTPException(status_code=400, detail="url must be a string")

    accepted = await get_arena().roster.submit(team_id, challenge_id, url)
    return {
        "success": True,
        "accepted": accepted,
        "message": "Submitted for review" if accepted else "Already submitted",
    }
