"""
Public endpoints: session snapshot, challenge catalog and the display view
"""
from fastapi import APIRouter

from classroom_arena.core.timer import displayed_remaining
from classroom_arena.models import SessionStatus
from classroom_arena.services.leaderboard import read_leaderboard
from classroom_arena.services.projections import project_display_view
from classroom_arena.state import get_arena
from classroom_arena.utils import format_clock


router = APIRouter(tags=["display"])


@router.get("/session")
async def get_session():
    """Raw session document plus the countdown derived from it"""
    arena = get_arena()
    config = await arena.sessions.read_config()
    remaining = displayed_remaining(config, arena.clock())
    return {
        "session_id": arena.settings.session_id,
        "config": config.to_document(),
        "remaining": remaining,
        "clock": format_clock(remaining),
        "server_time": arena.clock(),
    }


@router.get("/challenges")
async def list_challenges():
    arena = get_arena()
    return {
        "total": len(arena.settings.challenges),
        "challenges": [c.model_dump() for c in arena.settings.challenges],
    }


@router.get("/display")
async def get_display():
    """Projector view; the leaderboard is only filled in once revealed"""
    arena = get_arena()
    config = await arena.sessions.read_config()
    leaderboard = []
    if config.status == SessionStatus.REVEALED:
        leaderboard = await read_leaderboard(arena.sessions, arena.settings.leaderboard_size)
    view = project_display_view(config, displayed_remaining(config, arena.clock()), leaderboard)
    return view.model_dump(mode="json")
