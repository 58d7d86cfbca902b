"""
Health check endpoint
"""
from fastapi import APIRouter

from classroom_arena import __version__
from classroom_arena.state import get_arena


router = APIRouter(tags=["health"])


@router.get("/")
async def health_check():
    """Health check endpoint"""
    arena = get_arena()
    config = await arena.sessions.read_config()
    return {
        "status": "ok",
        "message": "Classroom Arena",
        "version": __version__,
        "session_id": arena.settings.session_id,
        "session_status": config.status.value,
    }
