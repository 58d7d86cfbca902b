"""
Operator endpoints: sign-in, timer controls, grading and reset

All actions except login require `Authorization: Bearer <token>`.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from classroom_arena.core.timer import displayed_remaining
from classroom_arena.services.projections import project_operator_view
from classroom_arena.state import get_arena


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def _int_field(request: dict, *names: str, required: bool = True) -> Optional[int]:
    for name in names:
        value = request.get(name)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise HTTPException(status_code=400, detail=f"{names[0]} must be an integer")
        try:
            return int(value)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"{names[0]} must be an integer")
    if required:
        raise HTTPException(status_code=400, detail=f"{names[0]} must be an integer")
    return None


@router.post("/login")
async def login(request: dict):
    """
    Operator sign-in

    Request:
        {"email": "admin@classroom.local", "password": "..."}
    """
    token = get_arena().auth.sign_in(request.get("email", ""), request.get("password", ""))
    return {"success": True, "token": token}


@router.post("/logout")
async def logout(token: Optional[str] = Depends(bearer_token)):
    get_arena().auth.sign_out(token)
    return {"success": True}


# ==================== TIMER ====================

@router.post("/start")
async def start_session(request: dict, token: Optional[str] = Depends(bearer_token)):
    """
    Start (or restart) the countdown

    Request:
        {"minutes": 25}
    """
    minutes = request.get("minutes")
    if isinstance(minutes, bool) or not isinstance(minutes, (int, float)):
        raise HTTPException(status_code=400, detail="minutes required")
    config = await get_arena().controller.start(token, minutes)
    return {"success": True, "session": config.to_document()}


@router.post("/pause")
async def pause_session(request: Optional[dict] = None, token: Optional[str] = Depends(bearer_token)):
    """
    Pause the countdown

    Request (optional):
        {"remaining_seconds": 742}   # the value shown on the operator console
    """
    observed = _int_field(request or {}, "remaining_seconds", "remainingSeconds", required=False)
    config = await get_arena().controller.pause(token, observed_remaining=observed)
    return {"success": True, "session": config.to_document()}


@router.post("/resume")
async def resume_session(token: Optional[str] = Depends(bearer_token)):
    config = await get_arena().controller.resume(token)
    return {"success": True, "session": config.to_document()}


@router.post("/stop")
async def stop_session(token: Optional[str] = Depends(bearer_token)):
    config = await get_arena().controller.stop(token)
    return {"success": True, "session": config.to_document()}


@router.post("/reveal")
async def reveal_leaderboard(token: Optional[str] = Depends(bearer_token)):
    config = await get_arena().controller.reveal(token)
    return {"success": True, "session": config.to_document()}


@router.post("/close")
async def close_session(token: Optional[str] = Depends(bearer_token)):
    config = await get_arena().controller.close(token)
    return {"success": True, "session": config.to_document()}


# ==================== RESET ====================

@router.post("/reset/unlock")
async def unlock_reset(token: Optional[str] = Depends(bearer_token)):
    get_arena().roster.unlock_reset(token)
    return {"success": True, "unlocked": True}


@router.post("/reset/lock")
async def lock_reset(token: Optional[str] = Depends(bearer_token)):
    get_arena().roster.lock_reset(token)
    return {"success": True, "unlocked": False}


@router.post("/reset/confirm")
async def confirm_reset(token: Optional[str] = Depends(bearer_token)):
    """Wipe every team and return the session to idle (requires unlock first)"""
    config = await get_arena().roster.reset_all(token)
    return {
        "success": True,
        "session": config.to_document(),
        "message": "All teams removed, session reset",
    }


# ==================== REVIEW QUEUE ====================

@router.post("/grade")
async def grade_submission(request: dict, token: Optional[str] = Depends(bearer_token)):
    """
    Accept a pending challenge

    Request:
        {"team_id": "team-ada-1f2e3d", "challenge_id": 3, "points": 20}

    `points` defaults to the challenge's catalog value.
    """
    arena = get_arena()
    arena.auth.require(token)
    team_id = request.get("team_id") or request.get("teamId")
    if not isinstance(team_id, str) or not team_id:
        raise HTTPException(status_code=400, detail="team_id required")
    challenge_id = _int_field(request, "challenge_id", "challengeId")
    points = _int_field(request, "points", required=False)
    if points is None:
        points = arena.roster.challenge_points(challenge_id)

    team = await arena.roster.grade(token, team_id, challenge_id, points)
    return {
        "success": True,
        "team": team.model_dump(),
        "message": f"Challenge {challenge_id} accepted for {team.name} (+{points})",
    }


@router.get("/queue")
async def review_queue(
    search: str = "",
    inspect: Optional[str] = None,
    token: Optional[str] = Depends(bearer_token),
):
    """Operator view: ordered review queue, metrics and timer controls"""
    arena = get_arena()
    arena.auth.require(token)
    config = await arena.sessions.read_config()
    teams = await arena.sessions.list_teams()
    view = project_operator_view(
        teams,
        config,
        displayed_remaining(config, arena.clock()),
        arena.roster.challenge_ids,
        search=search,
        inspect_id=inspect,
        reset_unlocked=arena.roster.reset_guard.unlocked,
    )
    return view.model_dump(mode="json")
