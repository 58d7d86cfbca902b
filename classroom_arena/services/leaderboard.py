"""
Leaderboard service - one-shot ranking read for the public display
"""
import logging
from typing import List

from classroom_arena.core.session_store import SessionStore
from classroom_arena.models import LeaderboardEntry
from classroom_arena.services.projections import rank_teams


logger = logging.getLogger(__name__)


async def read_leaderboard(sessions: SessionStore, size: int) -> List[LeaderboardEntry]:
    """
    Read the top `size` teams by score once

    The leaderboard is announced at reveal time, not continuously updated,
    so this is a bounded read rather than a subscription.
    """
    teams = await sessions.top_teams(size)
    logger.info(f"🏆 Leaderboard read: {len(teams)} teams")
    return rank_teams(teams)
