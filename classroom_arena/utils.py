"""
Utility functions
"""
import re
import time
from typing import Callable

# Clock returning epoch milliseconds; injectable so tests can move time
Clock = Callable[[], int]


def system_clock() -> int:
    """Current wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


def minutes_to_ms(minutes: float) -> int:
    return int(minutes * 60 * 1000)


def format_clock(seconds: int) -> str:
    """
    Render a countdown as M:SS

    Example:
        >>> format_clock(905)
        '15:05'
    """
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


def slugify(name: str, max_length: int = 20) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug[:max_length].rstrip("-")
