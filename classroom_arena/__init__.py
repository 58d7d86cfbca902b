"""Classroom Arena - timed multi-team challenge sessions"""

__version__ = "1.0.0"
