"""Session service module - The current match and its lifecycle.

This module provides match start/end, goal aggregation, and video path
backfill onto persisted records.
"""

from .interface import MatchSessionTracker
from .implementation import (
    MatchIdFactory,
    MatchSessionTrackerImpl,
    new_match_id,
    normalize_video_path,
)

__all__ = [
    "MatchIdFactory",
    "MatchSessionTracker",
    "MatchSessionTrackerImpl",
    "new_match_id",
    "normalize_video_path",
]
