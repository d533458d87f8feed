"""Shared data contracts for match tracking and capture."""

from .types import (
    UNKNOWN,
    CaptureSession,
    GoalEvent,
    GoalType,
    MatchSession,
    Outcome,
    Score,
)

__all__ = [
    "UNKNOWN",
    "CaptureSession",
    "GoalEvent",
    "GoalType",
    "MatchSession",
    "Outcome",
    "Score",
]
