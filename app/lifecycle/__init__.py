"""Lifecycle management for game liveness, startup and shutdown."""

from app.lifecycle.cleanup_manager import CleanupManager, CleanupTask
from app.lifecycle.game_watcher import GameWatcher

__all__ = [
    "CleanupManager",
    "CleanupTask",
    "GameWatcher",
]
