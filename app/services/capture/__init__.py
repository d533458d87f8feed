"""Capture service module - Gameplay recording against the platform capture provider.

This module provides recording start/stop, encoder selection, highlight
markers and volume control.
"""

from .interface import CaptureService
from .implementation import CaptureSessionManager, map_provider_error
from .stream_settings import StreamSettings

__all__ = ["CaptureService", "CaptureSessionManager", "StreamSettings", "map_provider_error"]
