"""CaptureService interface for gameplay recording.

Responsibility: Own the lifecycle of one recording session against the
platform capture provider (start, stop, split, volume, highlights).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from app.services.platform.interface import StopResult


class CaptureService(ABC):
    """Abstract interface for the capture session manager.

    At most one recording is live at a time. All methods run on the event
    loop; start and stop are single-flight (a second call made while the
    first is outstanding does not reach the provider).
    """

    @abstractmethod
    async def start_capture(self, match_id: Optional[str] = None) -> str:
        """Start recording, correlated with ``match_id`` when given.

        Returns:
            The provider stream handle. If a recording is already live or a
            start/stop is outstanding: the last known recording path, else
            the current handle, else "".

        Raises:
            NotInGameError: If no supported game is running
            OutOfDiskSpaceError: If the provider reports the disk is full
            CapturePermissionError: If the provider refuses for lack of permission
            CaptureError: For any other provider failure
        """

    @abstractmethod
    async def stop_capture(self) -> Optional[StopResult]:
        """Stop the live recording.

        Returns:
            The provider's stop result, or None if nothing was recording.
            The final file path arrives later as a CaptureStoppedEvent.

        Raises:
            CaptureError: If the provider fails to stop
        """

    @abstractmethod
    async def capture_highlight(
        self, highlight_id: str, offset_ms: int, duration_ms: int = 15000
    ) -> Optional[str]:
        """Mark a highlight by splitting the live recording.

        Returns:
            Synthesized highlight file name, or None if nothing is recording
        """

    @abstractmethod
    async def split_video(self) -> bool:
        """Split the live recording. False if nothing is recording."""

    @abstractmethod
    async def change_volume(self, audio_options: Dict[str, Any]) -> bool:
        """Change mic/game volume of the live recording. False if nothing is recording."""

    @abstractmethod
    def is_capturing(self) -> bool:
        """True while a recording is live."""

    @abstractmethod
    def recording_match_id(self) -> Optional[str]:
        """Match the live recording is correlated with, or None."""
