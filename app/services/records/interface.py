"""MatchRecordStore interface for persisted match history.

Responsibility: Keep a bounded, most-recent-first list of finished matches
and patch individual records by id.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from contracts import MatchSession


class MatchRecordStore(ABC):
    """Abstract interface for the match record store.

    Records are returned as independent copies; mutating them does not
    change the store.
    """

    @abstractmethod
    async def append(self, record: MatchSession) -> None:
        """Insert ``record`` at the front, evicting the oldest beyond capacity.

        Raises:
            StorageError: If the backing file cannot be written, or the stored
                history has a newer schema (SchemaVersionError)
        """

    @abstractmethod
    async def patch(self, match_id: str, **fields: Any) -> bool:
        """Update fields of the record with ``match_id`` (e.g. ``video_path=...``).

        Returns:
            True if a record was patched, False if no record has that id

        Raises:
            StorageError: If the backing file cannot be written
        """

    @abstractmethod
    def list_all(self) -> List[MatchSession]:
        """All records, most recent first."""

    @abstractmethod
    def get(self, match_id: str) -> Optional[MatchSession]:
        """Record with ``match_id`` or None."""
