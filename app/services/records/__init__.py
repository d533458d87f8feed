"""Records service module - Persisted, bounded match history."""

from .interface import MatchRecordStore
from .implementation import RECORDS_KEY, MatchRecordStoreImpl

__all__ = ["MatchRecordStore", "MatchRecordStoreImpl", "RECORDS_KEY"]
