"""MatchRecordStore backed by the JSON app state file."""

from __future__ import annotations

import asyncio
from dataclasses import fields as dataclass_fields
from typing import Any, List, Optional

from app.services.records.interface import MatchRecordStore
from configs.app_state import AppStateStore
from contracts import MatchSession
from contracts.versioning import RECORD_SCHEMA_VERSION, check_record_schema
from exceptions import SchemaVersionError
from log_config.logger import get_logger

logger = get_logger(__name__)

RECORDS_KEY = "rematch_matches"
RECORDS_SCHEMA_KEY = "rematch_matches_schema"
DEFAULT_CAPACITY = 100

_PATCHABLE = {f.name for f in dataclass_fields(MatchSession)} - {"id"}


class MatchRecordStoreImpl(MatchRecordStore):
    """Most-recent-first match history under a single key.

    The in-memory list is authoritative once loaded; every mutation happens
    synchronously and the whole list is then written under a lock, so
    writes land in mutation order.
    """

    def __init__(self, state: AppStateStore, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._state = state
        self._capacity = capacity
        self._records: Optional[List[MatchSession]] = None
        self._locked_reason: Optional[str] = None
        self._write_lock = asyncio.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def _loaded(self) -> List[MatchSession]:
        if self._records is None:
            self._records = self._read()
        return self._records

    @property
    def writable(self) -> bool:
        """False when the stored history belongs to a newer schema and must not be overwritten."""
        self._loaded()
        return self._locked_reason is None

    def _read(self) -> List[MatchSession]:
        try:
            check_record_schema(self._state.get_item(RECORDS_SCHEMA_KEY))
        except SchemaVersionError as e:
            self._locked_reason = str(e)
            logger.error(f"{e}; history not loaded and will not be overwritten")
            return []

        raw = self._state.get_item(RECORDS_KEY, [])
        if not isinstance(raw, list):
            logger.error(f"Stored match history is not a list ({type(raw).__name__}), starting empty")
            return []

        records = []
        for index, item in enumerate(raw):
            try:
                records.append(MatchSession.from_dict(item))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping unreadable match record #{index}: {e}")
        logger.info(f"Loaded {len(records)} match records")
        return records[: self._capacity]

    async def append(self, record: MatchSession) -> None:
        records = self._loaded()
        if self._locked_reason is not None:
            raise SchemaVersionError(f"Cannot save match {record.id}: {self._locked_reason}")
        records.insert(0, record.snapshot())
        evicted = len(records) - self._capacity
        if evicted > 0:
            del records[self._capacity:]
            logger.debug(f"Evicted {evicted} oldest match record(s)")
        logger.info(f"Match {record.id} saved ({len(records)} in history)")
        await self._write()

    async def patch(self, match_id: str, **fields: Any) -> bool:
        unknown = set(fields) - _PATCHABLE
        if unknown:
            raise ValueError(f"Cannot patch unknown match fields: {sorted(unknown)}")

        record = next((r for r in self._loaded() if r.id == match_id), None)
        if record is None:
            logger.debug(f"No stored match {match_id} to patch")
            return False
        for name, value in fields.items():
            setattr(record, name, value)
        logger.info(f"Match {match_id} updated: {sorted(fields)}")
        await self._write()
        return True

    def list_all(self) -> List[MatchSession]:
        return [record.snapshot() for record in self._loaded()]

    def get(self, match_id: str) -> Optional[MatchSession]:
        for record in self._loaded():
            if record.id == match_id:
                return record.snapshot()
        return None

    def __len__(self) -> int:
        return len(self._loaded())

    async def _write(self) -> None:
        async with self._write_lock:
            # Serialize the latest list, which already includes later mutations
            payload = [record.to_dict() for record in self._loaded()]
            await self._state.update_async({
                RECORDS_KEY: payload,
                RECORDS_SCHEMA_KEY: RECORD_SCHEMA_VERSION,
            })
