"""Tests for the bounded, most-recent-first match record store."""

import asyncio
import json
from pathlib import Path

import pytest

from app.services.records.implementation import RECORDS_KEY, RECORDS_SCHEMA_KEY, MatchRecordStoreImpl
from configs.app_state import AppStateStore, state_path
from contracts import GoalEvent, GoalType, MatchSession, Outcome, Score
from contracts.versioning import RECORD_SCHEMA_VERSION
from exceptions import SchemaVersionError


def _match(index: int, **fields) -> MatchSession:
    return MatchSession(id=f"match_{index}", start_time=1000 * index, end_time=1000 * index + 500, **fields)


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        MatchRecordStoreImpl(AppStateStore(persist=False), capacity=0)


def test_append_is_most_recent_first_and_bounded() -> None:
    async def scenario():
        store = MatchRecordStoreImpl(AppStateStore(persist=False))
        for index in range(101):
            await store.append(_match(index))
        return store

    store = asyncio.run(scenario())

    records = store.list_all()
    assert len(store) == 100
    assert records[0].id == "match_100"
    assert records[-1].id == "match_1"
    assert store.get("match_0") is None


def test_append_stores_a_snapshot() -> None:
    async def scenario():
        store = MatchRecordStoreImpl(AppStateStore(persist=False))
        match = _match(1)
        await store.append(match)
        match.goals.append(GoalEvent(timestamp=1, type=GoalType.TEAM_GOAL, game_time=1, score=Score(1, 0)))
        match.video_path = "changed.mp4"
        return store

    stored = asyncio.run(scenario()).get("match_1")

    assert stored.goals == []
    assert stored.video_path is None


def test_list_all_returns_copies() -> None:
    async def scenario():
        store = MatchRecordStoreImpl(AppStateStore(persist=False))
        await store.append(_match(1))
        return store

    store = asyncio.run(scenario())
    store.list_all()[0].video_path = "mutated.mp4"

    assert store.get("match_1").video_path is None


def test_patch_updates_existing_record() -> None:
    async def scenario():
        state = AppStateStore(persist=False)
        store = MatchRecordStoreImpl(state)
        await store.append(_match(1))
        await store.append(_match(2))
        patched = await store.patch("match_1", video_path="overwolf://media/videos/a.mp4")
        missing = await store.patch("match_9", video_path="x.mp4")
        return state, store, patched, missing

    state, store, patched, missing = asyncio.run(scenario())

    assert patched is True
    assert missing is False
    assert store.get("match_1").video_path == "overwolf://media/videos/a.mp4"
    assert state.get_item(RECORDS_KEY)[1]["videoPath"] == "overwolf://media/videos/a.mp4"
    assert [record.id for record in store.list_all()] == ["match_2", "match_1"]


def test_patch_rejects_unknown_fields() -> None:
    async def scenario():
        store = MatchRecordStoreImpl(AppStateStore(persist=False))
        await store.append(_match(1))
        with pytest.raises(ValueError):
            await store.patch("match_1", colour="red")
        with pytest.raises(ValueError):
            await store.patch("match_1", id="other")

    asyncio.run(scenario())


def test_records_survive_restart(tmp_path: Path) -> None:
    async def write():
        store = MatchRecordStoreImpl(AppStateStore(tmp_path))
        await store.append(_match(1, outcome=Outcome.VICTORY, final_score=Score(3, 1)))

    asyncio.run(write())

    reloaded = MatchRecordStoreImpl(AppStateStore(tmp_path)).list_all()
    assert len(reloaded) == 1
    assert reloaded[0].outcome is Outcome.VICTORY
    assert reloaded[0].final_score == Score(3, 1)
    on_disk = json.loads(state_path(tmp_path).read_text())
    assert on_disk[RECORDS_KEY][0]["finalScore"] == {"left": 3, "right": 1}
    assert on_disk[RECORDS_SCHEMA_KEY] == RECORD_SCHEMA_VERSION


def test_unreadable_history_is_tolerated() -> None:
    state = AppStateStore(persist=False)
    state.set_item(RECORDS_KEY, [
        {"id": "match_1", "startTime": 1000},
        {"startTime": "no id"},
        "garbage",
        {"id": "match_2", "startTime": 2000, "goals": [{"timestamp": 1, "type": "own_goal"}]},
    ])

    store = MatchRecordStoreImpl(state)

    assert [record.id for record in store.list_all()] == ["match_1"]


def test_non_list_history_reads_as_empty() -> None:
    state = AppStateStore(persist=False)
    state.set_item(RECORDS_KEY, {"oops": True})

    assert MatchRecordStoreImpl(state).list_all() == []


def test_concurrent_writes_keep_every_record() -> None:
    async def scenario():
        state = AppStateStore(persist=False)
        store = MatchRecordStoreImpl(state, capacity=10)
        await asyncio.gather(*(store.append(_match(index)) for index in range(5)))
        return state

    state = asyncio.run(scenario())

    assert len(state.get_item(RECORDS_KEY)) == 5


def test_unversioned_history_is_loaded_and_stamped() -> None:
    async def scenario():
        state = AppStateStore(persist=False)
        state.set_item(RECORDS_KEY, [_match(1).to_dict()])
        store = MatchRecordStoreImpl(state)
        await store.append(_match(2))
        return state, store

    state, store = asyncio.run(scenario())

    assert [record.id for record in store.list_all()] == ["match_2", "match_1"]
    assert state.get_item(RECORDS_SCHEMA_KEY) == RECORD_SCHEMA_VERSION


def test_newer_history_is_never_overwritten(tmp_path: Path) -> None:
    state = AppStateStore(tmp_path)
    state.set_item(RECORDS_KEY, [{"id": "match_9", "startTime": 9000, "laps": []}])
    state.set_item(RECORDS_SCHEMA_KEY, RECORD_SCHEMA_VERSION + 1)

    async def scenario():
        store = MatchRecordStoreImpl(AppStateStore(tmp_path))
        with pytest.raises(SchemaVersionError):
            await store.append(_match(1))
        return store

    store = asyncio.run(scenario())

    assert store.list_all() == []
    assert store.writable is False
    on_disk = json.loads(state_path(tmp_path).read_text())
    assert on_disk[RECORDS_KEY] == [{"id": "match_9", "startTime": 9000, "laps": []}]
    assert on_disk[RECORDS_SCHEMA_KEY] == RECORD_SCHEMA_VERSION + 1
