"""Tests for TelemetryOrchestrator: recording policy, prompts, scene fallback and match flow."""

import asyncio

from app.events.error_bus import ErrorCategory
from app.events.event_types import CaptureStoppedEvent
from app.services.orchestrator.telemetry_orchestrator import CycleState, PromptChoice
from app.services.platform.interface import RunningGameInfo
from configs.user_settings import RecordingMode
from contracts import GoalType, Outcome, Score

GAME = RunningGameInfo(is_running=True, class_id=None, title="Rematch")


def score(left: int, right: int) -> dict:
    return {"match_info": {"score": f'{{"left_score": {left}, "right_score": {right}}}'}}


async def attached(make_stack, mode=RecordingMode.AUTO_RECORD, **kwargs):
    stack = make_stack(mode=mode, **kwargs)
    assert await stack.orchestrator.attach(GAME)
    return stack


def test_attach_sets_required_features(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack)
        again = await stack.orchestrator.attach(GAME)
        return stack, again

    stack, again = asyncio.run(scenario())

    assert again is True
    assert stack.orchestrator.attached
    assert stack.platform.telemetry.active
    assert stack.platform.telemetry.required_features == ["game_info", "match_info", "match"]


def test_attach_fails_when_features_rejected(make_stack) -> None:
    async def scenario():
        stack = make_stack()
        stack.platform.telemetry.accept_features = False
        return stack, await stack.orchestrator.attach(GAME)

    stack, ok = asyncio.run(scenario())

    assert ok is False
    assert not stack.orchestrator.attached
    assert not stack.platform.telemetry.active
    assert len(stack.error_bus.get_history(category=ErrorCategory.TELEMETRY)) == 1


def test_detach_is_idempotent(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack)
        stack.orchestrator.detach()
        stack.orchestrator.detach()
        return stack

    stack = asyncio.run(scenario())

    assert not stack.orchestrator.attached
    assert not stack.platform.telemetry.active


def test_auto_mode_starts_recorded_match(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack)
        telemetry = stack.platform.telemetry
        telemetry.push_info({"game_info": {"player_name": "Ada", "player_id": "p-1", "game_mode": "Ranked"}})
        telemetry.push_events("match_start")
        await stack.settle()
        return stack

    stack = asyncio.run(scenario())

    match = stack.tracker.get_current_match()
    assert (match.player_name, match.player_id, match.game_mode) == ("Ada", "p-1", "Ranked")
    assert stack.tracker.has_recording()
    assert stack.prompts == []
    assert stack.orchestrator.state == CycleState.RESOLVED


def test_never_mode_does_not_track(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack, mode=RecordingMode.NEVER_RECORD)
        telemetry = stack.platform.telemetry
        telemetry.push_info({"game_info": {"game_mode": "Ranked"}})
        telemetry.push_events("match_start", "team_goal")
        telemetry.push_info({"game_info": {"scene": "ingame"}})
        await asyncio.sleep(0.03)
        await stack.settle()
        return stack

    stack = asyncio.run(scenario())

    assert stack.tracker.get_current_match() is None
    assert stack.prompts == []
    assert stack.platform.capture.calls_to("start") == []


def test_ask_mode_prompts_once_on_game_mode(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack, mode=RecordingMode.ASK_BEFORE_RECORDING)
        telemetry = stack.platform.telemetry
        telemetry.push_info({"game_info": {"game_mode": "Ranked"}})
        telemetry.push_info({"game_info": {"game_mode": "Quick"}})
        telemetry.push_events("match_start")
        await stack.settle()
        return stack

    stack = asyncio.run(scenario())

    assert len(stack.prompts) == 1
    prompt = stack.prompts[0]
    assert (prompt.trigger, prompt.game_mode, prompt.match_id) == ("game_mode", "Ranked", None)
    assert stack.tracker.get_current_match() is not None
    assert not stack.tracker.has_recording()


def test_ask_mode_custom_game_prompts_at_match_start(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack, mode=RecordingMode.ASK_BEFORE_RECORDING)
        telemetry = stack.platform.telemetry
        telemetry.push_info({"game_info": {"game_mode": "Custom"}})
        assert stack.prompts == []
        telemetry.push_events("match_start")
        await stack.settle()
        return stack

    stack = asyncio.run(scenario())

    match = stack.tracker.get_current_match()
    assert len(stack.prompts) == 1
    assert stack.prompts[0].trigger == "match_start"
    assert stack.prompts[0].match_id == match.id


def test_start_now_attaches_recording_to_current_match(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack, mode=RecordingMode.ASK_BEFORE_RECORDING)
        stack.platform.telemetry.push_events("match_start")
        await stack.settle()
        await stack.orchestrator.resolve_prompt(PromptChoice.START_NOW)
        return stack

    stack = asyncio.run(scenario())

    assert stack.tracker.has_recording()
    assert len(stack.platform.capture.calls_to("start")) == 1


def test_start_now_before_match_records_next_match(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack, mode=RecordingMode.ASK_BEFORE_RECORDING)
        telemetry = stack.platform.telemetry
        telemetry.push_info({"game_info": {"game_mode": "Ranked"}})
        await stack.orchestrator.resolve_prompt(PromptChoice.START_NOW)
        opted_in = stack.orchestrator.pending_opt_in
        telemetry.push_events("match_start")
        await stack.settle()
        return stack, opted_in

    stack, opted_in = asyncio.run(scenario())

    assert opted_in is True
    assert stack.orchestrator.pending_opt_in is False
    assert stack.tracker.has_recording()


def test_skip_leaves_match_unrecorded(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack, mode=RecordingMode.ASK_BEFORE_RECORDING)
        stack.platform.telemetry.push_events("match_start")
        await stack.settle()
        await stack.orchestrator.resolve_prompt(PromptChoice.SKIP)
        return stack

    stack = asyncio.run(scenario())

    assert stack.tracker.get_current_match() is not None
    assert stack.platform.capture.calls_to("start") == []


def test_always_switches_to_auto_mode(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack, mode=RecordingMode.ASK_BEFORE_RECORDING)
        await stack.orchestrator.resolve_prompt("always")
        return stack

    stack = asyncio.run(scenario())

    assert stack.settings.recording_mode == RecordingMode.AUTO_RECORD
    assert stack.state.get_item("rematchCoachSettings")["recordingMode"] == "auto"


def test_lobby_resets_prompt_cycle(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack, mode=RecordingMode.ASK_BEFORE_RECORDING)
        telemetry = stack.platform.telemetry
        telemetry.push_info({"game_info": {"game_mode": "Ranked"}})
        telemetry.push_info({"game_info": {"scene": "lobby"}})
        telemetry.push_info({"game_info": {"game_mode": "Ranked"}})
        return stack

    stack = asyncio.run(scenario())

    assert [prompt.trigger for prompt in stack.prompts] == ["game_mode", "game_mode"]


def test_ingame_scene_starts_match_after_delay(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack, scene_delay_s=0.01)
        stack.platform.telemetry.push_info({"game_info": {"scene": "ingame"}})
        before = stack.tracker.get_current_match()
        await asyncio.sleep(0.03)
        await stack.settle()
        return stack, before

    stack, before = asyncio.run(scenario())

    assert before is None
    assert stack.tracker.get_current_match() is not None
    assert stack.tracker.has_recording()


def test_scene_fallback_rechecks_before_starting(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack, scene_delay_s=0.02)
        stack.platform.telemetry.push_info({"game_info": {"scene": "ingame"}})
        # Match created outside the policy before the deferred check fires
        await stack.tracker.start_match({"player_name": "Ada"})
        await asyncio.sleep(0.04)
        await stack.settle()
        return stack

    stack = asyncio.run(scenario())

    assert stack.orchestrator.state == CycleState.WAITING_FOR_MATCH
    assert len(stack.changes) == 1
    assert len(stack.platform.capture.calls_to("start")) == 1


def test_scene_fallback_starts_next_match_without_lobby(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack, scene_delay_s=0.01)
        telemetry = stack.platform.telemetry
        telemetry.push_info({"game_info": {"scene": "ingame"}})
        await asyncio.sleep(0.03)
        await stack.settle()
        first = stack.tracker.get_current_match()
        telemetry.push_info({"match_info": {"match_outcome": "victory"}})
        await stack.settle()
        telemetry.push_info({"game_info": {"scene": "ingame"}})
        await asyncio.sleep(0.03)
        await stack.settle()
        return stack, first, stack.tracker.get_current_match()

    stack, first, second = asyncio.run(scenario())

    assert first is not None
    assert second is not None
    assert second.id != first.id
    assert [record.record.id for record in stack.persisted] == [first.id]
    assert stack.tracker.has_recording()


def test_ask_mode_prompts_once_for_repeated_match_start(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack, mode=RecordingMode.ASK_BEFORE_RECORDING)
        telemetry = stack.platform.telemetry
        telemetry.push_events("match_start")
        telemetry.push_events("match_start")
        await stack.settle()
        return stack

    stack = asyncio.run(scenario())

    assert len(stack.prompts) == 1
    assert stack.prompts[0].trigger == "match_start"
    assert stack.prompts[0].match_id == stack.tracker.get_current_match().id
    assert [change.reason for change in stack.changes] == ["started"]
    assert stack.platform.capture.calls_to("start") == []


def test_detach_cancels_scene_check(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack, scene_delay_s=0.01)
        stack.platform.telemetry.push_info({"game_info": {"scene": "ingame"}})
        stack.orchestrator.detach()
        await asyncio.sleep(0.03)
        await stack.settle()
        return stack

    assert asyncio.run(scenario()).tracker.get_current_match() is None


def test_bad_score_keeps_last_good_score(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack)
        telemetry = stack.platform.telemetry
        telemetry.push_info(score(2, 1))
        telemetry.push_info({"match_info": {"score": "{not json"}})
        telemetry.push_info({"match_info": {"score": "[1, 2]"}})
        return stack

    assert asyncio.run(scenario()).orchestrator.last_score == Score(2, 1)


def test_full_match_flow(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack)
        telemetry = stack.platform.telemetry
        telemetry.push_info({"game_info": {"player_name": "Ada", "game_mode": "Ranked"}})
        telemetry.push_events("match_start")
        telemetry.push_info(score(1, 0))
        telemetry.push_events("team_goal")
        telemetry.push_info(score(1, 1))
        telemetry.push_events(("opponent_goal", ""), ("kill", ""), ("mystery", ""))
        await stack.settle()
        telemetry.push_info({**score(2, 1), "game_info": {}})
        telemetry.push_events("team_goal")
        telemetry.push_info({"match_info": {"match_outcome": "Victory"}})
        await stack.settle()
        telemetry.push_events("match_end")
        await asyncio.sleep(0.01)
        await stack.settle()
        return stack

    stack = asyncio.run(scenario())

    assert stack.tracker.get_current_match() is None
    assert stack.orchestrator.state == CycleState.WAITING_FOR_MATCH
    assert len(stack.persisted) == 1
    record = stack.store.list_all()[0]
    assert record.player_name == "Ada"
    assert record.outcome is Outcome.VICTORY
    assert record.final_score == Score(2, 1)
    assert [goal.type for goal in record.goals] == [
        GoalType.TEAM_GOAL, GoalType.OPPONENT_GOAL, GoalType.TEAM_GOAL,
    ]
    assert [goal.score for goal in record.goals] == [Score(1, 0), Score(1, 1), Score(2, 1)]
    assert record.video_path is not None


def test_unknown_outcome_ends_without_outcome(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack)
        stack.platform.telemetry.push_events("match_start")
        await stack.settle()
        stack.platform.telemetry.push_info({"match_info": {"match_outcome": "abandoned"}})
        await stack.settle()
        return stack

    stack = asyncio.run(scenario())

    assert stack.tracker.get_current_match() is None
    assert stack.store.list_all()[0].outcome is None


def test_outcome_and_goals_without_match_are_ignored(make_stack) -> None:
    async def scenario():
        stack = await attached(make_stack)
        telemetry = stack.platform.telemetry
        telemetry.push_events("team_goal")
        telemetry.push_info({"match_info": {"match_outcome": "victory"}})
        await stack.settle()
        return stack

    stack = asyncio.run(scenario())

    assert stack.persisted == []
    assert stack.changes == []


def test_recording_without_match_is_not_backfilled(make_stack) -> None:
    async def scenario():
        stack = make_stack()
        stack.event_bus.publish(CaptureStoppedEvent(match_id=None, file_path="loose.mp4"))
        await stack.settle()
        return stack

    stack = asyncio.run(scenario())

    assert stack.store.list_all() == []
