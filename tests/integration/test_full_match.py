"""End-to-end match over the wired AppContext and simulated platform."""

import asyncio
from pathlib import Path

from app.context import AppContext
from app.events.event_types import SettingsChangedEvent
from app.main import main, run_demo
from configs.settings import AppConfig, AppSection
from contracts import GoalType, Outcome, Score


def _config(tmp_path: Path) -> AppConfig:
    return AppConfig(app=AppSection(data_dir=str(tmp_path / "data"), log_dir=str(tmp_path / "logs")))


def test_demo_match_is_recorded_and_persisted(tmp_path, capsys) -> None:
    async def scenario():
        context = AppContext.simulated(_config(tmp_path))
        await run_demo(context, step_delay_s=0.01)
        matches = context.tracker.get_matches()
        clean = await context.stop()
        return context, matches, clean

    context, matches, clean = asyncio.run(scenario())

    assert clean is True
    assert len(matches) == 1
    record = matches[0]
    assert record.player_name == "DemoPlayer"
    assert record.game_mode == "Ranked"
    assert record.outcome is Outcome.VICTORY
    assert record.final_score == Score(2, 1)
    assert [goal.type for goal in record.goals] == [
        GoalType.TEAM_GOAL, GoalType.OPPONENT_GOAL, GoalType.TEAM_GOAL,
    ]
    assert record.video_path is not None
    assert not context.capture.is_capturing()
    assert not context.orchestrator.attached
    assert "victory 2-1, 3 goals" in capsys.readouterr().out


def test_history_persists_across_contexts(tmp_path) -> None:
    config = _config(tmp_path)

    async def play():
        context = AppContext.simulated(config, persist=True)
        await context.tracker.start_match({"player_name": "Ada"}, with_recording=False)
        await context.tracker.end_match(Outcome.DEFEAT, Score(0, 1))
        await context.stop()

    asyncio.run(play())

    reloaded = AppContext.simulated(config, persist=True)
    matches = reloaded.tracker.get_matches()
    assert [match.player_name for match in matches] == ["Ada"]
    assert matches[0].outcome is Outcome.DEFEAT


def test_quality_setting_reaches_capture(tmp_path) -> None:
    context = AppContext.simulated(_config(tmp_path))
    changes = []
    context.event_bus.subscribe(SettingsChangedEvent, changes.append)

    context.settings.update(recording_quality="720p")

    video = context.capture.settings.video
    assert (video.width, video.height) == (1280, 720)
    assert changes[0].settings.recording_quality == "720p"


def test_stop_during_recording_stops_capture(tmp_path) -> None:
    async def scenario():
        context = AppContext.simulated(_config(tmp_path))
        await context.tracker.start_match(None)
        capturing = context.capture.is_capturing()
        await context.stop()
        return context, capturing

    context, capturing = asyncio.run(scenario())

    assert capturing is True
    assert not context.capture.is_capturing()
    assert context.platform.capture.calls_to("stop") == [("stop", 1)]


def test_main_rejects_invalid_config(tmp_path) -> None:
    bad = tmp_path / "bad.yaml"
    bad.write_text("capture: {}\n")

    assert main(["--config", str(bad), "--demo"]) == 2
