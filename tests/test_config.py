from pathlib import Path

import pytest

from configs.settings import DEFAULT_CONFIG_PATH, TelemetryConfig, SupportedGame, load_config
from configs.validator import validate_config
from exceptions import ConfigValidationError, InvalidConfigError


def test_load_config() -> None:
    config = load_config(DEFAULT_CONFIG_PATH)

    assert config.capture.video.width == 1920
    assert config.capture.video.max_kbps == 8000
    assert config.capture.game_audio.volume == 75
    assert config.capture.encoder.name == "X264"
    assert config.app.record_capacity == 100
    assert config.app.media_url_prefix == "overwolf://media/videos/"
    assert config.telemetry.scene_start_delay_s == 2.0
    assert config.rpc.host == "127.0.0.1"


def test_load_packaged_default() -> None:
    assert load_config().capture.video.fps == 30
    assert DEFAULT_CONFIG_PATH.name == "default.yaml"


def test_missing_sections_get_defaults(tmp_path: Path) -> None:
    path = tmp_path / "minimal.yaml"
    path.write_text(
        "capture:\n"
        "  video: {width: 1280, height: 720, fps: 60}\n"
        "  encoder: {name: X264}\n"
        "telemetry: {}\n"
    )
    config = load_config(path)

    assert config.capture.video.width == 1280
    assert config.app.data_dir == "data"
    assert config.rpc.port == 8765
    assert config.disk.critical_gb == 2.0


def test_invalid_value_rejected(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text(
        "capture:\n"
        "  video: {width: 10, height: 720, fps: 60}\n"
        "  encoder: {name: X264}\n"
        "telemetry: {}\n"
    )
    with pytest.raises(ConfigValidationError) as exc_info:
        load_config(path)
    assert any("width" in message for message in exc_info.value.validation_errors)


def test_missing_file_rejected(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigError):
        load_config(tmp_path / "nope.yaml")


def test_validate_requires_capture() -> None:
    with pytest.raises(ConfigValidationError):
        validate_config({"telemetry": {}})


def test_supported_games() -> None:
    any_game = TelemetryConfig()
    assert any_game.is_supported(123)
    assert any_game.features_for(123) == ("game_info", "match_info", "match")

    rematch = TelemetryConfig(supported_games=(SupportedGame(class_id=42, features=("match",)),))
    assert rematch.is_supported(42)
    assert not rematch.is_supported(7)
    assert rematch.features_for(42) == ("match",)
