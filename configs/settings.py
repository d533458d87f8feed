"""Configuration loading for Rematch Coach."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

from configs.validator import validate_config
from exceptions import InvalidConfigError
from log_config.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"


@dataclass(frozen=True)
class AppSection:
    data_dir: str = "data"
    log_dir: str = "logs"
    record_capacity: int = 100
    media_url_prefix: str = "overwolf://media/videos/"
    recordings_folder: str = "RematchCoach"


@dataclass(frozen=True)
class AudioSourceConfig:
    enable: bool = True
    volume: int = 100
    device_id: str = "default"


@dataclass(frozen=True)
class VideoConfig:
    width: int = 1920
    height: int = 1080
    fps: int = 30
    auto_calc_kbps: bool = True
    max_kbps: int = 8000
    buffer_length: int = 20000
    max_file_size_bytes: int = 500_000_000
    sub_folder_name: str = "Recordings"
    include_full_size_video: bool = False


@dataclass(frozen=True)
class EncoderConfig:
    name: str = "X264"
    preset: str = "VERYFAST"
    rate_control: str = "RC_CBR"
    keyframe_interval: int = 2


@dataclass(frozen=True)
class CaptureConfig:
    mic: AudioSourceConfig = field(default_factory=AudioSourceConfig)
    game_audio: AudioSourceConfig = field(default_factory=lambda: AudioSourceConfig(volume=75))
    video: VideoConfig = field(default_factory=VideoConfig)
    encoder: EncoderConfig = field(default_factory=EncoderConfig)
    cursor: str = "gameOnly"
    max_quota_gb: float = 2.0
    highlight_duration_ms: int = 10000


@dataclass(frozen=True)
class SupportedGame:
    class_id: int
    name: str = ""
    features: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TelemetryConfig:
    scene_start_delay_s: float = 2.0
    game_poll_interval_s: float = 5.0
    features: Tuple[str, ...] = ("game_info", "match_info", "match")
    supported_games: Tuple[SupportedGame, ...] = ()

    def is_supported(self, class_id: Optional[int]) -> bool:
        """An empty supported-games list accepts any running game."""
        if not self.supported_games:
            return True
        return any(game.class_id == class_id for game in self.supported_games)

    def features_for(self, class_id: Optional[int]) -> Tuple[str, ...]:
        for game in self.supported_games:
            if game.class_id == class_id and game.features:
                return game.features
        return self.features


@dataclass(frozen=True)
class DiskConfig:
    warning_gb: float = 20.0
    critical_gb: float = 2.0
    check_interval_s: float = 5.0


@dataclass(frozen=True)
class RpcConfig:
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 8765


@dataclass(frozen=True)
class AppConfig:
    app: AppSection = field(default_factory=AppSection)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    disk: DiskConfig = field(default_factory=DiskConfig)
    rpc: RpcConfig = field(default_factory=RpcConfig)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to configuration file (packaged default.yaml when None)

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    try:
        logger.info(f"Loading configuration from {path}")
        if not path.exists():
            raise InvalidConfigError(f"Configuration file not found: {path}")

        data = yaml.safe_load(path.read_text())
        if not isinstance(data, dict):
            raise InvalidConfigError(f"Configuration root must be a mapping: {path}")

        # Validate against JSON Schema (fills in defaults)
        validate_config(data)

        logger.debug("Parsing configuration sections")

    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration: {e}")
        raise InvalidConfigError(f"Failed to parse configuration file: {e}")

    try:
        capture_data = data["capture"]
        telemetry_data = data["telemetry"]

        capture = CaptureConfig(
            mic=AudioSourceConfig(**capture_data.get("mic", {})),
            game_audio=AudioSourceConfig(**{"volume": 75, **capture_data.get("game_audio", {})}),
            video=VideoConfig(**capture_data["video"]),
            encoder=EncoderConfig(**capture_data["encoder"]),
            cursor=capture_data.get("cursor", "gameOnly"),
            max_quota_gb=float(capture_data.get("max_quota_gb", 2.0)),
            highlight_duration_ms=int(capture_data.get("highlight_duration_ms", 10000)),
        )
        telemetry = TelemetryConfig(
            scene_start_delay_s=float(telemetry_data.get("scene_start_delay_s", 2.0)),
            game_poll_interval_s=float(telemetry_data.get("game_poll_interval_s", 5.0)),
            features=tuple(telemetry_data.get("features", TelemetryConfig.features)),
            supported_games=tuple(
                SupportedGame(
                    class_id=int(game["class_id"]),
                    name=game.get("name", ""),
                    features=tuple(game.get("features", ())),
                )
                for game in telemetry_data.get("supported_games", [])
            ),
        )

        config = AppConfig(
            app=AppSection(**data["app"]),
            capture=capture,
            telemetry=telemetry,
            disk=DiskConfig(**data["disk"]),
            rpc=RpcConfig(**data["rpc"]),
        )

        logger.info("Configuration loaded successfully")
        return config

    except KeyError as e:
        logger.error(f"Missing required configuration key: {e}")
        raise InvalidConfigError(f"Missing required configuration key: {e}")
    except (TypeError, ValueError) as e:
        logger.error(f"Invalid configuration value: {e}")
        raise InvalidConfigError(f"Invalid configuration value: {e}")
