"""Stream settings handed to the capture provider."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Optional

from configs.settings import CaptureConfig
from configs.user_settings import QUALITY_RESOLUTIONS


@dataclass
class AudioSettings:
    enable: bool = True
    volume: int = 100
    device_id: str = "default"


@dataclass
class VideoSettings:
    width: int = 1920
    height: int = 1080
    fps: int = 30
    auto_calc_kbps: bool = True
    max_kbps: int = 8000
    buffer_length: int = 20000
    max_file_size_bytes: int = 500_000_000
    sub_folder_name: str = "Recordings"
    include_full_size_video: bool = False


@dataclass
class EncoderSettings:
    name: str = "X264"
    preset: str = "VERYFAST"
    rate_control: str = "RC_CBR"
    keyframe_interval: int = 2


@dataclass
class StreamSettings:
    """Everything the provider needs to start one recording."""

    mic: AudioSettings = field(default_factory=AudioSettings)
    game: AudioSettings = field(default_factory=lambda: AudioSettings(volume=75))
    video: VideoSettings = field(default_factory=VideoSettings)
    encoder: EncoderSettings = field(default_factory=EncoderSettings)
    cursor: str = "gameOnly"
    max_quota_gb: float = 2.0

    @classmethod
    def from_config(cls, config: CaptureConfig, quality: Optional[str] = None) -> "StreamSettings":
        """Build defaults from the capture config; ``quality`` ("720p", ...) overrides the resolution."""
        video = VideoSettings(**asdict(config.video))
        if quality is not None and quality in QUALITY_RESOLUTIONS:
            video.width, video.height = QUALITY_RESOLUTIONS[quality]
        return cls(
            mic=AudioSettings(**asdict(config.mic)),
            game=AudioSettings(**asdict(config.game_audio)),
            video=video,
            encoder=EncoderSettings(**asdict(config.encoder)),
            cursor=config.cursor,
            max_quota_gb=config.max_quota_gb,
        )

    def copy(self) -> "StreamSettings":
        return replace(
            self,
            mic=replace(self.mic),
            game=replace(self.game),
            video=replace(self.video),
            encoder=replace(self.encoder),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Provider wire layout."""
        return {
            "audio": {
                "mic": {
                    "volume": self.mic.volume,
                    "enable": self.mic.enable,
                    "device_id": self.mic.device_id,
                },
                "game": {
                    "volume": self.game.volume,
                    "enable": self.game.enable,
                    "device_id": self.game.device_id,
                },
            },
            "video": {
                "width": self.video.width,
                "height": self.video.height,
                "fps": self.video.fps,
                "auto_calc_kbps": self.video.auto_calc_kbps,
                "max_kbps": self.video.max_kbps,
                "buffer_length": self.video.buffer_length,
                "max_file_size_bytes": self.video.max_file_size_bytes,
                "sub_folder_name": self.video.sub_folder_name,
                "include_full_size_video": self.video.include_full_size_video,
                "override_overwolf_setting": False,
            },
            "encoder": {
                "name": self.encoder.name,
                "config": {
                    "preset": self.encoder.preset,
                    "rate_control": self.encoder.rate_control,
                    "keyframe_interval": self.encoder.keyframe_interval,
                },
            },
            "cursor": self.cursor,
            "quota": {"max_quota_gb": self.max_quota_gb, "excluded_directories": []},
        }
