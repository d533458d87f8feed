"""User-facing settings: recording policy, quality and duration."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from configs.app_state import AppStateStore
from configs.validator import user_settings_errors
from log_config.logger import get_logger

logger = get_logger(__name__)

SETTINGS_KEY = "rematchCoachSettings"

_KNOWN_KEYS = ("recordingMode", "recordingQuality", "recordingDuration")

QUALITY_RESOLUTIONS: Dict[str, Tuple[int, int]] = {
    "1080p": (1920, 1080),
    "720p": (1280, 720),
    "480p": (854, 480),
}


class RecordingMode(str, Enum):
    AUTO_RECORD = "auto"
    ASK_BEFORE_RECORDING = "alert"
    NEVER_RECORD = "disabled"


@dataclass(frozen=True)
class AppSettings:
    recording_mode: RecordingMode = RecordingMode.AUTO_RECORD
    recording_quality: str = "1080p"
    recording_duration: str = "60"

    def to_dict(self) -> Dict[str, str]:
        return {
            "recordingMode": self.recording_mode.value,
            "recordingQuality": self.recording_quality,
            "recordingDuration": self.recording_duration,
        }

    @property
    def resolution(self) -> Tuple[int, int]:
        return QUALITY_RESOLUTIONS.get(self.recording_quality, QUALITY_RESOLUTIONS["1080p"])


def migrate_settings(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Convert the legacy ``autoRecord``/``queueAlerts`` boolean pair into ``recordingMode``.

    Returns a new dict; input without the legacy pair is returned unchanged (copied).
    """
    data = dict(raw)
    if "autoRecord" in data and "queueAlerts" in data:
        if data["autoRecord"]:
            data["recordingMode"] = RecordingMode.AUTO_RECORD.value
        elif data["queueAlerts"]:
            data["recordingMode"] = RecordingMode.ASK_BEFORE_RECORDING.value
        else:
            data["recordingMode"] = RecordingMode.NEVER_RECORD.value
        del data["autoRecord"]
        del data["queueAlerts"]
        logger.info(f"Migrated legacy recording flags to mode '{data['recordingMode']}'")
    return data


def settings_from_dict(data: Dict[str, Any], base: Optional[AppSettings] = None) -> AppSettings:
    """Overlay recognised keys from ``data`` onto ``base``; invalid values keep the base value."""
    settings = base or AppSettings()
    errors = user_settings_errors({k: v for k, v in data.items() if k in _KNOWN_KEYS})
    bad_keys = {message.split(":", 1)[0].strip() for message in errors}
    for message in errors:
        logger.warning(f"Ignoring invalid setting {message}")

    if "recordingMode" in data and "recordingMode" not in bad_keys:
        settings = replace(settings, recording_mode=RecordingMode(data["recordingMode"]))
    if "recordingQuality" in data and "recordingQuality" not in bad_keys:
        settings = replace(settings, recording_quality=data["recordingQuality"])
    if "recordingDuration" in data and "recordingDuration" not in bad_keys:
        settings = replace(settings, recording_duration=data["recordingDuration"])
    return settings


SettingsListener = Callable[[AppSettings], None]


class SettingsManager:
    """Owns the process-wide AppSettings: load once, persist on every change."""

    def __init__(self, store: AppStateStore):
        self._store = store
        self._settings = AppSettings()
        self._listeners: List[SettingsListener] = []

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def recording_mode(self) -> RecordingMode:
        return self._settings.recording_mode

    def load(self) -> AppSettings:
        raw = self._store.get_item(SETTINGS_KEY)
        if isinstance(raw, dict):
            migrated = migrate_settings(raw)
            self._settings = settings_from_dict(migrated)
            if migrated != raw:
                self._save()
        elif raw is not None:
            logger.warning(f"Stored settings are not an object ({type(raw).__name__}), using defaults")
        logger.info(f"Settings loaded: {self._settings.to_dict()}")
        return self._settings

    def update(self, **changes: Any) -> AppSettings:
        """Apply user changes, e.g. ``update(recording_mode=RecordingMode.AUTO_RECORD)``."""
        if "recording_mode" in changes:
            changes["recording_mode"] = RecordingMode(changes["recording_mode"])
        new_settings = replace(self._settings, **changes)
        if new_settings == self._settings:
            return self._settings
        self._settings = new_settings
        self._save()
        logger.info(f"Settings changed: {self._settings.to_dict()}")
        for listener in list(self._listeners):
            try:
                listener(self._settings)
            except Exception as e:
                logger.error(f"Settings listener error: {e}")
        return self._settings

    def update_from_dict(self, data: Dict[str, Any]) -> AppSettings:
        candidate = settings_from_dict(migrate_settings(data), base=self._settings)
        return self.update(
            recording_mode=candidate.recording_mode,
            recording_quality=candidate.recording_quality,
            recording_duration=candidate.recording_duration,
        )

    def on_change(self, listener: SettingsListener) -> None:
        self._listeners.append(listener)

    def _save(self) -> None:
        self._store.set_item(SETTINGS_KEY, self._settings.to_dict())
