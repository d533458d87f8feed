"""Configuration validation using JSON Schema."""

from __future__ import annotations

from typing import Any, Dict

import jsonschema
from jsonschema import Draft7Validator, validators

from exceptions import ConfigValidationError
from log_config.logger import get_logger

logger = get_logger(__name__)

_AUDIO_SOURCE_SCHEMA = {
    "type": "object",
    "properties": {
        "enable": {"type": "boolean", "default": True},
        "volume": {"type": "integer", "minimum": 0, "maximum": 100},
        "device_id": {"type": "string", "default": "default"},
    },
}

# JSON Schema for default.yaml configuration
CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["capture", "telemetry"],
    "properties": {
        "app": {
            "type": "object",
            "default": {},
            "properties": {
                "data_dir": {"type": "string", "default": "data"},
                "log_dir": {"type": "string", "default": "logs"},
                "record_capacity": {"type": "integer", "minimum": 1, "maximum": 10000, "default": 100},
                "media_url_prefix": {"type": "string", "default": "overwolf://media/videos/"},
                "recordings_folder": {"type": "string", "minLength": 1, "default": "RematchCoach"},
            },
        },
        "capture": {
            "type": "object",
            "required": ["video", "encoder"],
            "properties": {
                "mic": _AUDIO_SOURCE_SCHEMA,
                "game_audio": _AUDIO_SOURCE_SCHEMA,
                "video": {
                    "type": "object",
                    "required": ["width", "height", "fps"],
                    "properties": {
                        "width": {"type": "integer", "minimum": 320, "maximum": 7680},
                        "height": {"type": "integer", "minimum": 240, "maximum": 4320},
                        "fps": {"type": "integer", "minimum": 10, "maximum": 240},
                        "auto_calc_kbps": {"type": "boolean", "default": True},
                        "max_kbps": {"type": "integer", "minimum": 500, "maximum": 100000},
                        "buffer_length": {"type": "integer", "minimum": 0},
                        "max_file_size_bytes": {"type": "integer", "minimum": 1},
                        "sub_folder_name": {"type": "string"},
                        "include_full_size_video": {"type": "boolean", "default": False},
                    },
                },
                "encoder": {
                    "type": "object",
                    "required": ["name"],
                    "properties": {
                        "name": {"type": "string"},
                        "preset": {"type": "string"},
                        "rate_control": {"type": "string"},
                        "keyframe_interval": {"type": "integer", "minimum": 1, "maximum": 10},
                    },
                },
                "cursor": {"type": "string", "enum": ["gameOnly", "desktopAndGame", "none"]},
                "max_quota_gb": {"type": "number", "minimum": 0},
                "highlight_duration_ms": {"type": "integer", "minimum": 1000, "maximum": 120000},
            },
        },
        "telemetry": {
            "type": "object",
            "properties": {
                "scene_start_delay_s": {"type": "number", "minimum": 0.0, "maximum": 60.0},
                "game_poll_interval_s": {"type": "number", "minimum": 0.1, "maximum": 300.0},
                "features": {"type": "array", "items": {"type": "string"}},
                "supported_games": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "required": ["class_id"],
                        "properties": {
                            "class_id": {"type": "integer"},
                            "name": {"type": "string"},
                            "features": {"type": "array", "items": {"type": "string"}},
                        },
                    },
                },
            },
        },
        "disk": {
            "type": "object",
            "default": {},
            "properties": {
                "warning_gb": {"type": "number", "minimum": 0},
                "critical_gb": {"type": "number", "minimum": 0},
                "check_interval_s": {"type": "number", "minimum": 0.1, "maximum": 600},
            },
        },
        "rpc": {
            "type": "object",
            "default": {},
            "properties": {
                "enabled": {"type": "boolean", "default": True},
                "host": {"type": "string", "default": "127.0.0.1"},
                "port": {"type": "integer", "minimum": 0, "maximum": 65535, "default": 8765},
            },
        },
    },
}

# Schema for the user settings object persisted in the app state store.
USER_SETTINGS_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "recordingMode": {"type": "string", "enum": ["auto", "alert", "disabled"]},
        "recordingQuality": {"type": "string", "enum": ["1080p", "720p", "480p"]},
        "recordingDuration": {"type": "string", "pattern": "^[0-9]+$"},
    },
}


def extend_with_default(validator_class):
    """Extend JSON Schema validator to set default values."""
    validate_properties = validator_class.VALIDATORS["properties"]

    def set_defaults(validator, properties, instance, schema):
        for prop, subschema in properties.items():
            if "default" in subschema:
                instance.setdefault(prop, subschema["default"])

        for error in validate_properties(validator, properties, instance, schema):
            yield error

    return validators.extend(validator_class, {"properties": set_defaults})


DefaultValidatingValidator = extend_with_default(Draft7Validator)


def _collect_errors(schema: Dict[str, Any], instance: Any) -> list[str]:
    validator = DefaultValidatingValidator(schema)
    error_messages = []
    for error in validator.iter_errors(instance):
        path = " -> ".join(str(p) for p in error.path) if error.path else "root"
        error_messages.append(f"{path}: {error.message}")
    return error_messages


def validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration against JSON Schema.

    Missing optional sections are filled in with their schema defaults.

    Args:
        config: Configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    try:
        error_messages = _collect_errors(CONFIG_SCHEMA, config)
    except jsonschema.exceptions.SchemaError as e:
        logger.error(f"Invalid schema: {e}")
        raise ConfigValidationError(f"Invalid schema definition: {e}")

    if error_messages:
        logger.error(f"Configuration validation failed with {len(error_messages)} errors")
        for msg in error_messages:
            logger.error(f"  - {msg}")

        raise ConfigValidationError(
            f"Configuration validation failed with {len(error_messages)} error(s). See logs for details.",
            validation_errors=error_messages,
        )

    logger.info("Configuration validation passed")


def user_settings_errors(settings: Dict[str, Any]) -> list[str]:
    """Return validation messages for a user settings object (empty when valid)."""
    return _collect_errors(USER_SETTINGS_SCHEMA, settings)


__all__ = [
    "validate_config",
    "user_settings_errors",
    "CONFIG_SCHEMA",
    "USER_SETTINGS_SCHEMA",
]
