"""Custom exception classes for Rematch Coach."""

from __future__ import annotations

from typing import Optional


class RematchCoachError(Exception):
    """Base exception for all Rematch Coach errors."""

    pass


class CaptureError(RematchCoachError):
    """Base exception for capture-provider errors."""

    def __init__(self, message: str, provider_error: Optional[str] = None):
        self.provider_error = provider_error
        super().__init__(message)


class NotInGameError(CaptureError):
    """Raised when capture is requested while no supported game is running."""

    pass


class OutOfDiskSpaceError(CaptureError):
    """Raised when the capture provider runs out of disk space."""

    pass


class CapturePermissionError(CaptureError):
    """Raised when the capture provider refuses the request for lack of permission."""

    pass


class CaptureInProgressError(CaptureError):
    """Raised when the provider reports a capture is already running."""

    pass


class StorageError(RematchCoachError):
    """Raised when persisted state cannot be read or written."""

    pass


class SchemaVersionError(StorageError):
    """Raised when persisted data was written with an unsupported schema version."""

    pass


class TelemetryError(RematchCoachError):
    """Raised when the telemetry provider cannot be subscribed."""

    pass


class ConfigError(RematchCoachError):
    """Base exception for configuration errors."""

    pass


class InvalidConfigError(ConfigError):
    """Raised when configuration file is invalid or corrupted."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration fails schema validation."""

    def __init__(self, message: str, validation_errors: Optional[list] = None):
        self.validation_errors = validation_errors or []
        super().__init__(message)
