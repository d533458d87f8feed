"""Centralized error event bus for system-wide error handling.

This module provides a publish-subscribe error event system that allows
components to report errors and other components to react to them.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from log_config.logger import get_logger

logger = get_logger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels."""

    INFO = "info"  # Informational, not really an error
    WARNING = "warning"  # Warning, operation continues
    ERROR = "error"  # Error occurred, operation may fail
    CRITICAL = "critical"  # Critical error, system may be unstable


class ErrorCategory(Enum):
    """Error categories for classification."""

    CAPTURE = "capture"
    TELEMETRY = "telemetry"
    STORAGE = "storage"
    DISK_SPACE = "disk_space"
    PERMISSION = "permission"
    MATCH = "match"
    INTERNAL = "internal"
    SYSTEM = "system"


_LOG_LEVELS = {
    ErrorSeverity.INFO: "INFO",
    ErrorSeverity.WARNING: "WARNING",
    ErrorSeverity.ERROR: "ERROR",
    ErrorSeverity.CRITICAL: "CRITICAL",
}


@dataclass
class ErrorEvent:
    """Error event with context information."""

    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    source: str
    timestamp: float = field(default_factory=time.time)
    exception: Optional[BaseException] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """String representation of error event."""
        exc_info = f" ({self.exception.__class__.__name__})" if self.exception else ""
        return f"[{self.severity.value.upper()}] {self.category.value}/{self.source}: {self.message}{exc_info}"


class ErrorEventBus:
    """Centralized error event bus for publish-subscribe error handling."""

    def __init__(self, max_history: int = 100):
        """Initialize error event bus.

        Args:
            max_history: Number of recent events kept for get_history()
        """
        self._subscribers: Dict[ErrorCategory, List[Callable[[ErrorEvent], None]]] = {}
        self._all_subscribers: List[Callable[[ErrorEvent], None]] = []
        self._event_history: List[ErrorEvent] = []
        self._max_history = max_history
        self._error_counts: Dict[ErrorCategory, int] = {}

    def subscribe(
        self, callback: Callable[[ErrorEvent], None], category: Optional[ErrorCategory] = None
    ) -> None:
        """Subscribe to error events.

        Args:
            callback: Function to call when error occurs
            category: Specific category to subscribe to, or None for all errors
        """
        callback_name = getattr(callback, '__name__', repr(callback))
        if category is None:
            self._all_subscribers.append(callback)
            logger.debug(f"Subscribed to all error events: {callback_name}")
        else:
            self._subscribers.setdefault(category, []).append(callback)
            logger.debug(f"Subscribed to {category.value} errors: {callback_name}")

    def unsubscribe(
        self, callback: Callable[[ErrorEvent], None], category: Optional[ErrorCategory] = None
    ) -> None:
        """Unsubscribe from error events.

        Args:
            callback: Function to unsubscribe
            category: Category to unsubscribe from, or None for all
        """
        if category is None:
            if callback in self._all_subscribers:
                self._all_subscribers.remove(callback)
        elif category in self._subscribers and callback in self._subscribers[category]:
            self._subscribers[category].remove(callback)

    def publish(self, event: ErrorEvent) -> None:
        """Publish error event to subscribers.

        Args:
            event: Error event to publish
        """
        self._event_history.append(event)
        if len(self._event_history) > self._max_history:
            self._event_history.pop(0)

        self._error_counts[event.category] = self._error_counts.get(event.category, 0) + 1

        logger.opt(exception=event.exception).log(_LOG_LEVELS[event.severity], str(event))

        # Snapshot so callbacks may (un)subscribe while being notified
        callbacks = self._subscribers.get(event.category, []).copy() + self._all_subscribers.copy()
        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                callback_name = getattr(callback, '__name__', repr(callback))
                logger.opt(exception=e).error(f"Error in event subscriber {callback_name}: {e}")

    def get_history(
        self, category: Optional[ErrorCategory] = None, limit: int = 100
    ) -> List[ErrorEvent]:
        """Get recent error history.

        Args:
            category: Filter by category, or None for all
            limit: Maximum number of events to return

        Returns:
            List of recent error events
        """
        history = self._event_history.copy()
        if category is not None:
            history = [e for e in history if e.category == category]
        return history[-limit:]

    def get_error_counts(self) -> Dict[ErrorCategory, int]:
        """Get error counts by category."""
        return self._error_counts.copy()

    def clear_history(self) -> None:
        """Clear error history and counts."""
        self._event_history.clear()
        self._error_counts.clear()
        logger.debug("Error history cleared")

    def report(
        self,
        category: ErrorCategory,
        severity: ErrorSeverity,
        message: str,
        source: str,
        exception: Optional[BaseException] = None,
        **metadata: Any,
    ) -> ErrorEvent:
        """Convenience wrapper that builds and publishes an ErrorEvent.

        Args:
            category: Error category
            severity: Error severity
            message: Error message
            source: Source component
            exception: Optional exception
            **metadata: Additional metadata

        Returns:
            The published event
        """
        event = ErrorEvent(
            category=category,
            severity=severity,
            message=message,
            source=source,
            exception=exception,
            metadata=metadata,
        )
        self.publish(event)
        return event


__all__ = [
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorEvent",
    "ErrorEventBus",
]
