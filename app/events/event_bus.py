"""EventBus for service communication on a single asyncio loop.

The EventBus provides a publish-subscribe pattern for decoupled service communication.
Services publish typed events, and other services subscribe with type-safe handlers.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Type, TypeVar, Union

from app.events.error_bus import ErrorCategory, ErrorEventBus, ErrorSeverity
from log_config.logger import get_logger

logger = get_logger(__name__)

# Type variables for type-safe event handling
EventType = TypeVar('EventType')
EventHandler = Callable[[EventType], Union[None, Awaitable[None]]]


class EventBus:
    """Event bus for service communication.

    Features:
    - Type-safe publish/subscribe
    - Error isolation (handler errors don't crash bus)
    - Synchronous delivery for plain handlers
    - Coroutine handlers are scheduled as tasks on the running loop

    Concurrency:
        All calls happen on the event loop thread; there is no locking.
        publish() never awaits, so publishers keep their ordering guarantees.
        Use drain() to wait until scheduled coroutine handlers have finished.

    Example:
        ```python
        bus = EventBus()

        async def handle_stopped(event: CaptureStoppedEvent):
            await tracker.update_match_video_path(event.match_id, event.file_path)

        bus.subscribe(CaptureStoppedEvent, handle_stopped)
        bus.publish(CaptureStoppedEvent(match_id="match_1", file_path="a.mp4"))
        await bus.drain()
        ```
    """

    def __init__(self, error_bus: Optional[ErrorEventBus] = None):
        """Initialize event bus.

        Args:
            error_bus: Where handler failures are reported (optional)
        """
        self._subscribers: Dict[Type, List[EventHandler]] = {}
        self._event_count: Dict[Type, int] = {}
        self._pending: Set[asyncio.Task] = set()
        self._error_bus = error_bus
        self._start_time = time.time()

        logger.info("EventBus initialized")

    def subscribe(self, event_type: Type[EventType], handler: EventHandler) -> None:
        """Register handler for event type.

        Args:
            event_type: The event class to subscribe to (e.g., MatchPersistedEvent)
            handler: Callback (plain function or coroutine function) that takes the event
        """
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
            self._event_count.setdefault(event_type, 0)

        self._subscribers[event_type].append(handler)
        logger.debug(f"Subscribed handler to {event_type.__name__} "
                     f"({len(self._subscribers[event_type])} total subscribers)")

    def unsubscribe(self, event_type: Type[EventType], handler: EventHandler) -> bool:
        """Unregister handler for event type.

        Returns:
            True if handler was found and removed, False otherwise
        """
        if event_type not in self._subscribers:
            return False

        try:
            self._subscribers[event_type].remove(handler)
            logger.debug(f"Unsubscribed handler from {event_type.__name__} "
                         f"({len(self._subscribers[event_type])} remaining)")
            return True
        except ValueError:
            return False

    def publish(self, event: EventType) -> None:
        """Publish event to all subscribers.

        Plain handlers are called immediately, in subscription order.
        Coroutine handlers are scheduled as tasks. If a handler raises, the
        error is logged and reported, and other handlers still execute.

        Args:
            event: Event instance to publish
        """
        event_type = type(event)
        handlers = self._subscribers.get(event_type, []).copy()
        self._event_count[event_type] = self._event_count.get(event_type, 0) + 1

        if not handlers:
            logger.debug(f"Published {event_type.__name__} with no subscribers")
            return

        logger.debug(f"Publishing {event_type.__name__} to {len(handlers)} subscribers")

        failed_handlers = 0
        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    self._schedule(event_type, handler, result)
            except Exception as e:
                failed_handlers += 1
                self._report_failure(event_type, handler, e)

        if failed_handlers > 0:
            logger.warning(f"{failed_handlers}/{len(handlers)} handlers failed for {event_type.__name__}")

    async def drain(self) -> None:
        """Wait for all scheduled coroutine handlers (including ones they schedule)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def get_subscriber_count(self, event_type: Type[EventType]) -> int:
        """Get number of subscribers for an event type."""
        return len(self._subscribers.get(event_type, []))

    def get_stats(self) -> Dict[str, Any]:
        """Get event bus statistics.

        Returns:
            Dict with statistics:
            - event_types: Number of event types registered
            - total_subscribers: Total number of subscriptions
            - event_counts: Dict of event_type -> publish count
            - pending_handlers: Coroutine handlers still running
            - uptime_seconds: Time since bus creation
        """
        return {
            "event_types": len(self._subscribers),
            "total_subscribers": sum(len(handlers) for handlers in self._subscribers.values()),
            "event_counts": {
                event_type.__name__: count
                for event_type, count in self._event_count.items()
            },
            "pending_handlers": len(self._pending),
            "uptime_seconds": time.time() - self._start_time,
        }

    def clear_all_subscribers(self) -> None:
        """Remove all subscribers (useful for testing).

        Warning: This will break all event communication. Only use for cleanup.
        """
        self._subscribers.clear()
        self._event_count.clear()
        logger.warning("Cleared all EventBus subscribers")

    def _schedule(self, event_type: Type, handler: EventHandler, awaitable: Awaitable[None]) -> None:
        async def _run() -> None:
            try:
                await awaitable
            except Exception as e:
                self._report_failure(event_type, handler, e)

        task = asyncio.ensure_future(_run())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _report_failure(self, event_type: Type, handler: EventHandler, error: Exception) -> None:
        handler_name = getattr(handler, "__name__", repr(handler))
        logger.opt(exception=error).error(
            f"Event handler error for {event_type.__name__}: "
            f"{error.__class__.__name__}: {error}"
        )
        if self._error_bus is None:
            return
        try:
            self._error_bus.report(
                category=ErrorCategory.INTERNAL,
                severity=ErrorSeverity.WARNING,
                message=f"Event handler failed: {error}",
                source="EventBus",
                exception=error,
                event=event_type.__name__,
                handler=handler_name,
            )
        except Exception as report_error:
            logger.error(f"Could not report handler failure: {report_error}")

    def __repr__(self) -> str:
        """String representation of EventBus state."""
        stats = self.get_stats()
        return (f"EventBus(event_types={stats['event_types']}, "
                f"subscribers={stats['total_subscribers']}, "
                f"uptime={stats['uptime_seconds']:.1f}s)")
