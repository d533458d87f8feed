"""Service layer for Rematch Coach.

This module defines the service interfaces that separate concerns into
clear, testable components with single responsibilities:

├── platform/      - Boundary to the overlay runtime (game status, telemetry, capture)
├── capture/       - Recording session against the capture provider
├── records/       - Persisted, bounded match history
├── session/       - The current match and its lifecycle
└── orchestrator/  - Recording policy over the telemetry stream

Each service module contains:
- interface.py: Abstract base class defining the contract
- implementation.py: Concrete implementation
"""

from .capture import CaptureService, CaptureSessionManager
from .records import MatchRecordStore, MatchRecordStoreImpl
from .session import MatchSessionTracker, MatchSessionTrackerImpl
from .orchestrator import PromptChoice, TelemetryOrchestrator

__all__ = [
    # Capture service
    "CaptureService",
    "CaptureSessionManager",
    # Records service
    "MatchRecordStore",
    "MatchRecordStoreImpl",
    # Session service
    "MatchSessionTracker",
    "MatchSessionTrackerImpl",
    # Orchestrator
    "PromptChoice",
    "TelemetryOrchestrator",
]
