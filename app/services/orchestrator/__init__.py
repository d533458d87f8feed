"""Orchestrator module - Recording policy over the telemetry stream."""

from .telemetry_orchestrator import CycleState, PromptChoice, TelemetryOrchestrator

__all__ = ["CycleState", "PromptChoice", "TelemetryOrchestrator"]
