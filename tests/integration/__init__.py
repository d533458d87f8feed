"""Integration tests for Rematch Coach.

These tests drive the fully wired application over the simulated platform:
- Telemetry -> match tracking -> recording -> persisted history
- Settings changes flowing into capture
- Shutdown ordering
"""
