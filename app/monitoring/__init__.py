"""Monitoring infrastructure for resources used while recording."""

from app.monitoring.disk_monitor import DiskSpaceMonitor, DiskStatus

__all__ = [
    "DiskSpaceMonitor",
    "DiskStatus",
]
