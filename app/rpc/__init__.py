"""Local RPC surface (aiohttp) for match operations."""

from app.rpc.api import CoachAPI

__all__ = ["CoachAPI"]
