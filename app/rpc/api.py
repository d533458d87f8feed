"""Local RPC server exposing match operations to other windows and tools.

Loopback HTTP/JSON surface over the tracker, the orchestrator and the
user settings. Responses are wrapped in the versioned envelope from
``contracts.versioning``.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from aiohttp import web

from app.rpc.middleware import BadRequest, error_middleware, read_json, security_headers_middleware
from app.services.capture.interface import CaptureService
from app.services.orchestrator.telemetry_orchestrator import PromptChoice, TelemetryOrchestrator
from app.services.session.interface import MatchSessionTracker
from configs.settings import RpcConfig
from configs.user_settings import SettingsManager
from contracts import GoalType, Outcome, Score
from contracts.versioning import make_envelope
from log_config.logger import get_logger

logger = get_logger(__name__)

_LOOPBACK_HOSTS = {"127.0.0.1", "localhost", "::1"}
_DEFAULT_HISTORY_LIMIT = 100


def _ok(payload: Dict[str, Any], status: int = 200) -> web.Response:
    return web.json_response(make_envelope(payload), status=status)


def _conflict(message: str) -> web.Response:
    return web.json_response({"error": message}, status=409)


class CoachAPI:
    """HTTP/JSON API for the match engine."""

    def __init__(
        self,
        tracker: MatchSessionTracker,
        orchestrator: TelemetryOrchestrator,
        settings: SettingsManager,
        capture: Optional[CaptureService] = None,
        config: Optional[RpcConfig] = None,
    ) -> None:
        self._tracker = tracker
        self._orchestrator = orchestrator
        self._settings = settings
        self._capture = capture
        self._config = config or RpcConfig()
        self._start_time: Optional[float] = None
        self.app = web.Application(middlewares=[
            security_headers_middleware,
            error_middleware,
        ])
        self.runner: Optional[web.AppRunner] = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Configure API routes."""
        self.app.router.add_get("/health", self.handle_health)
        self.app.router.add_get("/api/match/current", self.handle_current_match)
        self.app.router.add_post("/api/match/start", self.handle_start_match)
        self.app.router.add_post("/api/match/goal", self.handle_add_goal)
        self.app.router.add_post("/api/match/end", self.handle_end_match)
        self.app.router.add_get("/api/matches", self.handle_list_matches)
        self.app.router.add_post("/api/prompt", self.handle_prompt)
        self.app.router.add_get("/api/settings", self.handle_get_settings)
        self.app.router.add_put("/api/settings", self.handle_put_settings)

    # =========================================================================
    # Route Handlers
    # =========================================================================

    async def handle_health(self, request: web.Request) -> web.Response:
        """GET /health - Liveness and a short status summary."""
        uptime = time.time() - self._start_time if self._start_time else 0.0
        return web.json_response({
            "status": "ok",
            "uptime_s": round(uptime, 1),
            "match_in_progress": self._tracker.get_current_match() is not None,
            "capturing": self._capture.is_capturing() if self._capture is not None else False,
            "telemetry_attached": self._orchestrator.attached,
        })

    async def handle_current_match(self, request: web.Request) -> web.Response:
        """GET /api/match/current - The current match or null."""
        match = self._tracker.get_current_match()
        return _ok({"match": match.to_dict() if match is not None else None})

    async def handle_start_match(self, request: web.Request) -> web.Response:
        """POST /api/match/start - Start a match from player info."""
        body = await read_json(request)
        player_info = {
            key: body[key] for key in ("player_name", "player_id", "game_mode") if body.get(key)
        }
        with_recording = body.get("with_recording", True)
        if not isinstance(with_recording, bool):
            raise BadRequest("with_recording must be a boolean")

        match = await self._tracker.start_match(player_info, with_recording=with_recording)
        if match is None:
            return _conflict("A match is already in progress")
        return _ok({"match": match.to_dict()}, status=201)

    async def handle_add_goal(self, request: web.Request) -> web.Response:
        """POST /api/match/goal - Append a goal to the current match."""
        body = await read_json(request)
        try:
            goal_type = GoalType(body.get("type"))
        except ValueError:
            raise BadRequest(f"type must be one of {[t.value for t in GoalType]}")
        score = Score.from_payload(body.get("score") if isinstance(body.get("score"), dict) else None)

        goal = await self._tracker.add_goal_event(goal_type, score)
        if goal is None:
            return _conflict("No match in progress")
        return _ok({"goal": goal.to_dict()}, status=201)

    async def handle_end_match(self, request: web.Request) -> web.Response:
        """POST /api/match/end - End and persist the current match."""
        body = await read_json(request)
        raw_outcome = body.get("outcome")
        outcome = Outcome.parse(raw_outcome)
        if raw_outcome is not None and outcome is None:
            raise BadRequest(f"outcome must be one of {[o.value for o in Outcome]}")
        raw_score = body.get("final_score")
        final_score = Score.from_payload(raw_score) if isinstance(raw_score, dict) else None

        record = await self._tracker.end_match(outcome, final_score)
        if record is None:
            return _conflict("No match in progress")
        return _ok({"match": record.to_dict()})

    async def handle_list_matches(self, request: web.Request) -> web.Response:
        """GET /api/matches?limit=N - Persisted history, most recent first."""
        try:
            limit = int(request.query.get("limit", _DEFAULT_HISTORY_LIMIT))
        except ValueError:
            raise BadRequest("limit must be an integer")
        matches = self._tracker.get_matches()[: max(0, limit)]
        return _ok({"matches": [m.to_dict() for m in matches], "count": len(matches)})

    async def handle_prompt(self, request: web.Request) -> web.Response:
        """POST /api/prompt - Answer the recording prompt."""
        body = await read_json(request)
        try:
            choice = PromptChoice(body.get("choice"))
        except ValueError:
            raise BadRequest(f"choice must be one of {[c.value for c in PromptChoice]}")
        await self._orchestrator.resolve_prompt(choice)
        return _ok({"choice": choice.value, "settings": self._settings.settings.to_dict()})

    async def handle_get_settings(self, request: web.Request) -> web.Response:
        """GET /api/settings - Current user settings."""
        return _ok({"settings": self._settings.settings.to_dict()})

    async def handle_put_settings(self, request: web.Request) -> web.Response:
        """PUT /api/settings - Update user settings (invalid values are ignored)."""
        body = await read_json(request)
        settings = self._settings.update_from_dict(body)
        return _ok({"settings": settings.to_dict()})

    # =========================================================================
    # Server Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start the API server."""
        if self._config.host not in _LOOPBACK_HOSTS:
            logger.warning(f"RPC server bound to non-loopback host {self._config.host}")
        self._start_time = time.time()
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        site = web.TCPSite(self.runner, self._config.host, self._config.port)
        await site.start()
        logger.info(f"RPC API started on http://{self._config.host}:{self._config.port}")

    async def stop(self) -> None:
        """Stop the API server."""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("RPC API stopped")


__all__ = ["CoachAPI"]
