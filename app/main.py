"""Rematch Coach entry point.

Usage:
    rematch-coach --demo          # Play one scripted match on the simulated platform
    rematch-coach                 # Serve the local RPC API over the simulated platform
    rematch-coach --config my.yaml --verbose
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from app.context import AppContext
from app.events.event_types import MatchPersistedEvent, RecordingPromptEvent
from configs.settings import DEFAULT_CONFIG_PATH, load_config
from exceptions import ConfigError
from log_config.logger import configure_file_logging, get_logger, set_console_level

logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rematch Coach match tracking and recording engine.")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH)
    parser.add_argument("--demo", action="store_true", help="run a scripted match and exit")
    parser.add_argument("--no-rpc", action="store_true", help="do not start the local RPC server")
    parser.add_argument("--data-dir", type=Path, default=None, help="override app.data_dir")
    parser.add_argument("--verbose", action="store_true", help="debug logging on the console")
    return parser.parse_args(argv)


async def run_demo(context: AppContext, step_delay_s: float = 0.05) -> None:
    """Drive one match through the simulated telemetry and print the saved record."""
    platform = context.platform
    if platform is None:
        raise RuntimeError("Demo requires the simulated platform")

    context.event_bus.subscribe(
        RecordingPromptEvent,
        lambda event: print(f"[prompt] record this {event.game_mode} match? ({event.trigger})"),
    )
    persisted: List[MatchPersistedEvent] = []
    context.event_bus.subscribe(MatchPersistedEvent, persisted.append)

    await context.game_watcher.check_once()
    telemetry = platform.telemetry

    async def step() -> None:
        await asyncio.sleep(step_delay_s)
        await context.orchestrator.drain()

    telemetry.push_info({"game_info": {"player_name": "DemoPlayer", "player_id": "demo-1", "scene": "lobby"}})
    telemetry.push_info({"game_info": {"game_mode": "Ranked"}})
    await step()
    telemetry.push_events("match_start")
    await step()

    script = [
        ("team_goal", 1, 0),
        ("opponent_goal", 1, 1),
        ("team_goal", 2, 1),
    ]
    for goal, left, right in script:
        telemetry.push_info({"match_info": {"score": f'{{"left_score": {left}, "right_score": {right}}}'}})
        telemetry.push_events(goal)
        await step()

    telemetry.push_info({"match_info": {"match_outcome": "victory"}})
    await step()
    telemetry.push_events("match_end")
    await context.tracker.wait_for_background()
    await context.event_bus.drain()

    for match in context.tracker.get_matches()[:1]:
        score = match.final_score
        print(
            f"{match.id}: {match.outcome.value if match.outcome else 'unknown'} "
            f"{score.left if score else 0}-{score.right if score else 0}, "
            f"{len(match.goals)} goals, video={match.video_path}"
        )
    logger.info(f"Demo finished ({len(persisted)} match persisted)")


async def serve(context: AppContext, serve_rpc: bool) -> None:
    await context.start(serve_rpc=serve_rpc)
    try:
        await asyncio.Event().wait()
    finally:
        await context.stop()


async def _run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    if args.data_dir is not None:
        config = replace(config, app=replace(config.app, data_dir=str(args.data_dir)))
    configure_file_logging(Path(config.app.log_dir))

    context = AppContext.simulated(config, persist=not args.demo)
    if args.demo:
        await run_demo(context)
        await context.stop()
    else:
        await serve(context, serve_rpc=not args.no_rpc)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if args.verbose:
        set_console_level("DEBUG")
    try:
        return asyncio.run(_run(args))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
