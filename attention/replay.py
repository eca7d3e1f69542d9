"""Replay a recorded pose stream (JSON lines) through a tracking session."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import Any, Dict, Optional

from attention.config import ConfigError, STRATEGIES, get_config, set_config_path, with_overrides
from attention.progression import LevelUpEvent
from attention.session import TrackingSession
from attention.source import ReplayPoseSource

logger = logging.getLogger(__name__)


async def replay_file(path: str, strategy: Optional[str] = None, max_fps: Optional[float] = None) -> Dict[str, Any]:
	cfg = get_config()
	if strategy:
		cfg = with_overrides(cfg, "classifier", {"strategy": strategy})
	if max_fps is not None:
		cfg = replace(cfg, session=replace(cfg.session, max_fps=float(max_fps)))

	def _celebrate(ev: LevelUpEvent) -> None:
		logger.info("Level %d reached at frame %d", ev.level, ev.frame)

	session = TrackingSession(cfg, source=ReplayPoseSource.from_jsonl(path), on_level_up=_celebrate)
	session.launch()
	try:
		await session.wait()
	finally:
		await session.stop()
	return session.snapshot()


def main(argv: Optional[list[str]] = None) -> int:
	p = argparse.ArgumentParser(description="Replay a JSON-lines pose recording and print the session summary.")
	p.add_argument("path", help="Pose recording, one PoseFrame JSON object (or null) per line")
	p.add_argument("--config", default=None, help="Path to config.json (optional)")
	p.add_argument("--strategy", choices=STRATEGIES, default=None, help="Classifier strategy override")
	# Recordings replay as fast as possible unless a rate is given.
	p.add_argument("--fps", type=float, default=1000.0, help="Replay tick rate cap")
	p.add_argument("--debug", action="store_true", help="Enable debug logging.")
	args = p.parse_args(argv)

	if args.debug:
		logging.basicConfig(level=logging.DEBUG, format="%(levelname)s:%(name)s:%(message)s")
	else:
		logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")

	if args.config:
		set_config_path(args.config)

	try:
		summary = asyncio.run(replay_file(args.path, strategy=args.strategy, max_fps=args.fps))
	except (ConfigError, OSError, ValueError) as e:
		logger.error("Replay failed: %s", e)
		return 2
	summary.pop("pose", None)
	json.dump(summary, sys.stdout, indent=2)
	sys.stdout.write("\n")
	return 0


if __name__ == "__main__":
	raise SystemExit(main())
