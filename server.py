"""
Attention Hero server: FastAPI app exposing tracking sessions over HTTP and
streaming per-frame progression to WebSocket clients.

Run with `python server.py [--config config.json] [--debug]`.
"""
import argparse
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app_state import AppState
from attention import __version__
from attention.config import get_config, set_config_path
from attention.source import get_pose_source
from routers import api_config, sessions, ws

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	state = AppState(cfg=get_config())
	state.manager = ws.manager
	state.session_lock = asyncio.Lock()
	state.source_factory = get_pose_source
	app.state.state = state
	try:
		yield
	finally:
		# Stop the tracking loop and release the camera/model.
		if state.session is not None:
			await state.session.stop()
			state.session = None


app = FastAPI(title="Attention Hero", version=__version__, lifespan=lifespan)
app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
app.include_router(sessions.router)
app.include_router(api_config.router)
app.include_router(ws.router)


@app.get("/")
async def index():
	return {"name": "attention-hero", "version": __version__}


def main(argv: Optional[list[str]] = None) -> int:
	p = argparse.ArgumentParser(description="Attention Hero tracking server")
	p.add_argument("--config", default=None, help="Path to config.json (optional)")
	p.add_argument("--host", default=None, help="Bind host (default from config)")
	p.add_argument("--port", type=int, default=None, help="Bind port (default from config)")
	p.add_argument("--debug", action="store_true", help="Enable debug logging.")
	args = p.parse_args(argv)

	if args.debug:
		logging.basicConfig(level=logging.DEBUG, format="%(levelname)s:%(name)s:%(message)s")
	else:
		logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")

	if args.config:
		set_config_path(args.config)
	cfg = get_config()
	host = args.host or cfg.server.host
	port = int(args.port or cfg.server.port)
	logger.info("Starting Attention Hero %s on %s:%d", __version__, host, port)
	uvicorn.run(app, host=host, port=port, log_level="debug" if args.debug else "info")
	return 0


if __name__ == "__main__":
	raise SystemExit(main())
