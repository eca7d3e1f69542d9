"""
Explicit app state: single source of truth for the runtime lifecycle.
Created in lifespan, attached to app.state.state; injected into routes via Depends(get_state).
"""
from typing import Any, Callable, Optional

from attention.config import AppConfig
from attention.session import TrackingSession
from attention.source import PoseSource


class AppState:
	"""
	Holds runtime state for the app. At most one tracking session is active;
	it is replaced on /session/start and dropped on /session/stop.
	"""

	# WebSocket broadcaster (routers.ws.ConnectionManager)
	manager: Any = None

	# Defaults for the next session; replaced via POST /config
	cfg: Optional[AppConfig] = None

	# Builds the pose source for a new session (tests swap this out)
	source_factory: Optional[Callable[[AppConfig], Optional[PoseSource]]] = None

	# Active session and the lock serialising start/stop
	session: Optional[TrackingSession] = None
	session_lock: Any = None

	def __init__(self, cfg: Optional[AppConfig] = None) -> None:
		self.cfg = cfg
