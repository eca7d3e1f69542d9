"""Session routes. Routes: /session/start, /session/stop, /session/status, /session/pose."""
import logging

from fastapi import APIRouter, Depends, HTTPException

from app_state import AppState
from attention.config import get_config, with_overrides
from attention.session import SessionStateError, TrackingSession
from deps import get_active_session, get_state
from schemas.requests import PosePushPayload, SessionStartPayload
from schemas.responses import SessionStatusResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["sessions"])


@router.post("/session/start", response_model=SessionStatusResponse)
async def session_start(payload: SessionStartPayload, state: AppState = Depends(get_state)):
	"""Start a tracking session with optional per-session config overrides."""
	async with state.session_lock:
		if state.session is not None and state.session.running:
			return {**state.session.snapshot(), "detail": "Session already running"}
		try:
			cfg = state.cfg or get_config()
			cfg = with_overrides(cfg, "classifier", payload.classifier)
			cfg = with_overrides(cfg, "progression", payload.progression)
			manager = state.manager
			session = TrackingSession(
				cfg,
				source=None,
				on_update=manager.broadcast_state if manager else None,
				on_level_up=manager.notify_level_up if manager else None,
				session_id=payload.session_id,
			)
			# Build the source only once the config is known to be valid.
			session.source = state.source_factory(cfg) if state.source_factory else None
		except (ValueError, OSError) as e:
			# Invalid config or replay source
			raise HTTPException(status_code=400, detail=str(e)) from e
		except RuntimeError as e:
			raise HTTPException(status_code=503, detail=f"Pose source unavailable: {e}") from e

		if session.source is not None:
			session.launch()
		else:
			session.start()
		state.session = session
		if manager:
			manager.log_to_clients(f"[Session] {session.session_id} started")
		return session.snapshot()


@router.post("/session/stop", response_model=SessionStatusResponse)
async def session_stop(state: AppState = Depends(get_state)):
	"""Stop the active session and return its final snapshot."""
	async with state.session_lock:
		session = state.session
		if session is None:
			return {"running": False}
		# Also clears a session whose loop already ended (replay exhausted, crash).
		await session.stop()
		state.session = None
		if state.manager:
			state.manager.log_to_clients(f"[Session] {session.session_id} stopped")
		return session.snapshot()


@router.get("/session/status", response_model=SessionStatusResponse)
async def session_status(state: AppState = Depends(get_state)):
	if state.session is None:
		return {"running": False}
	return state.session.snapshot()


@router.post("/session/pose", response_model=SessionStatusResponse)
async def session_pose(payload: PosePushPayload, session: TrackingSession = Depends(get_active_session)):
	"""
	Push one pose from an external estimator (e.g. a browser-side model) and
	process it as one tick. A null pose leaves the state unchanged.
	"""
	if session.source is not None:
		raise HTTPException(status_code=409, detail=f"Session is fed by {session.source.name()}; pushing is disabled")
	pose = payload.pose.to_pose_frame() if payload.pose is not None else None
	try:
		new_state = await session.push(pose)
	except SessionStateError as e:
		raise HTTPException(status_code=409, detail=str(e)) from e
	return {**session.snapshot(), "processed": new_state is not None}
