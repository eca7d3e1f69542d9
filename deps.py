"""
FastAPI dependencies. Use Depends(get_state) in route handlers to receive AppState.
"""
from fastapi import Depends, HTTPException, Request

from app_state import AppState
from attention.session import TrackingSession


def get_state(request: Request) -> AppState:
	"""Return the app state instance attached in lifespan."""
	return request.app.state.state


def get_active_session(state: AppState = Depends(get_state)) -> TrackingSession:
	"""The running session, or 409 when none is active."""
	if state.session is None or not state.session.running:
		raise HTTPException(status_code=409, detail="No active session")
	return state.session
