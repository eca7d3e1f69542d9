"""Configuration API. Routes: GET /config, POST /config."""
import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from app_state import AppState
from attention.config import ConfigError, get_config, validate_config, with_overrides
from deps import get_state
from schemas.requests import ConfigUpdatePayload

logger = logging.getLogger(__name__)
router = APIRouter(tags=["config"])


@router.get("/config")
async def read_config(state: AppState = Depends(get_state)):
	"""Return the defaults the next session will start with."""
	cfg = state.cfg or get_config()
	out = asdict(cfg)
	out["classifier"]["vertical_band"] = list(cfg.classifier.vertical_band)
	return out


@router.post("/config")
async def update_config(payload: ConfigUpdatePayload, state: AppState = Depends(get_state)):
	"""
	Update session defaults. The running session keeps its own config; changes
	apply from the next /session/start. Invalid values are rejected, never clamped.
	"""
	cfg = state.cfg or get_config()
	try:
		for section in ("classifier", "progression", "session"):
			cfg = with_overrides(cfg, section, getattr(payload, section))
		validate_config(cfg)
	except ConfigError as e:
		raise HTTPException(status_code=400, detail=str(e)) from e
	state.cfg = cfg
	logger.info("[Config] Session defaults updated")
	return {"detail": "Config updated. Applies to the next session."}
