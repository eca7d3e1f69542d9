"""Pydantic response models for API docs."""
from typing import Any, Dict, Optional

from pydantic import BaseModel


class MetricsResponse(BaseModel):
	look_aways: int
	total_frames: int
	attentive_frames: int


class SessionStatusResponse(BaseModel):
	"""Snapshot returned by /session/* routes; progression fields are absent when idle."""

	running: bool
	session_id: Optional[str] = None
	strategy: Optional[str] = None
	elapsed_s: Optional[float] = None
	score: Optional[int] = None
	streak: Optional[int] = None
	level: Optional[int] = None
	attentive: Optional[bool] = None
	cumulative_score: Optional[float] = None
	metrics: Optional[MetricsResponse] = None
	checks: Dict[str, bool] = {}
	display: Dict[str, object] = {}
	# Latest pose with visible skeleton edges, for overlays
	pose: Optional[Dict[str, Any]] = None
	processed: Optional[bool] = None
	detail: Optional[str] = None
