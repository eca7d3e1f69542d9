"""Pydantic request body models."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from attention.pose.types import Keypoint, PoseFrame


class SessionStartPayload(BaseModel):
	"""Request body for POST /session/start. Overrides apply to this session only."""

	session_id: Optional[str] = Field(None, description="Session identifier; generated if empty")
	classifier: Optional[Dict[str, Any]] = Field(None, description="Classifier option overrides, e.g. {\"strategy\": \"lenient\"}")
	progression: Optional[Dict[str, Any]] = Field(None, description="Progression option overrides, e.g. {\"score_min\": -50}")


class ConfigUpdatePayload(BaseModel):
	"""Request body for POST /config. Replaces defaults used by the next session."""

	classifier: Optional[Dict[str, Any]] = None
	progression: Optional[Dict[str, Any]] = None
	session: Optional[Dict[str, Any]] = None


class KeypointPayload(BaseModel):
	name: str
	x: float
	y: float
	score: float = Field(0.0, ge=0.0, le=1.0, description="Detection confidence")


class PosePayload(BaseModel):
	"""One pose in pixel coordinates of a width x height frame."""

	width: int = Field(..., gt=0)
	height: int = Field(..., gt=0)
	score: Optional[float] = Field(None, description="Overall pose confidence")
	t_video: Optional[float] = None
	keypoints: List[KeypointPayload] = Field(default_factory=list)

	def to_pose_frame(self, backend: str = "push") -> PoseFrame:
		return PoseFrame.from_keypoints(
			(Keypoint(name=k.name, x_px=k.x, y_px=k.y, score=k.score) for k in self.keypoints),
			width=self.width,
			height=self.height,
			backend=backend,
			score=self.score,
			t_video=self.t_video,
		)


class PosePushPayload(BaseModel):
	"""Request body for POST /session/pose. `pose: null` means no pose this tick."""

	pose: Optional[PosePayload] = None
