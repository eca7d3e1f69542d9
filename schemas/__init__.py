"""Pydantic request/response models for API validation and docs."""
from schemas.requests import (
	ConfigUpdatePayload,
	KeypointPayload,
	PosePayload,
	PosePushPayload,
	SessionStartPayload,
)
from schemas.responses import (
	MetricsResponse,
	SessionStatusResponse,
)

__all__ = [
	"ConfigUpdatePayload",
	"KeypointPayload",
	"PosePayload",
	"PosePushPayload",
	"SessionStartPayload",
	"MetricsResponse",
	"SessionStatusResponse",
]
