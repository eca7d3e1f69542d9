from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple


# Upper-body connections drawn by renderers.
SKELETON_EDGES: List[Tuple[str, str]] = [
	("left_shoulder", "right_shoulder"),
	("left_shoulder", "left_elbow"),
	("right_shoulder", "right_elbow"),
	("left_elbow", "left_wrist"),
	("right_elbow", "right_wrist"),
	("left_shoulder", "left_hip"),
	("right_shoulder", "right_hip"),
	("left_hip", "right_hip"),
]


@dataclass(frozen=True)
class Keypoint:
	"""
	A single 2D keypoint in pixel coordinates.
	"""

	name: str
	x_px: float
	y_px: float
	score: float  # confidence/visibility [0..1] best-effort

	def to_dict(self) -> Dict[str, Any]:
		return {"name": self.name, "x": self.x_px, "y": self.y_px, "score": self.score}


@dataclass(frozen=True)
class PoseFrame:
	"""
	Model-agnostic pose output for a single video frame.

	- Coordinates are in pixel space; width/height are the reference frame
	  dimensions used for fraction-based thresholds.
	- `score` is the overall pose confidence when the model reports one.
	- `keypoints` keeps the model's ordering; names are unique (first wins).
	"""

	backend: str
	width: int
	height: int
	t_video: Optional[float] = None
	t_host: Optional[float] = None
	score: Optional[float] = None
	keypoints: Dict[str, Keypoint] = field(default_factory=dict)

	def get(self, name: str) -> Optional[Keypoint]:
		if not self.keypoints:
			return None
		return self.keypoints.get(name)

	@classmethod
	def from_keypoints(
		cls,
		keypoints: Iterable[Keypoint],
		*,
		width: int,
		height: int,
		backend: str = "external",
		score: Optional[float] = None,
		t_video: Optional[float] = None,
		t_host: Optional[float] = None,
	) -> "PoseFrame":
		by_name: Dict[str, Keypoint] = {}
		for kp in keypoints:
			by_name.setdefault(kp.name, kp)
		return cls(
			backend=backend,
			width=int(width),
			height=int(height),
			t_video=t_video,
			t_host=t_host,
			score=score,
			keypoints=by_name,
		)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"backend": self.backend,
			"width": self.width,
			"height": self.height,
			"t_video": self.t_video,
			"t_host": self.t_host,
			"score": self.score,
			"keypoints": [kp.to_dict() for kp in self.keypoints.values()],
		}

	@classmethod
	def from_dict(cls, obj: Dict[str, Any]) -> "PoseFrame":
		"""
		Parse the JSON form produced by to_dict().

		Raises ValueError on structurally broken input (missing dimensions,
		non-numeric coordinates); individual keypoints are never dropped.
		"""
		if not isinstance(obj, dict):
			raise ValueError("pose must be a JSON object")
		try:
			width = int(obj["width"])
			height = int(obj["height"])
			raw_kps = obj.get("keypoints") or []
			kps = [
				Keypoint(
					name=str(k["name"]),
					x_px=float(k["x"]),
					y_px=float(k["y"]),
					score=float(k.get("score", 0.0)),
				)
				for k in raw_kps
			]
			score = obj.get("score")
			t_video = obj.get("t_video")
			t_host = obj.get("t_host")
			return cls.from_keypoints(
				kps,
				width=width,
				height=height,
				backend=str(obj.get("backend") or "external"),
				score=float(score) if score is not None else None,
				t_video=float(t_video) if t_video is not None else None,
				t_host=float(t_host) if t_host is not None else None,
			)
		except (KeyError, TypeError, ValueError) as e:
			raise ValueError(f"malformed pose: {e!r}") from e


def visible_edges(pose: PoseFrame, min_score: float = 0.5) -> List[Tuple[str, str]]:
	"""Skeleton edges whose two endpoints are both confidently detected."""
	out: List[Tuple[str, str]] = []
	for a, b in SKELETON_EDGES:
		ka = pose.get(a)
		kb = pose.get(b)
		if ka and kb and ka.score > min_score and kb.score > min_score:
			out.append((a, b))
	return out
