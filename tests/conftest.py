from typing import Dict, Optional, Tuple

import pytest

from attention import config as config_module
from attention.pose.types import Keypoint, PoseFrame

WIDTH = 640
HEIGHT = 480

# name -> (x, y, score); nose at 40% of frame height, eyes at 50%.
FACING_CAMERA: Dict[str, Tuple[float, float, float]] = {
	"nose": (320.0, 192.0, 0.95),
	"left_eye": (350.0, 240.0, 0.9),
	"right_eye": (290.0, 240.0, 0.9),
	"left_shoulder": (420.0, 400.0, 0.8),
	"right_shoulder": (220.0, 405.0, 0.8),
}


def make_pose(
	overrides: Optional[Dict[str, Optional[Tuple[float, float, float]]]] = None,
	width: int = WIDTH,
	height: int = HEIGHT,
) -> PoseFrame:
	"""FACING_CAMERA with per-keypoint overrides; an override of None removes the keypoint."""
	points = dict(FACING_CAMERA)
	for name, value in (overrides or {}).items():
		if value is None:
			points.pop(name, None)
		else:
			points[name] = value
	kps = [Keypoint(name=n, x_px=x, y_px=y, score=s) for n, (x, y, s) in points.items()]
	return PoseFrame.from_keypoints(kps, width=width, height=height, backend="test", score=0.9)


@pytest.fixture
def pose_factory():
	return make_pose


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
	"""Point the config loader at an empty temp dir so no local config.json leaks in."""
	monkeypatch.setattr(config_module, "_CONFIG_PATH", tmp_path / "config.json")
	monkeypatch.setattr(config_module, "_CONFIG_CACHE", None)
	yield
