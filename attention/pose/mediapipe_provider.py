from __future__ import annotations

import logging
from typing import Optional

from attention.pose.base import PoseProvider
from attention.pose.types import Keypoint, PoseFrame

logger = logging.getLogger(__name__)

# A desk webcam frames the head and torso; legs are rarely in view.
UPPER_BODY_NAMES = (
	"nose",
	"left_eye",
	"right_eye",
	"left_ear",
	"right_ear",
	"left_shoulder",
	"right_shoulder",
	"left_elbow",
	"right_elbow",
	"left_wrist",
	"right_wrist",
	"left_hip",
	"right_hip",
)


class MediaPipePoseProvider(PoseProvider):
	"""
	Single-person MediaPipe Pose adapter.

	Landmarks come back normalised to [0, 1]; they are scaled to pixels of the
	input image. Landmark `visibility` becomes the keypoint score and the pose
	score is the mean over the upper body.
	"""

	def __init__(
		self,
		model_complexity: int = 1,
		min_detection_confidence: float = 0.5,
		min_tracking_confidence: float = 0.5,
	) -> None:
		try:
			import mediapipe as mp  # type: ignore
		except ImportError as e:
			raise RuntimeError("MediaPipe is not installed. Install it with: pip install mediapipe") from e

		solution = mp.solutions.pose
		self._pose = solution.Pose(
			static_image_mode=False,
			model_complexity=int(model_complexity),
			smooth_landmarks=True,
			min_detection_confidence=float(min_detection_confidence),
			min_tracking_confidence=float(min_tracking_confidence),
		)
		self._landmark_index = [(n, int(solution.PoseLandmark[n.upper()])) for n in UPPER_BODY_NAMES]
		logger.info("[Pose] MediaPipe ready (complexity=%d)", int(model_complexity))

	def name(self) -> str:
		return "mediapipe_pose"

	def infer_rgb(self, rgb, t_video: Optional[float] = None) -> Optional[PoseFrame]:
		if self._pose is None:
			return None
		height, width = int(rgb.shape[0]), int(rgb.shape[1])
		result = self._pose.process(rgb)
		landmarks = getattr(result, "pose_landmarks", None) if result else None
		if not landmarks:
			return None

		points = landmarks.landmark
		keypoints = [
			Keypoint(
				name=name,
				x_px=points[i].x * width,
				y_px=points[i].y * height,
				score=float(points[i].visibility or 0.0),
			)
			for name, i in self._landmark_index
		]
		mean_score = sum(kp.score for kp in keypoints) / len(keypoints)
		return PoseFrame.from_keypoints(
			keypoints, width=width, height=height, backend=self.name(), score=mean_score, t_video=t_video
		)

	def close(self) -> None:
		pose, self._pose = self._pose, None
		if pose is not None:
			pose.close()
