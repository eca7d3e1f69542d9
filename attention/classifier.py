"""
Attentiveness classification from a single pose.

Every check is a pure threshold test on keypoint confidence and position. A
keypoint that is missing or below its confidence minimum fails the check it
feeds; nothing here raises on incomplete poses.

Image coordinates grow downwards, so "above" means a smaller y.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from attention.config import ClassifierConfig, ConfigError, classifier_problems
from attention.pose.types import Keypoint, PoseFrame


class Strategy(str, Enum):
	STRICT = "strict"
	LENIENT = "lenient"
	POSTURE = "posture"


@dataclass(frozen=True)
class Verdict:
	attentive: bool
	checks: Dict[str, bool] = field(default_factory=dict)

	def failed(self) -> List[str]:
		return [name for name, ok in self.checks.items() if not ok]


def _confident(kp: Optional[Keypoint], minimum: float) -> bool:
	return kp is not None and kp.score > minimum


def _in_vertical_band(y: float, height: int, band: tuple) -> bool:
	if height <= 0:
		return False
	return band[0] * height <= y <= band[1] * height


def facial_visibility(pose: PoseFrame, cfg: ClassifierConfig) -> bool:
	return (
		_confident(pose.get("nose"), cfg.nose_confidence_min)
		and _confident(pose.get("left_eye"), cfg.eye_confidence_min)
		and _confident(pose.get("right_eye"), cfg.eye_confidence_min)
	)


def nose_above_eyes(pose: PoseFrame) -> bool:
	nose, le, re = pose.get("nose"), pose.get("left_eye"), pose.get("right_eye")
	if nose is None or le is None or re is None:
		return False
	return nose.y_px < (le.y_px + re.y_px) / 2.0


def nose_in_band(pose: PoseFrame, cfg: ClassifierConfig) -> bool:
	nose = pose.get("nose")
	if nose is None:
		return False
	return _in_vertical_band(nose.y_px, pose.height, cfg.vertical_band)


def eyes_separated(pose: PoseFrame, cfg: ClassifierConfig) -> bool:
	le, re = pose.get("left_eye"), pose.get("right_eye")
	if le is None or re is None or pose.width <= 0:
		return False
	return abs(le.x_px - re.x_px) > cfg.horizontal_separation_min_fraction * pose.width


def shoulders_level(pose: PoseFrame, cfg: ClassifierConfig) -> bool:
	ls, rs = pose.get("left_shoulder"), pose.get("right_shoulder")
	if not (_confident(ls, cfg.shoulder_confidence_min) and _confident(rs, cfg.shoulder_confidence_min)):
		return False
	if pose.height <= 0:
		return False
	return abs(ls.y_px - rs.y_px) < cfg.shoulder_level_tolerance_fraction * pose.height


class AttentivenessClassifier:
	"""
	Maps one pose to an attentive / not-attentive verdict.

	Strategies:
	  - strict:  facial visibility AND nose above the eye midpoint AND nose
	             inside the vertical band of the frame.
	  - lenient: facial visibility AND (eyes far enough apart OR nose inside
	             the vertical band).
	  - posture: facial visibility AND shoulders level (upright, not turned).
	"""

	def __init__(self, cfg: Optional[ClassifierConfig] = None) -> None:
		self.cfg = cfg or ClassifierConfig()
		problems = classifier_problems(self.cfg)
		if problems:
			raise ConfigError(problems)
		self.strategy = Strategy(self.cfg.strategy)

	def classify(self, pose: PoseFrame) -> bool:
		return self.evaluate(pose).attentive

	def evaluate(self, pose: PoseFrame) -> Verdict:
		cfg = self.cfg
		checks: Dict[str, bool] = {"visible": facial_visibility(pose, cfg)}

		if self.strategy is Strategy.STRICT:
			checks["nose_above_eyes"] = nose_above_eyes(pose)
			checks["nose_in_band"] = nose_in_band(pose, cfg)
			attentive = all(checks.values())
		elif self.strategy is Strategy.LENIENT:
			checks["eyes_separated"] = eyes_separated(pose, cfg)
			checks["nose_in_band"] = nose_in_band(pose, cfg)
			attentive = checks["visible"] and (checks["eyes_separated"] or checks["nose_in_band"])
		else:
			checks["shoulders_level"] = shoulders_level(pose, cfg)
			attentive = all(checks.values())

		return Verdict(attentive=bool(attentive), checks=checks)
