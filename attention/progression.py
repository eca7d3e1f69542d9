from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

from attention.config import ConfigError, ProgressionConfig, progression_problems

logger = logging.getLogger(__name__)


@dataclass
class SessionMetrics:
	look_aways: int = 0
	total_frames: int = 0
	attentive_frames: int = 0

	@property
	def attentive_ratio(self) -> float:
		if self.total_frames <= 0:
			return 0.0
		return self.attentive_frames / float(self.total_frames)


@dataclass
class ProgressionState:
	score: int = 0
	streak: int = 0
	level: int = 1
	metrics: SessionMetrics = field(default_factory=SessionMetrics)
	# None until the first frame; only used for look-away edge detection.
	last_verdict: Optional[bool] = None
	# Running sum of the per-frame score fill (0..1).
	cumulative_score: float = 0.0


@dataclass(frozen=True)
class LevelUpEvent:
	level: int
	streak: int
	frame: int


LevelUpListener = Callable[[LevelUpEvent], None]


def coaching_message(progress_percent: float) -> str:
	if progress_percent > 80:
		return "Great focus! Keep it up!"
	if progress_percent > 50:
		return "You're doing well. Stay focused!"
	return "Let's try to focus more!"


class ProgressionTracker:
	"""
	Score / streak / level state machine driven by one verdict per frame.

	Per update:
	  1. count the frame;
	  2. attentive: count it, raise the score by the increment (capped at
	     score_max) and extend the streak; otherwise lower the score by the
	     decrement (floored at score_min), count a look-away if the previous
	     frame was attentive or this is the first frame, and reset the streak;
	  3. level up when the streak reaches a positive multiple of
	     streak_per_level and notify subscribers.
	"""

	def __init__(
		self,
		cfg: Optional[ProgressionConfig] = None,
		on_level_up: Optional[LevelUpListener] = None,
	) -> None:
		self.cfg = cfg or ProgressionConfig()
		problems = progression_problems(self.cfg)
		if problems:
			raise ConfigError(problems)
		self._listeners: List[LevelUpListener] = []
		if on_level_up is not None:
			self._listeners.append(on_level_up)
		self._state = ProgressionState(score=self.cfg.initial_score)

	@property
	def state(self) -> ProgressionState:
		return self._state

	def subscribe(self, listener: LevelUpListener) -> None:
		self._listeners.append(listener)

	def update(self, attentive: bool) -> ProgressionState:
		cfg = self.cfg
		st = self._state
		m = st.metrics

		m.total_frames += 1
		if attentive:
			m.attentive_frames += 1
			st.score = min(st.score + cfg.attentive_increment, cfg.score_max)
			st.streak += 1
		else:
			st.score = max(st.score - cfg.inattentive_decrement, cfg.score_min)
			if st.last_verdict is None or st.last_verdict:
				m.look_aways += 1
			st.streak = 0
		st.last_verdict = bool(attentive)
		st.cumulative_score += self.progress_fraction()

		if st.streak > 0 and st.streak % cfg.streak_per_level == 0:
			st.level += 1
			self._emit(LevelUpEvent(level=st.level, streak=st.streak, frame=m.total_frames))

		return st

	def _emit(self, event: LevelUpEvent) -> None:
		logger.info("[Progression] Level up -> %d (streak=%d, frame=%d)", event.level, event.streak, event.frame)
		for listener in list(self._listeners):
			try:
				listener(event)
			except Exception:
				# Celebrations are decorative; a broken listener must not stall scoring.
				logger.exception("[Progression] level-up listener failed")

	def progress_fraction(self) -> float:
		span = self.cfg.score_max - self.cfg.score_min
		if span <= 0:
			return 1.0
		return (self._state.score - self.cfg.score_min) / float(span)

	def display(self) -> Dict[str, Any]:
		"""Presentation values derived from the current state."""
		st = self._state
		percent = round(self.progress_fraction() * 100.0, 2)
		to_next = self.cfg.streak_per_level - (st.streak % self.cfg.streak_per_level)
		return {
			"progress_percent": percent,
			"frames_to_next_level": to_next,
			"status_text": "Focused!" if st.last_verdict else "Look at the camera",
			"message": coaching_message(percent),
			"next_level_text": (
				f"Next level in {to_next} focused moments!" if st.streak > 0 else "Keep focusing to level up!"
			),
			"attentive_ratio": round(st.metrics.attentive_ratio, 4),
		}

	def snapshot(self) -> Dict[str, Any]:
		st = self._state
		return {
			"score": st.score,
			"streak": st.streak,
			"level": st.level,
			"attentive": st.last_verdict,
			"cumulative_score": round(st.cumulative_score, 4),
			"metrics": asdict(st.metrics),
			"display": self.display(),
		}
