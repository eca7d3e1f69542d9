from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from attention.classifier import AttentivenessClassifier, Verdict
from attention.config import AppConfig, get_config, validate_config
from attention.pose.types import PoseFrame, visible_edges
from attention.progression import LevelUpListener, ProgressionState, ProgressionTracker
from attention.source import PoseSource

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[Dict[str, Any]], Awaitable[None]]


class SessionStateError(RuntimeError):
	"""Raised when a session is driven outside its start()..stop() lifetime."""


class FrameScheduler:
	"""
	Async tick source capped at `max_fps`.

	The consumer finishes each tick before asking for the next one, so ticks
	never overlap; the cap only adds sleep when the pose source is faster.
	"""

	def __init__(self, max_fps: float = 30.0) -> None:
		if not max_fps > 0.0:
			raise ValueError(f"max_fps must be positive (got {max_fps})")
		self.min_interval = 1.0 / float(max_fps)

	async def ticks(self) -> AsyncIterator[int]:
		n = 0
		last_mono: Optional[float] = None
		while True:
			if last_mono is not None:
				elapsed = time.monotonic() - last_mono
				if elapsed < self.min_interval:
					await asyncio.sleep(self.min_interval - elapsed)
				else:
					# Yield to the loop even when the source is slow.
					await asyncio.sleep(0)
			last_mono = time.monotonic()
			n += 1
			yield n


class TrackingSession:
	"""
	One tracking session: owns the classifier and the progression state.

	process() is the only place where a verdict is produced and applied, so the
	state is mutated at most once per tick. With a pose source, launch() runs
	the read -> classify -> update -> notify cycle on the event loop until
	stop(); without one (push mode) callers feed poses to process() directly.
	"""

	def __init__(
		self,
		cfg: Optional[AppConfig] = None,
		source: Optional[PoseSource] = None,
		on_update: Optional[UpdateCallback] = None,
		on_level_up: Optional[LevelUpListener] = None,
		session_id: Optional[str] = None,
	) -> None:
		self.cfg = cfg or get_config()
		validate_config(self.cfg)
		self.session_id = (session_id or "").strip() or time.strftime("%Y%m%d_%H%M%S")
		self.classifier = AttentivenessClassifier(self.cfg.classifier)
		self.tracker = ProgressionTracker(self.cfg.progression, on_level_up=on_level_up)
		self.source = source
		self._on_update = on_update
		self._scheduler = FrameScheduler(self.cfg.session.max_fps)
		self._running = False
		self._stopped = False
		self._task: Optional[asyncio.Task] = None
		self.last_verdict: Optional[Verdict] = None
		self.last_pose: Optional[PoseFrame] = None
		self.t_start: Optional[float] = None
		self.t_stop: Optional[float] = None

	@property
	def running(self) -> bool:
		return self._running

	@property
	def state(self) -> ProgressionState:
		return self.tracker.state

	def start(self) -> None:
		if self._stopped:
			raise SessionStateError(f"Session {self.session_id} was already stopped")
		if self._running:
			return
		self._running = True
		self.t_start = time.time()
		logger.info(
			"[Session] %s started (strategy=%s, source=%s)",
			self.session_id,
			self.classifier.strategy.value,
			self.source.name() if self.source else "push",
		)

	def process(self, pose: Optional[PoseFrame]) -> Optional[ProgressionState]:
		"""
		Apply one tick. None means no pose this tick: nothing changes and None
		is returned.
		"""
		if not self._running:
			raise SessionStateError(f"Session {self.session_id} is not running")
		if pose is None:
			return None
		verdict = self.classifier.evaluate(pose)
		state = self.tracker.update(verdict.attentive)
		self.last_verdict = verdict
		self.last_pose = pose
		logger.debug(
			"[Session] frame=%d attentive=%s failed=%s score=%d streak=%d",
			state.metrics.total_frames,
			verdict.attentive,
			",".join(verdict.failed()) or "-",
			state.score,
			state.streak,
		)
		return state

	async def push(self, pose: Optional[PoseFrame]) -> Optional[ProgressionState]:
		"""process() for externally fed poses, followed by the update notification."""
		state = self.process(pose)
		if state is not None and self._on_update is not None:
			await self._on_update(self.snapshot())
		return state

	def launch(self) -> asyncio.Task:
		"""Start the session and its tick loop on the running event loop."""
		if self.source is None:
			raise SessionStateError("Session has no pose source; feed poses with process()")
		if self._task is not None:
			return self._task
		self.start()
		self._task = asyncio.create_task(self.run(), name=f"tracking-{self.session_id}")
		return self._task

	async def run(self) -> None:
		source = self.source
		if source is None:
			raise SessionStateError("Session has no pose source")
		try:
			async for _ in self._scheduler.ticks():
				if not self._running:
					break
				pose = await asyncio.to_thread(source.read)
				# stop() may have been requested while the source was blocking.
				if not self._running:
					break
				state = self.process(pose)
				if state is not None and self._on_update is not None:
					await self._on_update(self.snapshot())
				if getattr(source, "exhausted", False):
					logger.info("[Session] %s source exhausted", self.session_id)
					break
		except Exception:
			# Ends the session instead of escaping from stop() or wait().
			logger.exception("[Session] %s tick loop crashed", self.session_id)
		finally:
			if self._running:
				# The loop ended on its own (exhausted or crashed), not through stop().
				self._running = False
				self._stopped = True
				self._finish()

	async def wait(self) -> None:
		"""
		Wait for the tick loop to end on its own (replay exhausted, or a crash,
		which is logged). The session is finished afterwards.
		"""
		if self._task is not None:
			await self._task

	async def stop(self) -> None:
		"""
		Stop ticking and release the pose source. Safe to call more than once;
		process() fails after this returns.
		"""
		if self._stopped:
			return
		self._running = False
		self._stopped = True
		task = self._task
		try:
			if task is not None and task is not asyncio.current_task():
				try:
					await asyncio.wait_for(asyncio.shield(task), timeout=self.cfg.session.stop_timeout_seconds)
				except asyncio.TimeoutError:
					logger.warning("[Session] %s tick loop did not finish in time; cancelling", self.session_id)
					task.cancel()
					try:
						await task
					except asyncio.CancelledError:
						pass
		finally:
			self._finish()

	def _finish(self) -> None:
		self.t_stop = time.time()
		if self.source is not None:
			self.source.close()
		m = self.state.metrics
		logger.info(
			"[Session] %s stopped: frames=%d attentive=%d look_aways=%d score=%d level=%d",
			self.session_id,
			m.total_frames,
			m.attentive_frames,
			m.look_aways,
			self.state.score,
			self.state.level,
		)

	def elapsed_s(self) -> float:
		if self.t_start is None:
			return 0.0
		end = self.t_stop if self.t_stop is not None else time.time()
		return max(0.0, end - self.t_start)

	def snapshot(self) -> Dict[str, Any]:
		out: Dict[str, Any] = {
			"session_id": self.session_id,
			"running": self._running,
			"strategy": self.classifier.strategy.value,
			"elapsed_s": round(self.elapsed_s(), 3),
			"checks": dict(self.last_verdict.checks) if self.last_verdict else {},
		}
		out.update(self.tracker.snapshot())
		if self.last_pose is not None:
			out["pose"] = {
				"score": self.last_pose.score,
				"width": self.last_pose.width,
				"height": self.last_pose.height,
				"keypoints": [kp.to_dict() for kp in self.last_pose.keypoints.values()],
				"edges": [list(e) for e in visible_edges(self.last_pose)],
			}
		return out
