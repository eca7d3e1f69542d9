from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from attention.camera import FrameGrabber
from attention.config import AppConfig, get_config
from attention.pose.base import PoseProvider
from attention.pose.types import PoseFrame

logger = logging.getLogger(__name__)


class PoseSource(ABC):
	"""
	Supplies at most one pose per tick.

	read() may block (camera, model inference); callers run it off the event
	loop. Failures are reported as None ("no pose this tick"), never raised.
	"""

	@abstractmethod
	def name(self) -> str: ...

	@abstractmethod
	def read(self) -> Optional[PoseFrame]: ...

	@abstractmethod
	def close(self) -> None: ...


class CameraPoseSource(PoseSource):
	def __init__(self, camera: FrameGrabber, provider: PoseProvider) -> None:
		self.camera = camera
		self.provider = provider
		self._open_failed = False
		self._closed = False

	def name(self) -> str:
		return f"{self.camera.name()}+{self.provider.name()}"

	def read(self) -> Optional[PoseFrame]:
		if self._closed or self._open_failed:
			return None
		try:
			self.camera.open()
		except Exception as e:
			# Reported once; the session keeps ticking with no poses.
			logger.error("[Source] Camera unavailable: %s", e)
			self._open_failed = True
			return None
		try:
			rgb, t_host = self.camera.read_rgb()
			if rgb is None:
				return None
			pose = self.provider.infer_rgb(rgb)
		except Exception as e:
			logger.warning("[Source] Pose inference failed: %r", e)
			return None
		if pose is None:
			return None
		return replace(pose, t_host=t_host) if t_host is not None else pose

	def close(self) -> None:
		if self._closed:
			return
		self._closed = True
		try:
			self.camera.close()
		finally:
			self.provider.close()


class ReplayPoseSource(PoseSource):
	"""Plays back a fixed sequence of poses; None entries mean "no pose"."""

	def __init__(self, frames: Iterable[Optional[PoseFrame]], label: str = "replay") -> None:
		self._frames: Iterator[Optional[PoseFrame]] = iter(frames)
		self._label = label
		self.exhausted = False

	@classmethod
	def from_jsonl(cls, path: str | Path) -> "ReplayPoseSource":
		"""
		Load a JSON-lines recording: one pose object (PoseFrame.to_dict()) per
		line, `null` for ticks without a pose. Blank lines are ignored.
		"""
		p = Path(path).expanduser()
		frames: List[Optional[PoseFrame]] = []
		with open(p, "r", encoding="utf-8") as fh:
			for lineno, line in enumerate(fh, start=1):
				line = line.strip()
				if not line:
					continue
				try:
					obj = json.loads(line)
					frames.append(None if obj is None else PoseFrame.from_dict(obj))
				except ValueError as e:
					raise ValueError(f"{p}:{lineno}: {e}") from e
		logger.info("[Source] Loaded %d replay frames from %s", len(frames), p)
		return cls(frames, label=f"replay:{p.name}")

	def name(self) -> str:
		return self._label

	def read(self) -> Optional[PoseFrame]:
		if self.exhausted:
			return None
		try:
			return next(self._frames)
		except StopIteration:
			self.exhausted = True
			return None

	def close(self) -> None:
		self.exhausted = True


def get_pose_source(cfg: Optional[AppConfig] = None) -> Optional[PoseSource]:
	"""
	Build the configured pose source. Returns None for the "push" backend, where
	poses arrive over HTTP and no tick loop runs.
	"""
	cfg = cfg or get_config()
	backend = (cfg.source.backend or "camera").strip().lower()
	if backend == "push":
		return None
	if backend == "replay":
		if not cfg.source.replay_path:
			raise ValueError("source.replay_path is required for the replay backend")
		return ReplayPoseSource.from_jsonl(cfg.source.replay_path)

	from attention.camera import OpenCVCamera
	from attention.pose.mediapipe_provider import MediaPipePoseProvider

	camera = OpenCVCamera(index=cfg.camera.index, width=cfg.camera.width, height=cfg.camera.height)
	provider = MediaPipePoseProvider(
		model_complexity=cfg.pose.model_complexity,
		min_detection_confidence=cfg.pose.min_detection_confidence,
		min_tracking_confidence=cfg.pose.min_tracking_confidence,
	)
	return CameraPoseSource(camera, provider)
