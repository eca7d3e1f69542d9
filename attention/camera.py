from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple

logger = logging.getLogger(__name__)


class FrameGrabber(ABC):
	@abstractmethod
	def name(self) -> str: ...

	@abstractmethod
	def open(self) -> None: ...

	@abstractmethod
	def read_rgb(self) -> Tuple[Optional[Any], Optional[float]]:
		"""
		Grab one frame. Returns (rgb HxWx3 uint8, t_host) or (None, None) when
		no frame is available.
		"""
		...

	@abstractmethod
	def close(self) -> None: ...


class OpenCVCamera(FrameGrabber):
	"""Local webcam via cv2.VideoCapture, converted to RGB for pose models."""

	def __init__(self, index: int = 0, width: int = 640, height: int = 480) -> None:
		try:
			import cv2  # type: ignore
		except ImportError as e:
			raise RuntimeError("OpenCV is not installed. Install it with: pip install opencv-python") from e
		self._cv2 = cv2
		self.index = int(index)
		self.width = int(width)
		self.height = int(height)
		self._cap = None

	def name(self) -> str:
		return f"opencv:{self.index}"

	def open(self) -> None:
		if self._cap is not None:
			return
		cv2 = self._cv2
		cap = cv2.VideoCapture(self.index)
		if not cap.isOpened():
			cap.release()
			raise RuntimeError(f"Could not open camera index {self.index}")
		cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
		cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
		self._cap = cap
		logger.info("[Camera] Opened %s (%dx%d requested)", self.name(), self.width, self.height)

	def read_rgb(self) -> Tuple[Optional[Any], Optional[float]]:
		if self._cap is None:
			return None, None
		ok, frame = self._cap.read()
		if not ok or frame is None:
			return None, None
		return self._cv2.cvtColor(frame, self._cv2.COLOR_BGR2RGB), time.time()

	def close(self) -> None:
		if self._cap is not None:
			self._cap.release()
			self._cap = None
			logger.info("[Camera] Released %s", self.name())
