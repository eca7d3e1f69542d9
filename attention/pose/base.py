from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from attention.pose.types import PoseFrame


class PoseProvider(ABC):
	"""
	Model adapter interface.

	Implementations take an RGB image (H,W,3 uint8) and return a PoseFrame for
	the primary person, or None when nobody was detected.
	"""

	@abstractmethod
	def name(self) -> str: ...

	@abstractmethod
	def infer_rgb(self, rgb, t_video: Optional[float] = None) -> Optional[PoseFrame]: ...

	@abstractmethod
	def close(self) -> None: ...
