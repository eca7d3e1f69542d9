"""
Attention Hero core package.

Turns a stream of pose keypoints into an attentiveness verdict per frame and a
game-like progression (score, streak, level, session metrics).
"""

from pathlib import Path


def _read_version() -> str:
	try:
		vf = Path(__file__).resolve().parents[1] / "VERSION"
		if vf.exists():
			val = vf.read_text(encoding="utf-8").strip()
			if val:
				return val
	except OSError:
		pass
	return "0.1.0"


__version__ = _read_version()
