from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

STRATEGIES = ("strict", "lenient", "posture")
SOURCE_BACKENDS = ("camera", "replay", "push")


class ConfigError(ValueError):
	"""Raised when configuration values are nonsensical (never clamped silently)."""

	def __init__(self, problems: List[str]) -> None:
		self.problems = list(problems)
		super().__init__("; ".join(self.problems) or "invalid configuration")


@dataclass(frozen=True)
class ClassifierConfig:
	# strict / lenient / posture; see attention.classifier.Strategy.
	strategy: str = "strict"
	# Nose carries the primary orientation signal, so it gets the higher bar.
	nose_confidence_min: float = 0.5
	eye_confidence_min: float = 0.3
	shoulder_confidence_min: float = 0.3
	# [min, max] as fractions of frame height; nose must sit inside it.
	vertical_band: Tuple[float, float] = (0.1, 0.9)
	# Eye separation as a fraction of frame width (lenient strategy).
	horizontal_separation_min_fraction: float = 0.03
	# Max shoulder height difference as a fraction of frame height (posture strategy).
	shoulder_level_tolerance_fraction: float = 0.1


@dataclass(frozen=True)
class ProgressionConfig:
	attentive_increment: int = 2
	inattentive_decrement: int = 1
	# Use score_min=-50 for the more punitive game mode.
	score_min: int = 0
	score_max: int = 100
	initial_score: int = 0
	streak_per_level: int = 10


@dataclass(frozen=True)
class SessionConfig:
	# Upper bound on tick rate; the pose source usually limits it further.
	max_fps: float = 30.0
	# Grace period for the tick loop to finish before it is cancelled.
	stop_timeout_seconds: float = 2.0


@dataclass(frozen=True)
class SourceConfig:
	backend: str = "camera"  # camera / replay / push
	replay_path: str = ""


@dataclass(frozen=True)
class CameraConfig:
	index: int = 0
	width: int = 640
	height: int = 480


@dataclass(frozen=True)
class PoseConfig:
	model_complexity: int = 1
	min_detection_confidence: float = 0.5
	min_tracking_confidence: float = 0.5


@dataclass(frozen=True)
class ServerConfig:
	host: str = "127.0.0.1"
	port: int = 8000


@dataclass(frozen=True)
class AppConfig:
	classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
	progression: ProgressionConfig = field(default_factory=ProgressionConfig)
	session: SessionConfig = field(default_factory=SessionConfig)
	source: SourceConfig = field(default_factory=SourceConfig)
	camera: CameraConfig = field(default_factory=CameraConfig)
	pose: PoseConfig = field(default_factory=PoseConfig)
	server: ServerConfig = field(default_factory=ServerConfig)


_CONFIG_PATH: Optional[Path] = None
_CONFIG_CACHE: Optional[AppConfig] = None


def _repo_root() -> Path:
	# attention/config.py -> repo root is one level up.
	return Path(__file__).resolve().parents[1]


def get_default_config_path() -> Path:
	return _repo_root() / "config.json"


def set_config_path(path: str | Path) -> None:
	"""
	Override the config path (must be called before first get_config()).
	Used by the CLI entry points (--config).
	"""
	global _CONFIG_PATH
	global _CONFIG_CACHE
	_CONFIG_PATH = Path(path).expanduser().resolve()
	_CONFIG_CACHE = None


def _deep_get(d: Dict[str, Any], keys: list[str], default: Any = None) -> Any:
	cur: Any = d
	for k in keys:
		if not isinstance(cur, dict):
			return default
		cur = cur.get(k)
	return cur if cur is not None else default


def _as_int(v: Any, default: int) -> int:
	try:
		return int(v)
	except (TypeError, ValueError):
		return int(default)


def _as_str(v: Any, default: str = "") -> str:
	return str(v) if v is not None else str(default)


def _as_float(v: Any, default: float) -> float:
	try:
		return float(v)
	except (TypeError, ValueError):
		return float(default)


def _as_band(v: Any, default: Tuple[float, float]) -> Tuple[float, float]:
	if not isinstance(v, (list, tuple)) or len(v) != 2:
		return default
	return (_as_float(v[0], default[0]), _as_float(v[1], default[1]))


def load_config(path: Optional[str | Path] = None) -> AppConfig:
	p = Path(path).expanduser().resolve() if path else (_CONFIG_PATH or get_default_config_path())
	if not p.exists():
		# Defaults-only config; app can still run.
		return AppConfig()
	try:
		raw = json.loads(p.read_text(encoding="utf-8"))
	except (OSError, ValueError) as e:
		logger.warning("[Config] Could not read %s (%s); using defaults", p, e)
		return AppConfig()

	if not isinstance(raw, dict):
		logger.warning("[Config] %s is not a JSON object; using defaults", p)
		return AppConfig()

	dc = ClassifierConfig()
	classifier = ClassifierConfig(
		strategy=_as_str(_deep_get(raw, ["classifier", "strategy"], dc.strategy), dc.strategy).strip().lower(),
		nose_confidence_min=_as_float(_deep_get(raw, ["classifier", "nose_confidence_min"], dc.nose_confidence_min), dc.nose_confidence_min),
		eye_confidence_min=_as_float(_deep_get(raw, ["classifier", "eye_confidence_min"], dc.eye_confidence_min), dc.eye_confidence_min),
		shoulder_confidence_min=_as_float(
			_deep_get(raw, ["classifier", "shoulder_confidence_min"], dc.shoulder_confidence_min), dc.shoulder_confidence_min
		),
		vertical_band=_as_band(_deep_get(raw, ["classifier", "vertical_band"], dc.vertical_band), dc.vertical_band),
		horizontal_separation_min_fraction=_as_float(
			_deep_get(raw, ["classifier", "horizontal_separation_min_fraction"], dc.horizontal_separation_min_fraction),
			dc.horizontal_separation_min_fraction,
		),
		shoulder_level_tolerance_fraction=_as_float(
			_deep_get(raw, ["classifier", "shoulder_level_tolerance_fraction"], dc.shoulder_level_tolerance_fraction),
			dc.shoulder_level_tolerance_fraction,
		),
	)

	dp = ProgressionConfig()
	progression = ProgressionConfig(
		attentive_increment=_as_int(_deep_get(raw, ["progression", "attentive_increment"], dp.attentive_increment), dp.attentive_increment),
		inattentive_decrement=_as_int(_deep_get(raw, ["progression", "inattentive_decrement"], dp.inattentive_decrement), dp.inattentive_decrement),
		score_min=_as_int(_deep_get(raw, ["progression", "score_min"], dp.score_min), dp.score_min),
		score_max=_as_int(_deep_get(raw, ["progression", "score_max"], dp.score_max), dp.score_max),
		initial_score=_as_int(_deep_get(raw, ["progression", "initial_score"], dp.initial_score), dp.initial_score),
		streak_per_level=_as_int(_deep_get(raw, ["progression", "streak_per_level"], dp.streak_per_level), dp.streak_per_level),
	)

	session = SessionConfig(
		max_fps=_as_float(_deep_get(raw, ["session", "max_fps"], 30.0), 30.0),
		stop_timeout_seconds=_as_float(_deep_get(raw, ["session", "stop_timeout_seconds"], 2.0), 2.0),
	)

	source = SourceConfig(
		backend=_as_str(_deep_get(raw, ["source", "backend"], "camera"), "camera").strip().lower() or "camera",
		replay_path=_as_str(_deep_get(raw, ["source", "replay_path"], ""), ""),
	)

	# NOTE: do not use `or 0` style defaults here; camera index 0 is valid.
	camera = CameraConfig(
		index=_as_int(_deep_get(raw, ["camera", "index"], 0), 0),
		width=_as_int(_deep_get(raw, ["camera", "width"], 640), 640),
		height=_as_int(_deep_get(raw, ["camera", "height"], 480), 480),
	)

	pose = PoseConfig(
		model_complexity=_as_int(_deep_get(raw, ["pose", "model_complexity"], 1), 1),
		min_detection_confidence=_as_float(_deep_get(raw, ["pose", "min_detection_confidence"], 0.5), 0.5),
		min_tracking_confidence=_as_float(_deep_get(raw, ["pose", "min_tracking_confidence"], 0.5), 0.5),
	)

	server_port = _as_int(_deep_get(raw, ["server", "port"], 8000), 8000)
	server = ServerConfig(
		host=_as_str(_deep_get(raw, ["server", "host"], "127.0.0.1"), "127.0.0.1"),
		port=int(server_port) if int(server_port) > 0 else 8000,
	)

	return AppConfig(
		classifier=classifier,
		progression=progression,
		session=session,
		source=source,
		camera=camera,
		pose=pose,
		server=server,
	)


def get_config() -> AppConfig:
	global _CONFIG_CACHE
	if _CONFIG_CACHE is None:
		_CONFIG_CACHE = load_config()
	return _CONFIG_CACHE


def classifier_problems(cfg: ClassifierConfig) -> List[str]:
	problems: List[str] = []
	if cfg.strategy not in STRATEGIES:
		problems.append(f"classifier.strategy must be one of {', '.join(STRATEGIES)} (got {cfg.strategy!r})")
	for name in ("nose_confidence_min", "eye_confidence_min", "shoulder_confidence_min"):
		value = getattr(cfg, name)
		if not 0.0 <= value <= 1.0:
			problems.append(f"classifier.{name} must be within [0, 1] (got {value})")
	band_min, band_max = cfg.vertical_band
	if not 0.0 <= band_min < band_max <= 1.0:
		problems.append(f"classifier.vertical_band must satisfy 0 <= min < max <= 1 (got {list(cfg.vertical_band)})")
	for name in ("horizontal_separation_min_fraction", "shoulder_level_tolerance_fraction"):
		value = getattr(cfg, name)
		if value < 0.0:
			problems.append(f"classifier.{name} must not be negative (got {value})")
	return problems


def progression_problems(cfg: ProgressionConfig) -> List[str]:
	problems: List[str] = []
	if cfg.attentive_increment < 0:
		problems.append(f"progression.attentive_increment must not be negative (got {cfg.attentive_increment})")
	if cfg.inattentive_decrement < 0:
		problems.append(f"progression.inattentive_decrement must not be negative (got {cfg.inattentive_decrement})")
	if cfg.score_min > cfg.score_max:
		problems.append(f"progression.score_min ({cfg.score_min}) must not exceed score_max ({cfg.score_max})")
	elif not cfg.score_min <= cfg.initial_score <= cfg.score_max:
		problems.append(
			f"progression.initial_score ({cfg.initial_score}) must lie within [{cfg.score_min}, {cfg.score_max}]"
		)
	if cfg.streak_per_level < 1:
		problems.append(f"progression.streak_per_level must be at least 1 (got {cfg.streak_per_level})")
	return problems


def validate_config(cfg: AppConfig) -> None:
	"""Raise ConfigError listing every problem in `cfg`."""
	problems = classifier_problems(cfg.classifier) + progression_problems(cfg.progression)
	if cfg.session.max_fps <= 0.0:
		problems.append(f"session.max_fps must be positive (got {cfg.session.max_fps})")
	if cfg.session.stop_timeout_seconds < 0.0:
		problems.append(f"session.stop_timeout_seconds must not be negative (got {cfg.session.stop_timeout_seconds})")
	if cfg.source.backend not in SOURCE_BACKENDS:
		problems.append(f"source.backend must be one of {', '.join(SOURCE_BACKENDS)} (got {cfg.source.backend!r})")
	if problems:
		raise ConfigError(problems)


def _coerce(section: str, name: str, current: Any, value: Any) -> Any:
	try:
		if isinstance(current, tuple):
			if not isinstance(value, (list, tuple)) or len(value) != len(current):
				raise TypeError(f"expected a list of {len(current)} numbers")
			return tuple(float(v) for v in value)
		if isinstance(current, bool):
			if not isinstance(value, bool):
				raise TypeError("expected a boolean")
			return value
		if isinstance(current, int):
			if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
				raise TypeError("expected an integer")
			return int(value)
		if isinstance(current, float):
			if isinstance(value, bool):
				raise TypeError("expected a number")
			return float(value)
		return str(value).strip().lower() if name in ("strategy", "backend") else str(value)
	except (TypeError, ValueError) as e:
		raise ConfigError([f"{section}.{name}: {e}"]) from e


def with_overrides(cfg: AppConfig, section: str, values: Optional[Dict[str, Any]]) -> AppConfig:
	"""
	Return a copy of `cfg` with fields of one section replaced.

	Unknown sections or keys raise ConfigError; range checks are left to
	validate_config().
	"""
	if not values:
		return cfg
	sub = getattr(cfg, section, None)
	if sub is None or section not in {f.name for f in fields(AppConfig)}:
		raise ConfigError([f"unknown config section {section!r}"])
	known = {f.name for f in fields(sub)}
	unknown = sorted(k for k in values if k not in known)
	if unknown:
		raise ConfigError([f"unknown {section} option(s): {', '.join(unknown)}"])
	changes = {k: _coerce(section, k, getattr(sub, k), v) for k, v in values.items()}
	return replace(cfg, **{section: replace(sub, **changes)})
