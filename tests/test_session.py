import asyncio
import time
from dataclasses import replace
from typing import List, Optional

import pytest

from attention.camera import FrameGrabber
from attention.config import AppConfig, ConfigError, ProgressionConfig
from attention.pose.base import PoseProvider
from attention.pose.types import PoseFrame
from attention.session import FrameScheduler, SessionStateError, TrackingSession
from attention.source import CameraPoseSource, PoseSource, ReplayPoseSource
from conftest import make_pose

LOOKING_DOWN = {"nose": (320.0, 300.0, 0.95)}


def _cfg(**session) -> AppConfig:
	cfg = AppConfig()
	return replace(cfg, session=replace(cfg.session, max_fps=1000.0, **session))


class CountingSource(PoseSource):
	"""Always returns the same pose, optionally blocking for `delay` seconds."""

	def __init__(self, pose: Optional[PoseFrame], delay: float = 0.0) -> None:
		self.pose = pose
		self.delay = delay
		self.reads = 0
		self.closed = False

	def name(self) -> str:
		return "counting"

	def read(self) -> Optional[PoseFrame]:
		self.reads += 1
		if self.delay:
			time.sleep(self.delay)
		return self.pose

	def close(self) -> None:
		self.closed = True


def test_process_requires_start():
	session = TrackingSession(_cfg())
	with pytest.raises(SessionStateError):
		session.process(make_pose())


def test_no_pose_leaves_state_untouched():
	session = TrackingSession(_cfg())
	session.start()
	session.process(make_pose())
	before = (session.state.score, session.state.metrics.total_frames)
	assert session.process(None) is None
	assert (session.state.score, session.state.metrics.total_frames) == before


def test_process_applies_one_update_per_pose():
	session = TrackingSession(_cfg())
	session.start()
	for _ in range(10):
		session.process(make_pose())
	session.process(make_pose(LOOKING_DOWN))
	st = session.state
	assert st.metrics.total_frames == 11
	assert st.level == 2
	assert st.streak == 0
	assert st.metrics.look_aways == 1
	assert session.snapshot()["checks"]["nose_above_eyes"] is False


def test_invalid_config_fails_at_construction():
	cfg = replace(AppConfig(), progression=replace(ProgressionConfig(), score_min=5, score_max=1))
	with pytest.raises(ConfigError):
		TrackingSession(cfg)


def test_stop_is_final_and_idempotent():
	source = CountingSource(make_pose())
	session = TrackingSession(_cfg(), source=source)

	async def scenario():
		session.start()
		session.process(make_pose())
		await session.stop()
		await session.stop()

	asyncio.run(scenario())
	assert source.closed is True
	assert session.running is False
	with pytest.raises(SessionStateError):
		session.process(make_pose())
	with pytest.raises(SessionStateError):
		session.start()


def test_launch_needs_a_source():
	session = TrackingSession(_cfg())
	with pytest.raises(SessionStateError):
		session.launch()


def test_replay_loop_processes_every_pose():
	frames: List[Optional[PoseFrame]] = [make_pose()] * 5 + [None] + [make_pose()] * 5 + [make_pose(LOOKING_DOWN)]
	updates = []
	levels = []

	async def on_update(snapshot):
		updates.append(snapshot["metrics"]["total_frames"])

	async def scenario():
		session = TrackingSession(
			_cfg(),
			source=ReplayPoseSource(frames),
			on_update=on_update,
			on_level_up=levels.append,
		)
		session.launch()
		await session.wait()
		await session.stop()
		return session

	session = asyncio.run(scenario())
	st = session.state
	assert st.metrics.total_frames == 11
	assert st.metrics.attentive_frames == 10
	assert st.metrics.look_aways == 1
	assert st.score == 19
	assert updates == list(range(1, 12))
	assert [e.level for e in levels] == [2]


def test_stop_while_source_is_blocking_prevents_further_updates():
	source = CountingSource(make_pose(), delay=0.05)

	async def scenario():
		session = TrackingSession(_cfg(stop_timeout_seconds=1.0), source=source)
		session.launch()
		await asyncio.sleep(0.12)
		await session.stop()
		frames_at_stop = session.state.metrics.total_frames
		reads_at_stop = source.reads
		await asyncio.sleep(0.1)
		return session, frames_at_stop, reads_at_stop

	session, frames_at_stop, reads_at_stop = asyncio.run(scenario())
	assert source.closed is True
	assert session.state.metrics.total_frames == frames_at_stop
	assert source.reads == reads_at_stop
	assert frames_at_stop <= reads_at_stop


def test_stop_cancels_a_loop_that_overruns_the_grace_period():
	source = CountingSource(make_pose())
	release = asyncio.Event()

	async def slow_update(_snapshot):
		await release.wait()

	async def scenario():
		session = TrackingSession(_cfg(stop_timeout_seconds=0.05), source=source, on_update=slow_update)
		task = session.launch()
		await asyncio.sleep(0.05)
		await session.stop()
		return task

	task = asyncio.run(scenario())
	assert task.cancelled()
	assert source.closed is True


def test_scheduler_caps_tick_rate():
	async def scenario():
		ticks = []
		start = time.monotonic()
		async for n in FrameScheduler(max_fps=50.0).ticks():
			ticks.append(n)
			if n == 6:
				break
		return ticks, time.monotonic() - start

	ticks, elapsed = asyncio.run(scenario())
	assert ticks == [1, 2, 3, 4, 5, 6]
	# five enforced gaps of 20 ms
	assert elapsed >= 0.09


def test_scheduler_rejects_non_positive_rate():
	with pytest.raises(ValueError):
		FrameScheduler(max_fps=0)


class FakeCamera(FrameGrabber):
	def __init__(self, fail_open: bool = False) -> None:
		self.fail_open = fail_open
		self.opens = 0
		self.closed = False

	def name(self) -> str:
		return "fake-cam"

	def open(self) -> None:
		self.opens += 1
		if self.fail_open:
			raise RuntimeError("permission denied")

	def read_rgb(self):
		return object(), 123.0

	def close(self) -> None:
		self.closed = True


class FakeProvider(PoseProvider):
	def __init__(self, result=None, error: Optional[Exception] = None) -> None:
		self.result = result
		self.error = error
		self.closed = False

	def name(self) -> str:
		return "fake-model"

	def infer_rgb(self, rgb, t_video=None):
		if self.error:
			raise self.error
		return self.result

	def close(self) -> None:
		self.closed = True


def test_camera_source_stamps_host_time():
	source = CameraPoseSource(FakeCamera(), FakeProvider(result=make_pose()))
	pose = source.read()
	assert pose is not None
	assert pose.t_host == 123.0
	assert source.name() == "fake-cam+fake-model"


def test_camera_source_turns_inference_errors_into_no_pose(caplog):
	source = CameraPoseSource(FakeCamera(), FakeProvider(error=RuntimeError("gpu on fire")))
	assert source.read() is None
	assert "Pose inference failed" in caplog.text


def test_camera_source_gives_up_after_open_failure():
	camera = FakeCamera(fail_open=True)
	source = CameraPoseSource(camera, FakeProvider(result=make_pose()))
	assert source.read() is None
	assert source.read() is None
	assert camera.opens == 1


def test_camera_source_close_releases_both():
	camera, provider = FakeCamera(), FakeProvider()
	source = CameraPoseSource(camera, provider)
	source.close()
	source.close()
	assert camera.closed and provider.closed
	assert source.read() is None


class BrokenSource(CountingSource):
	def read(self) -> Optional[PoseFrame]:
		self.reads += 1
		if self.reads > 2:
			raise OSError("device unplugged")
		return self.pose


def test_exhausted_replay_finishes_the_session():
	source = ReplayPoseSource([make_pose()] * 3)

	async def scenario():
		session = TrackingSession(_cfg(), source=source)
		session.launch()
		await session.wait()
		return session

	session = asyncio.run(scenario())
	assert session.running is False
	assert session.snapshot()["running"] is False
	assert session.state.metrics.total_frames == 3
	with pytest.raises(SessionStateError):
		session.start()


def test_crashed_loop_ends_session_and_releases_source(caplog):
	source = BrokenSource(make_pose())

	async def scenario():
		session = TrackingSession(_cfg(), source=source)
		session.launch()
		await session.wait()
		# Nothing left to raise once the loop is gone.
		await session.stop()
		return session

	session = asyncio.run(scenario())
	assert session.running is False
	assert source.closed is True
	assert session.state.metrics.total_frames == 2
	assert "tick loop crashed" in caplog.text
