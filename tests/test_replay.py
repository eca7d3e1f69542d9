import json

import pytest

from attention.replay import main
from attention.source import ReplayPoseSource
from conftest import make_pose


def _write_recording(path, poses):
	lines = ["null" if p is None else json.dumps(p.to_dict()) for p in poses]
	path.write_text("\n".join(lines) + "\n\n", encoding="utf-8")


def test_from_jsonl_keeps_no_pose_ticks(tmp_path):
	path = tmp_path / "rec.jsonl"
	_write_recording(path, [make_pose(), None, make_pose()])
	source = ReplayPoseSource.from_jsonl(path)
	assert source.name() == "replay:rec.jsonl"
	assert source.read() is not None
	assert source.read() is None
	assert source.exhausted is False
	assert source.read() is not None
	assert source.read() is None
	assert source.exhausted is True


def test_from_jsonl_reports_bad_line(tmp_path):
	path = tmp_path / "rec.jsonl"
	path.write_text(json.dumps(make_pose().to_dict()) + "\n{\"width\": 1}\n", encoding="utf-8")
	with pytest.raises(ValueError, match=":2:"):
		ReplayPoseSource.from_jsonl(path)


def test_cli_prints_summary(tmp_path, capsys):
	path = tmp_path / "rec.jsonl"
	looking_down = make_pose({"nose": (320.0, 300.0, 0.95)})
	_write_recording(path, [make_pose()] * 12 + [None, looking_down])
	assert main([str(path)]) == 0
	summary = json.loads(capsys.readouterr().out)
	assert summary["metrics"] == {"look_aways": 1, "total_frames": 13, "attentive_frames": 12}
	assert summary["level"] == 2
	assert summary["score"] == 23
	assert summary["strategy"] == "strict"
	assert "pose" not in summary


def test_cli_strategy_override(tmp_path, capsys):
	path = tmp_path / "rec.jsonl"
	# Out of the vertical band but eyes clearly apart: lenient only.
	_write_recording(path, [make_pose({"nose": (320.0, 470.0, 0.95)})] * 3)
	assert main([str(path), "--strategy", "lenient"]) == 0
	summary = json.loads(capsys.readouterr().out)
	assert summary["metrics"]["attentive_frames"] == 3


def test_cli_missing_file(tmp_path):
	assert main([str(tmp_path / "missing.jsonl")]) == 2
