"""Tests for tools.record module."""

from __future__ import annotations

import json

import numpy as np
import pytest

from boids import Flock, FlockParams
from tools import record as rec
from tools.record import (
    DELTA_SCALE,
    FORMAT_ABSOLUTE,
    FORMAT_DELTA,
    compress_frame,
    decompress_frame,
    frame_format,
    get_completed_frames,
    load_frame,
    load_metadata,
    parse_overrides,
    save_state,
    find_latest_state,
)

PARAMS = FlockParams(detection_radius=0.3, avoidance_radius=0.1, max_velocity=0.01)


@pytest.fixture
def recordings(tmp_path, monkeypatch):
    monkeypatch.setattr(rec, "RECORDINGS_DIR", tmp_path)
    return tmp_path


def _reference(num_boids: int, seed: int, steps: int) -> Flock:
    flock = Flock(num_boids=num_boids, params=PARAMS, seed=seed, warmup=False)
    for _ in range(steps):
        flock.update()
    return flock


class TestFrameCompression:
    def test_absolute_frame(self) -> None:
        rng = np.random.default_rng(0)
        positions = rng.uniform(-1, 1, size=(20, 2))
        velocities = rng.uniform(-0.01, 0.01, size=(20, 2))
        data = compress_frame(positions, velocities)

        assert frame_format(data) == FORMAT_ABSOLUTE
        out_pos, out_vel = decompress_frame(data)
        np.testing.assert_array_equal(out_pos, positions.astype(np.float32))
        np.testing.assert_array_equal(out_vel, velocities.astype(np.float32))

    def test_delta_frame_within_quantization(self) -> None:
        rng = np.random.default_rng(1)
        prev = rng.uniform(-1, 1, size=(20, 2)).astype(np.float32)
        velocities = rng.uniform(-0.005, 0.005, size=(20, 2))
        positions = prev + velocities

        data = compress_frame(positions, velocities, prev_positions=prev)
        assert frame_format(data) == FORMAT_DELTA

        out_pos, out_vel = decompress_frame(data, prev)
        np.testing.assert_allclose(out_pos, positions, atol=1.0 / DELTA_SCALE)
        np.testing.assert_array_equal(out_vel, velocities.astype(np.float32))

    def test_large_jump_falls_back_to_absolute(self) -> None:
        prev = np.zeros((4, 2), dtype=np.float32)
        positions = np.full((4, 2), 0.9)
        data = compress_frame(positions, np.zeros((4, 2)), prev_positions=prev)
        assert frame_format(data) == FORMAT_ABSOLUTE

    def test_nan_positions_fall_back_to_absolute(self) -> None:
        prev = np.zeros((2, 2), dtype=np.float32)
        positions = np.array([[np.nan, np.nan], [0.0, 0.001]])
        data = compress_frame(positions, np.zeros((2, 2)), prev_positions=prev)
        assert frame_format(data) == FORMAT_ABSOLUTE
        out_pos, _ = decompress_frame(data)
        assert np.isnan(out_pos[0]).all()

    def test_delta_without_previous_rejected(self) -> None:
        prev = np.zeros((3, 2), dtype=np.float32)
        data = compress_frame(prev + 0.001, np.zeros((3, 2)), prev_positions=prev)
        with pytest.raises(ValueError, match="previous frame"):
            decompress_frame(data)

    def test_unknown_format_rejected(self) -> None:
        data = bytearray(compress_frame(np.zeros((2, 2)), np.zeros((2, 2))))
        data[0] = 9
        with pytest.raises(ValueError, match="Unknown compression format"):
            decompress_frame(bytes(data))

    def test_truncated_data_rejected(self) -> None:
        with pytest.raises(ValueError):
            decompress_frame(b"\x01")


class TestRecord:
    def test_records_all_frames_compressed(self, recordings) -> None:
        rec_dir = rec.record("run", num_boids=20, frames=12, params=PARAMS,
                             seed=3, batch_size=5, quiet=True)

        assert get_completed_frames(rec_dir) == 12
        assert len(list(rec_dir.glob("frame_*.zstd"))) == 12
        assert not list(rec_dir.glob("frame_*.npz"))

    def test_metadata(self, recordings) -> None:
        rec_dir = rec.record("meta", num_boids=8, frames=3, params=PARAMS,
                             seed=5, batch_size=2, quiet=True)
        metadata = load_metadata(rec_dir)
        assert metadata["num_boids"] == 8
        assert metadata["frames"] == 3
        assert metadata["seed"] == 5
        assert FlockParams(**metadata["params"]) == PARAMS

        with open(rec_dir / "metadata.json") as f:
            assert json.load(f)["session"] == "meta"

    def test_frames_match_live_simulation(self, recordings) -> None:
        rec_dir = rec.record("match", num_boids=20, frames=12, params=PARAMS,
                             seed=3, batch_size=5, quiet=True)

        for frame_idx in (0, 4, 7, 11):
            positions, velocities = load_frame(rec_dir, frame_idx)
            expected = _reference(20, 3, frame_idx)
            np.testing.assert_allclose(positions, expected.positions, atol=1e-4)
            np.testing.assert_allclose(velocities, expected.velocities, atol=1e-6)

    def test_first_frame_of_each_batch_is_absolute(self, recordings) -> None:
        rec_dir = rec.record("batches", num_boids=10, frames=10, params=PARAMS,
                             seed=1, batch_size=5, quiet=True)
        formats = [frame_format((rec_dir / f"frame_{i:04d}.zstd").read_bytes()) for i in range(10)]
        assert formats[0] == FORMAT_ABSOLUTE
        assert formats[5] == FORMAT_ABSOLUTE
        assert formats[1:5] == [FORMAT_DELTA] * 4

    def test_resume_continues_from_checkpoint(self, recordings) -> None:
        rec_dir = rec.record("resume", num_boids=15, frames=12, params=PARAMS,
                             seed=9, batch_size=5, quiet=True)

        # Simulate an interruption after frame 4
        checkpoint = _reference(15, 9, 4)
        save_state(rec_dir, 4, checkpoint.state.positions.copy(), checkpoint.state.velocities.copy())
        for i in range(5, 12):
            (rec_dir / f"frame_{i:04d}.zstd").unlink()
        assert get_completed_frames(rec_dir) == 5

        rec.record("resume", num_boids=0, frames=0, params=FlockParams(),
                   batch_size=5, resume=True, quiet=True)

        assert get_completed_frames(rec_dir) == 12
        positions, _ = load_frame(rec_dir, 11)
        np.testing.assert_allclose(positions, _reference(15, 9, 11).positions, atol=1e-4)

    def test_rerecording_shorter_session_drops_old_frames(self, recordings) -> None:
        rec.record("again", num_boids=10, frames=12, params=PARAMS,
                   seed=1, batch_size=5, quiet=True)
        rec_dir = rec.record("again", num_boids=10, frames=4, params=PARAMS,
                             seed=2, batch_size=5, quiet=True)

        assert get_completed_frames(rec_dir) == 4
        assert len(list(rec_dir.glob("frame_*"))) == 4
        assert [p.name for p in rec_dir.glob("state_*.npz")] == ["state_0003.npz"]

    def test_rerecording_with_fewer_boids_keeps_frames_consistent(self, recordings) -> None:
        rec.record("shrink", num_boids=30, frames=8, params=PARAMS,
                   seed=1, batch_size=5, quiet=True)
        rec_dir = rec.record("shrink", num_boids=6, frames=3, params=PARAMS,
                             seed=1, batch_size=5, quiet=True)

        assert get_completed_frames(rec_dir) == 3
        for frame_idx in range(3):
            positions, _ = load_frame(rec_dir, frame_idx)
            assert positions.shape == (6, 2)

    def test_interrupt_pauses_and_resumes(self, recordings, monkeypatch) -> None:
        original_update = Flock.update
        calls = {"n": 0}

        def interrupted_update(self):
            calls["n"] += 1
            if calls["n"] == 8:
                raise KeyboardInterrupt
            original_update(self)

        monkeypatch.setattr(Flock, "update", interrupted_update)
        rec_dir = rec.record("paused", num_boids=15, frames=12, params=PARAMS,
                             seed=4, batch_size=5, quiet=True)

        assert get_completed_frames(rec_dir) == 8
        assert find_latest_state(rec_dir, 11)[1] == 7

        monkeypatch.setattr(Flock, "update", original_update)
        rec.record("paused", num_boids=0, frames=0, params=FlockParams(),
                   batch_size=5, resume=True, quiet=True)

        assert get_completed_frames(rec_dir) == 12
        assert not list(rec_dir.glob("frame_*.npz"))
        positions, _ = load_frame(rec_dir, 11)
        np.testing.assert_allclose(positions, _reference(15, 4, 11).positions, atol=1e-4)

    def test_resume_without_checkpoint_fails(self, recordings) -> None:
        rec_dir = rec.record("nostate", num_boids=5, frames=2, params=PARAMS,
                             seed=2, batch_size=5, quiet=True)
        for state_file in rec_dir.glob("state_*.npz"):
            state_file.unlink()
        with pytest.raises(FileNotFoundError):
            rec.record("nostate", num_boids=5, frames=2, params=PARAMS, resume=True, quiet=True)

    def test_missing_frame_raises(self, recordings) -> None:
        rec_dir = rec.record("gap", num_boids=5, frames=3, params=PARAMS,
                             seed=2, batch_size=5, quiet=True)
        with pytest.raises(FileNotFoundError):
            load_frame(rec_dir, 7)


class TestCheckpoints:
    def test_only_latest_state_kept(self, tmp_path) -> None:
        save_state(tmp_path, 4, np.zeros((2, 2)), np.ones((2, 2)))
        save_state(tmp_path, 9, np.zeros((2, 2)), np.ones((2, 2)))
        assert [p.name for p in tmp_path.glob("state_*.npz")] == ["state_0009.npz"]

    def test_find_latest_state(self, tmp_path) -> None:
        save_state(tmp_path, 6, np.zeros((2, 2)), np.ones((2, 2)))
        path, frame = find_latest_state(tmp_path, 20)
        assert frame == 6
        assert path.name == "state_0006.npz"
        assert find_latest_state(tmp_path, 5) == (None, -1)


class TestCli:
    def test_parse_overrides(self) -> None:
        assert parse_overrides(["cohesion_weight=0.8", "max_velocity = 0.02"]) == {
            "cohesion_weight": 0.8,
            "max_velocity": 0.02,
        }

    def test_parse_overrides_requires_equals(self) -> None:
        with pytest.raises(ValueError, match="name=value"):
            parse_overrides(["cohesion_weight"])

    def test_main_records_session(self, recordings) -> None:
        rec.main(["cli_run", "--frames", "4", "-n", "6", "--seed", "1",
                  "--set", "alignment_weight=0.2", "--quiet"])
        metadata = load_metadata(recordings / "cli_run")
        assert metadata["num_boids"] == 6
        assert metadata["params"]["alignment_weight"] == 0.2

    def test_main_rejects_unknown_parameter(self, recordings) -> None:
        with pytest.raises(SystemExit):
            rec.main(["bad", "--set", "speed=1"])

    def test_list_recordings(self, recordings) -> None:
        rec.record("a", num_boids=4, frames=2, params=PARAMS, seed=1, quiet=True)
        rec.record("b", num_boids=4, frames=2, params=PARAMS, seed=1, quiet=True)
        assert rec.list_recordings() == ["a", "b"]
