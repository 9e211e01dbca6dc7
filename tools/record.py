"""
Boids Headless Recorder
=======================

Runs the flock without a window and saves every frame to disk, so a run can
be replayed (python -m tools.playback) or analysed later.

Usage:
    python -m tools.record my_run                       # Record with config defaults
    python -m tools.record my_run --frames 2000 -n 500  # Longer run, more boids
    python -m tools.record my_run --set cohesion_weight=0.8 --seed 7
    python -m tools.record my_run --resume              # Resume interrupted recording
    python -m tools.record my_run --status              # Check recording status
    python -m tools.record --list                       # List all recordings

Output:
    recordings/<session_name>/
        metadata.json     - Recording settings
        frame_0000.zstd   - Compressed position/velocity data (zstd+delta compression)
        state_0049.npz    - Full-precision checkpoint used by --resume
        ...
"""

import gc
import json
import time
import struct
import argparse
import threading
from datetime import datetime
from pathlib import Path
from queue import Queue, Empty
from typing import Optional

import numpy as np
import zstandard as zstd

from config import boids as config
from boids import Flock, FlockParams

# Get project root (parent of tools/)
PROJECT_ROOT = Path(__file__).parent.parent
RECORDINGS_DIR = PROJECT_ROOT / "recordings"

# Frame formats (first byte of a .zstd frame)
FORMAT_ABSOLUTE = 1
FORMAT_DELTA = 2

# Position deltas are stored as int16 in units of 1 / DELTA_SCALE
DELTA_SCALE = 1e5

_HEADER = struct.Struct("<BI")
_BLOCK_SIZE = struct.Struct("<I")


def get_recording_dir(session_name: str, create: bool = True) -> Path:
    """Get the directory for a recording session."""
    base = RECORDINGS_DIR / session_name
    if create:
        base.mkdir(parents=True, exist_ok=True)
    return base


def save_metadata(rec_dir: Path, metadata: dict):
    """Save recording metadata."""
    with open(rec_dir / "metadata.json", "w") as f:
        json.dump(metadata, f, indent=2)


def load_metadata(rec_dir: Path) -> dict:
    """Load recording metadata."""
    path = rec_dir / "metadata.json"
    if not path.exists():
        raise FileNotFoundError(f"No metadata.json in {rec_dir}")
    with open(path, "r") as f:
        return json.load(f)


def get_completed_frames(rec_dir: Path) -> int:
    """Count how many consecutive frames have been recorded."""
    count = 0
    while (rec_dir / f"frame_{count:04d}.npz").exists() or (rec_dir / f"frame_{count:04d}.zstd").exists():
        count += 1
    return count


def clear_recording(rec_dir: Path) -> int:
    """Remove frames and checkpoints left by an earlier run of the session."""
    stale = []
    for pattern in ("frame_*.npz", "frame_*.zstd", "frame_*.zstd.tmp", "state_*.npz"):
        stale.extend(rec_dir.glob(pattern))
    for path in stale:
        path.unlink()
    return len(stale)


def save_state(rec_dir: Path, frame_idx: int, positions: np.ndarray, velocities: np.ndarray):
    """Save a full-precision checkpoint and drop older ones."""
    np.savez(rec_dir / f"state_{frame_idx:04d}.npz", positions=positions, velocities=velocities)
    for old in rec_dir.glob("state_*.npz"):
        if old.name != f"state_{frame_idx:04d}.npz":
            old.unlink()


def find_latest_state(rec_dir: Path, max_frame: int) -> tuple:
    """Find the most recent state file at or before ``max_frame``."""
    for frame in range(max_frame, -1, -1):
        state_file = rec_dir / f"state_{frame:04d}.npz"
        if state_file.exists():
            return state_file, frame
    return None, -1


def save_frame(rec_dir: Path, frame_idx: int, positions: np.ndarray, velocities: np.ndarray):
    """Save a single frame to disk (uncompressed for speed)."""
    np.savez(
        rec_dir / f"frame_{frame_idx:04d}.npz",
        positions=positions.astype(np.float32),
        velocities=velocities.astype(np.float32),
    )


# =============================================================================
# ZSTD + DELTA COMPRESSION
# =============================================================================

def _apply_delta(prev_positions: np.ndarray, delta_int: np.ndarray) -> np.ndarray:
    """Reconstruct positions from the previous frame and an int16 delta."""
    return (prev_positions.astype(np.float32) + delta_int.astype(np.float32) / np.float32(DELTA_SCALE)).astype(np.float32)


def compress_frame(positions: np.ndarray, velocities: np.ndarray,
                   prev_positions: Optional[np.ndarray] = None,
                   level: int = 19) -> bytes:
    """
    Compress frame data using zstd, delta-encoding positions when possible.

    Velocities are always stored as absolute float32. Positions are stored as
    int16 differences from ``prev_positions`` when given and when every
    difference fits in int16; otherwise as absolute float32.

    Format:
    - 1 byte: compression format (1=absolute, 2=position delta)
    - 4 bytes: boid count
    - 4 bytes + N bytes: compressed positions
    - 4 bytes + N bytes: compressed velocities
    """
    positions = np.asarray(positions, dtype=np.float32)
    velocities = np.asarray(velocities, dtype=np.float32)
    num_boids = positions.shape[0]

    comp_format = FORMAT_ABSOLUTE
    pos_data = positions.tobytes()

    if prev_positions is not None:
        scaled = np.rint((positions - prev_positions.astype(np.float32)) * DELTA_SCALE)
        if np.all(np.isfinite(scaled)) and np.all(np.abs(scaled) <= np.iinfo(np.int16).max):
            comp_format = FORMAT_DELTA
            pos_data = scaled.astype(np.int16).tobytes()

    cctx = zstd.ZstdCompressor(level=level)
    pos_compressed = cctx.compress(pos_data)
    vel_compressed = cctx.compress(velocities.tobytes())

    result = _HEADER.pack(comp_format, num_boids)
    result += _BLOCK_SIZE.pack(len(pos_compressed)) + pos_compressed
    result += _BLOCK_SIZE.pack(len(vel_compressed)) + vel_compressed
    return result


def frame_format(data: bytes) -> int:
    if len(data) < _HEADER.size:
        raise ValueError("Invalid compressed data")
    return _HEADER.unpack_from(data, 0)[0]


def decompress_frame(data: bytes, prev_positions: Optional[np.ndarray] = None) -> tuple:
    """
    Decompress frame data produced by compress_frame.

    Returns:
        (positions, velocities) float32 arrays of shape (N, 2)
    """
    if len(data) < _HEADER.size:
        raise ValueError("Invalid compressed data")

    comp_format, num_boids = _HEADER.unpack_from(data, 0)
    offset = _HEADER.size

    pos_size = _BLOCK_SIZE.unpack_from(data, offset)[0]
    offset += _BLOCK_SIZE.size
    pos_compressed = data[offset:offset + pos_size]
    offset += pos_size

    vel_size = _BLOCK_SIZE.unpack_from(data, offset)[0]
    offset += _BLOCK_SIZE.size
    vel_compressed = data[offset:offset + vel_size]

    dctx = zstd.ZstdDecompressor()
    pos_data = dctx.decompress(pos_compressed)
    vel_data = dctx.decompress(vel_compressed)

    velocities = np.frombuffer(vel_data, dtype=np.float32).reshape(num_boids, 2).copy()

    if comp_format == FORMAT_ABSOLUTE:
        positions = np.frombuffer(pos_data, dtype=np.float32).reshape(num_boids, 2).copy()
    elif comp_format == FORMAT_DELTA:
        if prev_positions is None:
            raise ValueError("Delta compression requires previous frame")
        delta_int = np.frombuffer(pos_data, dtype=np.int16).reshape(num_boids, 2)
        positions = _apply_delta(prev_positions, delta_int)
    else:
        raise ValueError(f"Unknown compression format: {comp_format}")

    return positions, velocities


def load_frame(rec_dir: Path, frame_idx: int) -> tuple:
    """
    Load a single frame from disk.

    Delta frames are resolved by walking back to the nearest absolute or
    uncompressed frame and replaying the deltas forward.

    Returns:
        (positions, velocities) tuple
    """
    chain = []
    base = None
    current_idx = frame_idx

    while current_idx >= 0:
        zstd_file = rec_dir / f"frame_{current_idx:04d}.zstd"
        npz_file = rec_dir / f"frame_{current_idx:04d}.npz"

        if zstd_file.exists():
            data = zstd_file.read_bytes()
            if frame_format(data) == FORMAT_DELTA:
                chain.append(data)
                current_idx -= 1
                continue
            base = decompress_frame(data)
        elif npz_file.exists():
            with np.load(npz_file) as npz:
                base = (npz["positions"].copy(), npz["velocities"].copy())
        else:
            raise FileNotFoundError(f"Frame {current_idx:04d} not found")
        break

    if base is None:
        raise ValueError(f"Frame {frame_idx:04d} is delta-compressed but no base frame was found")

    positions, velocities = base
    for data in reversed(chain):
        positions, velocities = decompress_frame(data, positions)
    return positions, velocities


class BackgroundCompressor:
    """
    Compresses frames in batches in the background while recording continues.

    Strategy:
    - Frames are saved uncompressed for speed
    - Every batch_size frames, the batch is queued for compression
    - The first frame of a batch is stored absolute, the rest as position deltas
      against the reconstructed previous frame, so rounding never accumulates
    - The .npz file is removed once its .zstd replacement is written
    """

    def __init__(self, rec_dir: Path, batch_size: int = 50, level: int = 19):
        self.rec_dir = rec_dir
        self.batch_size = batch_size
        self.level = level
        self.queue = Queue()
        self.thread = None
        self.running = False
        self.compressed_count = 0
        self.failed_batches = []
        self.total_original_bytes = 0
        self.total_compressed_bytes = 0
        self.lock = threading.Lock()

    def start(self):
        """Start the background compression thread."""
        self.running = True
        self.thread = threading.Thread(target=self._compress_worker, daemon=True)
        self.thread.start()

    def stop(self):
        """Stop the background thread and wait for queued batches."""
        self.queue.put(None)
        if self.thread:
            self.thread.join()
        self.running = False

    def queue_batch(self, start_frame: int, end_frame: int):
        """Queue a batch of frames for compression."""
        self.queue.put((start_frame, end_frame))

    def check_and_queue(self, current_frame: int) -> bool:
        """Queue a batch when ``current_frame`` completes one. Returns True if queued."""
        if (current_frame + 1) % self.batch_size == 0:
            self.queue_batch(current_frame - self.batch_size + 1, current_frame + 1)
            return True
        return False

    def _compress_worker(self):
        """Background worker that compresses batches."""
        while self.running:
            try:
                item = self.queue.get(timeout=1.0)
            except Empty:
                continue
            if item is None:
                break

            start_frame, end_frame = item
            try:
                self.compress_batch(start_frame, end_frame)
            except (OSError, ValueError, zstd.ZstdError) as e:
                # Uncompressed frames stay on disk and remain loadable
                print(f"[Record] Compression of frames {start_frame}-{end_frame - 1} failed: {e}")
                with self.lock:
                    self.failed_batches.append((start_frame, end_frame))

            gc.collect()

    def compress_batch(self, start_frame: int, end_frame: int):
        """Compress a batch of frames with delta compression."""
        prev_positions = None

        for frame_idx in range(start_frame, end_frame):
            uncompressed = self.rec_dir / f"frame_{frame_idx:04d}.npz"
            compressed = self.rec_dir / f"frame_{frame_idx:04d}.zstd"

            if not uncompressed.exists():
                if not compressed.exists():
                    raise FileNotFoundError(f"Frame {frame_idx:04d} not found")
                prev_positions, _ = load_frame(self.rec_dir, frame_idx)
                continue

            with np.load(uncompressed) as npz:
                positions = npz["positions"].copy()
                velocities = npz["velocities"].copy()

            data = compress_frame(positions, velocities, prev_positions, level=self.level)
            tmp = compressed.with_suffix(".zstd.tmp")
            tmp.write_bytes(data)
            tmp.replace(compressed)

            original_size = uncompressed.stat().st_size
            uncompressed.unlink()

            prev_positions, _ = decompress_frame(data, prev_positions)

            with self.lock:
                self.compressed_count += 1
                self.total_original_bytes += original_size
                self.total_compressed_bytes += len(data)

    def get_status(self) -> str:
        with self.lock:
            if self.total_original_bytes == 0:
                return f"{self.compressed_count} compressed"
            ratio = self.total_original_bytes / max(1, self.total_compressed_bytes)
            return f"{self.compressed_count} compressed ({ratio:.1f}x)"


def format_time(seconds: float) -> str:
    """Format seconds as a compact duration."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m"


def print_progress(frame: int, total: int, frame_time: float, elapsed: float, status: str):
    """Print a single updating progress line."""
    remaining = (total - frame - 1) * frame_time
    percent = 100.0 * (frame + 1) / total
    print(
        f"\r[Record] Frame {frame + 1}/{total} ({percent:5.1f}%) | "
        f"{frame_time * 1000:.2f} ms/frame | elapsed {format_time(elapsed)} | "
        f"ETA {format_time(remaining)} | {status}   ",
        end="",
        flush=True,
    )


def build_metadata(session_name: str, num_boids: int, frames: int, seed: int,
                   params: FlockParams, start_time: float) -> dict:
    return {
        "session": session_name,
        "num_boids": num_boids,
        "frames": frames,
        "seed": seed,
        "params": params.to_dict(),
        "start_time": start_time,
        "start_datetime": datetime.fromtimestamp(start_time).isoformat(),
    }


def record(session_name: str, num_boids: int, frames: int, params: FlockParams,
           seed: Optional[int] = None, batch_size: Optional[int] = None,
           level: Optional[int] = None, resume: bool = False, quiet: bool = False) -> Path:
    """
    Record ``frames`` frames of a flock to recordings/<session_name>.

    Frame 0 is the seeded initial state; frame k is the state after k steps.
    With ``resume`` the settings come from the session's metadata and the run
    continues after the newest checkpoint. Without it, frames and checkpoints
    from an earlier run of the same session are removed first. Ctrl+C pauses
    the run and leaves a checkpoint at the last stepped frame.

    Returns:
        The recording directory
    """
    batch_size = batch_size or config.RECORDING["batch_size"]
    level = level or config.RECORDING["compression_level"]
    rec_dir = get_recording_dir(session_name)

    if resume:
        metadata = load_metadata(rec_dir)
        num_boids = metadata["num_boids"]
        frames = metadata["frames"]
        seed = metadata["seed"]
        params = FlockParams(**metadata["params"])

        state_file, state_frame = find_latest_state(rec_dir, frames - 1)
        if state_file is None:
            raise FileNotFoundError(f"No checkpoint to resume from in {rec_dir}")
        with np.load(state_file) as npz:
            flock = Flock.from_state(npz["positions"], npz["velocities"], params=params, frame=state_frame)
        start_frame = state_frame + 1
        print(f"[Record] Resuming {session_name} at frame {start_frame}/{frames}")
    else:
        if seed is None:
            seed = int(np.random.default_rng().integers(0, 2**31 - 1))
        removed = clear_recording(rec_dir)
        if removed:
            print(f"[Record] Overwriting {session_name}: removed {removed} old file(s)")
        metadata = build_metadata(session_name, num_boids, frames, seed, params, time.time())
        save_metadata(rec_dir, metadata)

        flock = Flock(num_boids=num_boids, params=params, seed=seed)
        save_frame(rec_dir, 0, flock.positions, flock.velocities)
        save_state(rec_dir, 0, flock.positions, flock.velocities)
        start_frame = 1
        print(f"[Record] Recording {session_name}: {num_boids:,} boids, {frames} frames, seed {seed}")

    compressor = BackgroundCompressor(rec_dir, batch_size=batch_size, level=level)
    compressor.start()

    start_time = time.time()
    frame_time = 0.0
    interrupted = False
    try:
        if start_frame == 1:
            compressor.check_and_queue(0)

        for frame_idx in range(start_frame, frames):
            t0 = time.perf_counter()
            flock.update()
            save_frame(rec_dir, frame_idx, flock.positions, flock.velocities)
            elapsed_frame = time.perf_counter() - t0
            frame_time = 0.9 * frame_time + 0.1 * elapsed_frame if frame_time else elapsed_frame

            if compressor.check_and_queue(frame_idx):
                save_state(rec_dir, frame_idx, flock.positions, flock.velocities)

            if not quiet:
                print_progress(frame_idx, frames, frame_time, time.time() - start_time, compressor.get_status())
    except KeyboardInterrupt:
        interrupted = True
    finally:
        compressor.stop()

    if interrupted:
        # The flock holds the newest stepped frame, which may not be on disk yet
        last_frame = flock.frame
        if not (rec_dir / f"frame_{last_frame:04d}.zstd").exists():
            save_frame(rec_dir, last_frame, flock.positions, flock.velocities)
        save_state(rec_dir, last_frame, flock.positions, flock.velocities)
        print(f"\n[Record] Paused at frame {last_frame}")
        print(f"[Record] To resume: python -m tools.record {session_name} --resume")
        return rec_dir

    # Compress the trailing partial batch
    last_batch_start = (frames // batch_size) * batch_size
    if last_batch_start < frames:
        compressor.compress_batch(last_batch_start, frames)
    save_state(rec_dir, frames - 1, flock.positions, flock.velocities)

    if not quiet:
        print()
    print(f"[Record] Done: {frames} frames in {format_time(time.time() - start_time)} | {compressor.get_status()}")
    if compressor.failed_batches:
        print(f"[Record] {len(compressor.failed_batches)} batch(es) left uncompressed")
    return rec_dir


def show_status(session_name: str):
    """Print the status of a recording session."""
    rec_dir = get_recording_dir(session_name, create=False)
    if not rec_dir.exists():
        raise FileNotFoundError(f"Recording not found: {session_name}")

    metadata = load_metadata(rec_dir)
    completed = get_completed_frames(rec_dir)
    compressed = len(list(rec_dir.glob("frame_*.zstd")))
    _, state_frame = find_latest_state(rec_dir, metadata["frames"] - 1)

    print(f"[Record] Session:    {session_name}")
    print(f"[Record] Boids:      {metadata['num_boids']:,}")
    print(f"[Record] Frames:     {completed}/{metadata['frames']} ({compressed} compressed)")
    print(f"[Record] Checkpoint: frame {state_frame}")
    print(f"[Record] Seed:       {metadata['seed']}")
    for name, value in metadata["params"].items():
        print(f"[Record]   {name:<22} {value:g}")


def list_recordings() -> list:
    """Print and return all recording sessions."""
    if not RECORDINGS_DIR.exists():
        print("[Record] No recordings yet")
        return []

    sessions = sorted(p.name for p in RECORDINGS_DIR.iterdir() if (p / "metadata.json").exists())
    if not sessions:
        print("[Record] No recordings yet")
    for name in sessions:
        rec_dir = RECORDINGS_DIR / name
        metadata = load_metadata(rec_dir)
        completed = get_completed_frames(rec_dir)
        print(f"[Record] {name:<24} {metadata['num_boids']:>7,} boids  {completed}/{metadata['frames']} frames")
    return sessions


def parse_overrides(items: list) -> dict:
    """Parse ``name=value`` pairs from --set."""
    overrides = {}
    for item in items or []:
        name, sep, value = item.partition("=")
        if not sep:
            raise ValueError(f"Expected name=value, got {item!r}")
        overrides[name.strip()] = float(value)
    return overrides


def main(argv: Optional[list] = None):
    parser = argparse.ArgumentParser(description="Boids headless recorder")
    parser.add_argument("session", nargs="?", help="Session name")
    parser.add_argument("--resume", action="store_true", help="Resume interrupted recording")
    parser.add_argument("--status", action="store_true", help="Show recording status")
    parser.add_argument("--list", action="store_true", help="List all recordings")
    parser.add_argument("--boids", "-n", type=int, default=config.BOIDS["count"], help="Number of boids")
    parser.add_argument("--frames", "-f", type=int, default=config.RECORDING["frames"], help="Number of frames")
    parser.add_argument("--seed", type=int, default=config.BOIDS["seed"], help="Random seed for the initial flock")
    parser.add_argument("--set", action="append", metavar="NAME=VALUE",
                        help="Override a flock parameter (repeatable), e.g. --set cohesion_weight=0.8")
    parser.add_argument("--quiet", "-q", action="store_true", help="No progress line")

    args = parser.parse_args(argv)

    if args.list:
        list_recordings()
        return

    if not args.session:
        parser.error("Session name required")

    if args.status:
        show_status(args.session)
        return

    if args.frames < 1:
        parser.error("--frames must be at least 1")
    if args.boids < 1:
        parser.error("--boids must be at least 1")

    try:
        params = FlockParams.from_config(parse_overrides(args.set))
    except ValueError as e:
        parser.error(str(e))

    record(
        args.session,
        num_boids=args.boids,
        frames=args.frames,
        params=params,
        seed=args.seed,
        resume=args.resume,
        quiet=args.quiet,
    )


if __name__ == "__main__":
    main()
