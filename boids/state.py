"""Double-buffered agent state."""

from typing import Optional, Tuple

import numpy as np


class FlockState:
    """
    Front/back buffer pair of agent positions and velocities.

    The front buffer is the snapshot of the previous frame. A step writes the
    whole back buffer and only then swaps, so nothing reads a half-written
    frame.
    """

    def __init__(self, positions: np.ndarray, velocities: np.ndarray):
        positions = np.ascontiguousarray(positions, dtype=np.float64)
        velocities = np.ascontiguousarray(velocities, dtype=np.float64)

        if positions.ndim != 2 or positions.shape[1] != 2:
            raise ValueError(f"positions must have shape (N, 2), got {positions.shape}")
        if velocities.shape != positions.shape:
            raise ValueError(
                f"velocities shape {velocities.shape} does not match positions shape {positions.shape}"
            )
        if positions.shape[0] == 0:
            raise ValueError("A flock needs at least one boid")

        self._positions = positions.copy()
        self._velocities = velocities.copy()
        self._back_positions = np.empty_like(self._positions)
        self._back_velocities = np.empty_like(self._velocities)
        self.frame = 0

    @classmethod
    def random(cls, count: int, rng: Optional[np.random.Generator] = None) -> "FlockState":
        """Seed ``count`` boids with positions and velocities uniform in [-1, 1)."""
        if count <= 0:
            raise ValueError(f"Boid count must be positive, got {count}")
        rng = rng if rng is not None else np.random.default_rng()
        positions = rng.uniform(-1.0, 1.0, size=(count, 2))
        velocities = rng.uniform(-1.0, 1.0, size=(count, 2))
        return cls(positions, velocities)

    @property
    def count(self) -> int:
        return self._positions.shape[0]

    @property
    def positions(self) -> np.ndarray:
        """Current snapshot positions (read-only view)."""
        view = self._positions.view()
        view.flags.writeable = False
        return view

    @property
    def velocities(self) -> np.ndarray:
        """Current snapshot velocities (read-only view)."""
        view = self._velocities.view()
        view.flags.writeable = False
        return view

    def snapshot(self) -> Tuple[np.ndarray, np.ndarray]:
        """Independent copy of the current frame."""
        return self._positions.copy(), self._velocities.copy()

    def back_buffers(self) -> Tuple[np.ndarray, np.ndarray]:
        """Arrays the next frame is written into."""
        return self._back_positions, self._back_velocities

    def front_buffers(self) -> Tuple[np.ndarray, np.ndarray]:
        """Writable arrays of the current frame, for kernels only."""
        return self._positions, self._velocities

    def swap(self):
        """Publish the back buffer as the new current frame."""
        self._positions, self._back_positions = self._back_positions, self._positions
        self._velocities, self._back_velocities = self._back_velocities, self._velocities
        self.frame += 1

    def load(self, positions: np.ndarray, velocities: np.ndarray, frame: int = 0):
        """Replace the current frame in place (reseed or resume). The count cannot change."""
        positions = np.asarray(positions, dtype=np.float64)
        velocities = np.asarray(velocities, dtype=np.float64)
        if positions.shape != self._positions.shape or velocities.shape != self._velocities.shape:
            raise ValueError(
                f"Cannot load state of shape {positions.shape} into a flock of shape {self._positions.shape}"
            )
        np.copyto(self._positions, positions)
        np.copyto(self._velocities, velocities)
        self.frame = frame
