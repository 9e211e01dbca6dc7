"""Flock management - Numba kernels over double-buffered state."""

from typing import Optional

import numpy as np

from config import boids as config
from .kernels import (
    VERTS_PER_BOID,
    build_vertices_numba,
    simulate_step_numba,
    update_boid,
)
from .params import FlockParams
from .state import FlockState


class Flock:
    """
    A fixed-size flock stepped one frame at a time.

    Every step reads the previous snapshot and writes the next one into a
    separate buffer; the buffers are swapped once all boids are done.
    """

    def __init__(self, num_boids: Optional[int] = None, params: Optional[FlockParams] = None,
                 seed: Optional[int] = None, size: Optional[float] = None, warmup: bool = True):
        self.num_boids = int(num_boids if num_boids is not None else config.BOIDS["count"])
        self.params = params if params is not None else FlockParams.from_config()
        self.seed = seed if seed is not None else config.BOIDS["seed"]
        self.size = float(size if size is not None else config.BOIDS["size"])
        self._rng = np.random.default_rng(self.seed)

        self.state = FlockState.random(self.num_boids, self._rng)

        self.verts_per_boid = VERTS_PER_BOID
        self._vertices = np.zeros((self.num_boids * self.verts_per_boid, 2), dtype=np.float64)

        if warmup:
            self._warmup_numba()

        print(f"[Flock] Initialized {self.num_boids:,} boids")

    @classmethod
    def from_state(cls, positions: np.ndarray, velocities: np.ndarray,
                   params: Optional[FlockParams] = None, frame: int = 0) -> "Flock":
        """Build a flock around existing agent arrays (tests, resumed recordings)."""
        flock = cls(num_boids=len(positions), params=params, warmup=False)
        flock.state.load(positions, velocities, frame=frame)
        return flock

    @property
    def frame(self) -> int:
        return self.state.frame

    @property
    def positions(self) -> np.ndarray:
        return self.state.positions

    @property
    def velocities(self) -> np.ndarray:
        return self.state.velocities

    def _warmup_numba(self):
        """Pre-compile Numba functions."""
        n = 8
        pos = np.random.rand(n, 2).astype(np.float64) * 2 - 1
        vel = np.random.rand(n, 2).astype(np.float64) * 2 - 1
        out_pos = np.zeros((n, 2), dtype=np.float64)
        out_vel = np.zeros((n, 2), dtype=np.float64)
        verts = np.zeros((n * VERTS_PER_BOID, 2), dtype=np.float64)

        simulate_step_numba(pos, vel, out_pos, out_vel, *self.params.as_args())
        build_vertices_numba(out_pos, out_vel, verts, 1.0, self.size)

    def set_params(self, params: FlockParams):
        """Parameters take effect from the next step."""
        self.params = params

    def reseed(self, seed: Optional[int] = None):
        """Scatter the flock again; the boid count stays the same."""
        if seed is not None:
            self._rng = np.random.default_rng(seed)
        fresh = FlockState.random(self.num_boids, self._rng)
        self.state.load(fresh.positions, fresh.velocities)
        print(f"[Flock] Reseeded {self.num_boids:,} boids")

    def update(self):
        """Advance the flock by one frame (parallel over boids)."""
        positions, velocities = self.state.front_buffers()
        out_positions, out_velocities = self.state.back_buffers()

        simulate_step_numba(
            positions,
            velocities,
            out_positions,
            out_velocities,
            *self.params.as_args()
        )

        self.state.swap()

    def update_sequential(self):
        """Reference step: one boid at a time against an untouched copy of the previous frame."""
        positions, velocities = self.state.snapshot()
        out_positions, out_velocities = self.state.back_buffers()
        args = self.params.as_args()

        for i in range(self.num_boids):
            px, py, vx, vy = update_boid(positions, velocities, i, *args)
            out_positions[i] = (px, py)
            out_velocities[i] = (vx, vy)

        self.state.swap()

    def build_vertices(self, aspect: float) -> np.ndarray:
        """Screen-space triangle vertices for the current frame, 3 per boid."""
        positions, velocities = self.state.front_buffers()
        build_vertices_numba(positions, velocities, self._vertices, float(aspect), self.size)
        return self._vertices
