"""Numba kernels for the 2D flocking step and the oriented-triangle transform.

Both kernels are written per element (one agent, one vertex) and driven by
``prange`` loops. The simulation driver only ever reads the previous arrays
and writes a separate pair of output arrays, so the per-agent updates are
independent of execution order.

Kernels use ``error_model="numpy"`` so that normalizing a zero-length vector
yields NaN instead of raising, and leave ``fastmath`` off so NaN and exact
zero comparisons behave per IEEE.
"""

import math
import numpy as np
from numba import njit, prange


# Agents whose distance from the origin exceeds this are pushed back inward
EDGE_THRESHOLD = 0.95

# Replacement for an exactly-zero velocity
EPSILON_VELOCITY_X = 0.0
EPSILON_VELOCITY_Y = 1e-4

# Triangle template in local space: forward is +y
# Default triangle scale; the viewer passes config.BOIDS["size"]
TRIANGLE_SCALE = 0.03
TRIANGLE_TEMPLATE = np.array([
    [0.0, 0.5],     # apex
    [-0.3, -0.5],   # base left
    [0.3, -0.5],    # base right
], dtype=np.float64)

VERTS_PER_BOID = 3


# ============================================================================
# SIMULATION KERNEL
# ============================================================================

@njit(cache=True, error_model="numpy")
def update_boid(
    positions: np.ndarray,
    velocities: np.ndarray,
    i: int,
    cohesion_weight: float,
    separation_weight: float,
    alignment_weight: float,
    edge_avoidance_weight: float,
    avoidance_radius: float,
    detection_radius: float,
    min_velocity: float,
    max_velocity: float,
    max_acceleration: float,
):
    """
    Compute the next state of boid ``i`` from the previous snapshot.

    ``min_velocity`` and ``max_acceleration`` are accepted but not applied.

    Returns:
        (px, py, vx, vy) tuple for the next frame
    """
    num_boids = positions.shape[0]
    px, py = positions[i, 0], positions[i, 1]
    vx, vy = velocities[i, 0], velocities[i, 1]

    neighbor_count = 0
    avoid_count = 0
    pos_x, pos_y = 0.0, 0.0
    head_x, head_y = 0.0, 0.0
    sep_x, sep_y = 0.0, 0.0

    for j in range(num_boids):
        if j == i:
            continue

        ox, oy = positions[j, 0], positions[j, 1]
        dx = ox - px
        dy = oy - py
        dist = math.sqrt(dx * dx + dy * dy)

        if dist < detection_radius:
            neighbor_count += 1
            pos_x += ox
            pos_y += oy

            ovx, ovy = velocities[j, 0], velocities[j, 1]
            o_speed = math.sqrt(ovx * ovx + ovy * ovy)
            head_x += ovx / o_speed
            head_y += ovy / o_speed

            if dist < avoidance_radius:
                avoid_count += 1
                sep_x += px - ox
                sep_y += py - oy

    nvx, nvy = vx, vy

    if neighbor_count > 0:
        # Cohesion: steer toward the neighbors' center of mass
        coh_x = pos_x / neighbor_count - px
        coh_y = pos_y / neighbor_count - py
        coh_mag = math.sqrt(coh_x * coh_x + coh_y * coh_y)
        nvx += coh_x / coh_mag * cohesion_weight
        nvy += coh_y / coh_mag * cohesion_weight

        # Alignment: NaN when the headings cancel out exactly
        align_x = head_x / neighbor_count
        align_y = head_y / neighbor_count
        align_mag = math.sqrt(align_x * align_x + align_y * align_y)
        nvx += align_x / align_mag * alignment_weight
        nvy += align_y / align_mag * alignment_weight

        # Separation
        if sep_x != 0.0 or sep_y != 0.0:
            sep_mag = math.sqrt(sep_x * sep_x + sep_y * sep_y)
            nvx += sep_x / sep_mag * separation_weight
            nvy += sep_y / sep_mag * separation_weight

    # Edge avoidance
    dist_center = math.sqrt(px * px + py * py)
    if dist_center > EDGE_THRESHOLD:
        nvx += -px / dist_center * edge_avoidance_weight
        nvy += -py / dist_center * edge_avoidance_weight

    # Limit speed
    speed = math.sqrt(nvx * nvx + nvy * nvy)
    if speed > max_velocity:
        nvx = nvx / speed * max_velocity
        nvy = nvy / speed * max_velocity
        speed = math.sqrt(nvx * nvx + nvy * nvy)

    if speed == 0.0:
        nvx = EPSILON_VELOCITY_X
        nvy = EPSILON_VELOCITY_Y

    return px + nvx, py + nvy, nvx, nvy


@njit(parallel=True, cache=True, error_model="numpy")
def simulate_step_numba(
    positions: np.ndarray,
    velocities: np.ndarray,
    out_positions: np.ndarray,
    out_velocities: np.ndarray,
    cohesion_weight: float,
    separation_weight: float,
    alignment_weight: float,
    edge_avoidance_weight: float,
    avoidance_radius: float,
    detection_radius: float,
    min_velocity: float,
    max_velocity: float,
    max_acceleration: float,
):
    """Advance every boid one frame, reading the previous arrays and writing the out arrays."""
    num_boids = positions.shape[0]
    for i in prange(num_boids):
        px, py, vx, vy = update_boid(
            positions, velocities, i,
            cohesion_weight, separation_weight, alignment_weight,
            edge_avoidance_weight, avoidance_radius, detection_radius,
            min_velocity, max_velocity, max_acceleration,
        )
        out_positions[i, 0] = px
        out_positions[i, 1] = py
        out_velocities[i, 0] = vx
        out_velocities[i, 1] = vy


# ============================================================================
# RENDER / TRANSFORM KERNEL
# ============================================================================

@njit(cache=True, error_model="numpy")
def transform_vertex(
    positions: np.ndarray,
    velocities: np.ndarray,
    vertex_index: int,
    aspect: float,
    scale: float,
):
    """
    Screen position of one triangle vertex.

    Three consecutive vertex indices belong to the same boid: apex, then the
    two base corners. The template is multiplied by ``scale`` and rotated
    so that its apex points along the boid's velocity.
    """
    i = vertex_index // VERTS_PER_BOID
    corner = vertex_index % VERTS_PER_BOID

    vx, vy = velocities[i, 0], velocities[i, 1]
    speed = math.sqrt(vx * vx + vy * vy)
    hx = vx / speed
    hy = vy / speed

    lx = TRIANGLE_TEMPLATE[corner, 0]
    ly = TRIANGLE_TEMPLATE[corner, 1]

    # Columns: local right -> (hy, -hx), local forward -> (hx, hy)
    rx = lx * hy + ly * hx
    ry = -lx * hx + ly * hy

    sx = (positions[i, 0] + scale * rx) * aspect
    sy = positions[i, 1] + scale * ry
    return sx, sy


@njit(parallel=True, cache=True, error_model="numpy")
def build_vertices_numba(
    positions: np.ndarray,
    velocities: np.ndarray,
    vertices: np.ndarray,
    aspect: float,
    scale: float,
):
    """Fill ``vertices`` (num_boids * 3, 2) with screen-space triangle corners."""
    num_vertices = positions.shape[0] * VERTS_PER_BOID
    for v in prange(num_vertices):
        sx, sy = transform_vertex(positions, velocities, v, aspect, scale)
        vertices[v, 0] = sx
        vertices[v, 1] = sy
