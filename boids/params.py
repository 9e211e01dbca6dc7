"""Flocking parameters passed to the simulation kernel each frame."""

from dataclasses import dataclass, asdict, fields
from typing import Optional

from config import boids as config


@dataclass(frozen=True)
class FlockParams:
    """
    Parameter set for one simulation step.

    Attributes:
        cohesion_weight: Pull toward the neighbors' center of mass
        separation_weight: Push away from boids inside the avoidance radius
        alignment_weight: Pull toward the neighbors' average heading
        edge_avoidance_weight: Push back toward the center near the boundary
        avoidance_radius: Distance below which neighbors repel
        detection_radius: Distance below which boids count as neighbors
        min_velocity: Reserved, not applied
        max_velocity: Speed clamp
        max_acceleration: Reserved, not applied
    """
    cohesion_weight: float = 0.5
    separation_weight: float = 0.5
    alignment_weight: float = 0.5
    edge_avoidance_weight: float = 0.5
    avoidance_radius: float = 0.1
    detection_radius: float = 0.2
    min_velocity: float = 0.005
    max_velocity: float = 0.005
    max_acceleration: float = 0.005

    @classmethod
    def field_names(cls) -> tuple:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_config(cls, overrides: Optional[dict] = None) -> "FlockParams":
        """
        Build parameters from ``config.BOIDS`` with optional overrides.

        Keys of ``config.BOIDS`` that are not kernel parameters (count, seed, size)
        are ignored; unknown override keys raise ``ValueError``.
        """
        names = cls.field_names()
        values = {name: float(config.BOIDS[name]) for name in names if name in config.BOIDS}

        if overrides:
            unknown = sorted(set(overrides) - set(names))
            if unknown:
                raise ValueError(f"Unknown flock parameter(s): {', '.join(unknown)}")
            values.update({name: float(value) for name, value in overrides.items()})

        return cls(**values)

    def as_args(self) -> tuple:
        """Positional kernel arguments, in kernel signature order."""
        return (
            self.cohesion_weight,
            self.separation_weight,
            self.alignment_weight,
            self.edge_avoidance_weight,
            self.avoidance_radius,
            self.detection_radius,
            self.min_velocity,
            self.max_velocity,
            self.max_acceleration,
        )

    def to_dict(self) -> dict:
        return asdict(self)
