"""2D flocking simulation."""

from .params import FlockParams
from .state import FlockState
from .flock import Flock

__all__ = ["FlockParams", "FlockState", "Flock"]
