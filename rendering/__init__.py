"""Rendering components for the 2D boids simulation."""

from .boundary import Boundary
from .flock_renderer import FlockRenderer
from .text import TextRenderer

__all__ = ["Boundary", "FlockRenderer", "TextRenderer"]
