"""Boundary rendering for spatial reference."""

import math

from OpenGL.GL import *
from config import boids as config
from boids.kernels import EDGE_THRESHOLD


class Boundary:
    """Draws the [-1, 1] world square and the edge-avoidance circle."""

    def __init__(self):
        self.color = config.BOUNDARY["color"]
        self.edge_color = config.BOUNDARY["edge_color"]
        self.segments = config.BOUNDARY["circle_segments"]

    def draw(self, aspect: float):
        """
        Draw the boundary.

        Args:
            aspect: Same x-axis correction the boids are drawn with
        """
        e = 1.0

        glBegin(GL_LINE_LOOP)
        glColor3f(*self.color)
        glVertex2f(-e * aspect, -e); glVertex2f(e * aspect, -e)
        glVertex2f(e * aspect, e); glVertex2f(-e * aspect, e)
        glEnd()

        glBegin(GL_LINE_LOOP)
        glColor3f(*self.edge_color)
        for k in range(self.segments):
            angle = 2.0 * math.pi * k / self.segments
            glVertex2f(math.cos(angle) * EDGE_THRESHOLD * aspect, math.sin(angle) * EDGE_THRESHOLD)
        glEnd()
