"""Draws a flock as oriented triangles."""

import numpy as np
from OpenGL.GL import *
from OpenGL.arrays import vbo

from config import boids as config


class FlockRenderer:
    """Uploads the render kernel's vertices and draws them with GL_TRIANGLES."""

    def __init__(self, color=None):
        self.color = color if color is not None else config.COLORS["boid"]
        self._gl_vertices = None
        self._vbo_vertices = None
        self._vbos_initialized = False

    def _init_vbos(self):
        """Initialize VBO for fast GPU rendering."""
        if self._vbos_initialized:
            return

        try:
            self._vbo_vertices = vbo.VBO(self._gl_vertices, usage=GL_DYNAMIC_DRAW)
            self._vbos_initialized = True
        except Exception as e:
            # Fallback to client-side arrays
            print(f"[Render] VBO init failed, using client arrays: {e}")
            self._vbos_initialized = False

    def draw(self, vertices: np.ndarray):
        """
        Draw triangles from screen-space vertices.

        Args:
            vertices: (num_boids * 3, 2) array from Flock.build_vertices
        """
        total_verts = len(vertices)
        if total_verts == 0:
            return

        if self._gl_vertices is None or self._gl_vertices.shape != vertices.shape:
            self._gl_vertices = np.zeros(vertices.shape, dtype=np.float32)
            self._vbos_initialized = False
        np.copyto(self._gl_vertices, vertices, casting="same_kind")

        if not self._vbos_initialized:
            self._init_vbos()

        glColor3f(*self.color)

        if self._vbos_initialized and self._vbo_vertices is not None:
            # VBO rendering path (faster)
            self._vbo_vertices.set_array(self._gl_vertices)
            self._vbo_vertices.bind()
            glEnableClientState(GL_VERTEX_ARRAY)
            glVertexPointer(2, GL_FLOAT, 0, None)

            glDrawArrays(GL_TRIANGLES, 0, total_verts)

            self._vbo_vertices.unbind()
            glDisableClientState(GL_VERTEX_ARRAY)
        else:
            glEnableClientState(GL_VERTEX_ARRAY)
            glVertexPointer(2, GL_FLOAT, 0, self._gl_vertices)
            glDrawArrays(GL_TRIANGLES, 0, total_verts)
            glDisableClientState(GL_VERTEX_ARRAY)
