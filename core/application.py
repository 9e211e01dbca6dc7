"""Main application class that ties everything together."""

import pygame
from pygame.locals import *
from OpenGL.GL import *

from config import boids as config
from .input_handler import InputHandler
from rendering import Boundary, FlockRenderer, TextRenderer
from boids import Flock


class Application:
    """Main application managing the frame loop and rendering."""

    def __init__(self):
        pygame.init()
        self.width = config.WINDOW["width"]
        self.height = config.WINDOW["height"]
        pygame.display.set_mode((self.width, self.height), DOUBLEBUF | OPENGL)
        pygame.display.set_caption(config.WINDOW["title"])

        # Simulation
        self.flock = Flock(num_boids=config.BOIDS["count"])
        self.input_handler = InputHandler(self.flock)

        # Rendering components
        self.boundary = Boundary()
        self.flock_renderer = FlockRenderer()
        self.text_renderer = TextRenderer()

        # x-axis correction so the world stays square on wide windows
        self.aspect = self.height / self.width

        # State
        self.clock = pygame.time.Clock()
        self.running = True
        self.fps = 0

        self._setup_gl()
        print("[App] Ready!")

    def _setup_gl(self):
        """Initialize OpenGL settings."""
        glClearColor(*config.COLORS["background"])
        glDisable(GL_DEPTH_TEST)

        glMatrixMode(GL_PROJECTION)
        glLoadIdentity()
        glOrtho(-1.0, 1.0, -1.0, 1.0, -1.0, 1.0)
        glMatrixMode(GL_MODELVIEW)
        glLoadIdentity()

    def _handle_events(self):
        """Process all pending pygame events."""
        for event in pygame.event.get():
            if not self.input_handler.handle_event(event):
                self.running = False

    def _update(self):
        """Advance the simulation one fixed step."""
        if self.input_handler.consume_step():
            self.flock.update()

    def _hud_lines(self) -> list:
        text_color = config.COLORS["text"]
        selected_color = config.COLORS["text_selected"]
        status = "PAUSED" if self.input_handler.paused else "running"

        lines = [
            (f"Boids: {self.flock.num_boids}  |  Frame: {self.flock.frame}  |  FPS: {self.fps:.0f}  |  {status}", text_color),
            ("TAB: select  UP/DOWN: adjust  SPACE: pause  .: step  R: reseed  ESC: quit", text_color),
        ]
        for name, (label, _step, _low, _high) in config.CONTROLS.items():
            value = getattr(self.flock.params, name)
            marker = ">" if name == self.input_handler.selected_name else " "
            color = selected_color if marker == ">" else text_color
            lines.append((f"{marker} {label:<22} {value:.3f}", color))
        return lines

    def _render(self):
        """Render the scene."""
        glClear(GL_COLOR_BUFFER_BIT)
        glLoadIdentity()

        self.boundary.draw(self.aspect)
        self.flock_renderer.draw(self.flock.build_vertices(self.aspect))

        screen_size = (self.width, self.height)
        self.text_renderer.draw_lines(self._hud_lines(), 10, 10, screen_size)

        pygame.display.flip()

    def run(self):
        """Main application loop."""
        while self.running:
            self.clock.tick(60)
            self.fps = self.clock.get_fps()

            self._handle_events()
            self._update()
            self._render()

        pygame.quit()
