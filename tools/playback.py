"""
Boids Recording Playback
========================

Plays back frames saved by tools.record, drawing each boid with the same
oriented-triangle kernel as the live viewer.

Usage:
    python -m tools.playback <session_name>                 # Playback with defaults
    python -m tools.playback <session_name> --fps 60        # Custom FPS
    python -m tools.playback <session_name> --speed 2.0     # 2x playback speed
    python -m tools.playback <session_name> --loop          # Loop playback

Controls during playback:
    SPACE       - Pause/Resume
    LEFT/RIGHT  - Step frame
    UP/DOWN     - Adjust playback speed
    R           - Restart from beginning
    L           - Toggle loop mode
    ESC         - Quit
"""

import argparse
from typing import Optional

import numpy as np
import pygame
from pygame.locals import *
from OpenGL.GL import *

from config import boids as config
from boids.kernels import VERTS_PER_BOID, build_vertices_numba
from rendering import Boundary, FlockRenderer, TextRenderer
from tools.record import get_recording_dir, load_metadata, get_completed_frames as get_frame_count, load_frame


class PlaybackApp:
    """Playback application for recorded boids runs."""

    def __init__(self, session_name: str, fps: int = 30, loop: bool = False,
                 initial_speed: float = 1.0):
        self.session_name = session_name
        self.target_fps = fps
        self.loop = loop

        self.rec_dir = get_recording_dir(session_name, create=False)
        if not self.rec_dir.exists():
            raise FileNotFoundError(f"Recording not found: {session_name}")

        self.metadata = load_metadata(self.rec_dir)
        self.frame_count = get_frame_count(self.rec_dir)

        if self.frame_count == 0:
            raise ValueError(f"No frames found in recording: {session_name}")

        print(f"[Playback] Loading: {session_name}")
        print(f"[Playback] Boids: {self.metadata['num_boids']:,}")
        print(f"[Playback] Frames: {self.frame_count}/{self.metadata['frames']}")

        # Recordings are small (N x 2 floats per frame), so load everything up front
        self.frames = []
        for i in range(self.frame_count):
            positions, velocities = load_frame(self.rec_dir, i)
            self.frames.append((positions.astype(np.float64), velocities.astype(np.float64)))
            if (i + 1) % 200 == 0:
                print(f"  Loaded {i + 1}/{self.frame_count}")

        num_boids = self.frames[0][0].shape[0]
        self._vertices = np.zeros((num_boids * VERTS_PER_BOID, 2), dtype=np.float64)

        pygame.init()
        self.width = config.WINDOW["width"]
        self.height = config.WINDOW["height"]
        pygame.display.set_mode((self.width, self.height), DOUBLEBUF | OPENGL)
        pygame.display.set_caption(f"Boids Playback: {session_name}")
        self.aspect = self.height / self.width
        self.size = config.BOIDS["size"]

        self.boundary = Boundary()
        self.flock_renderer = FlockRenderer()
        self.text_renderer = TextRenderer()
        self.clock = pygame.time.Clock()

        self.current_frame = 0
        self.playing = True
        self.speed = initial_speed
        self.running = True

        self._setup_gl()

    def _setup_gl(self):
        glClearColor(*config.COLORS["background"])
        glMatrixMode(GL_PROJECTION)
        glLoadIdentity()
        glOrtho(-1.0, 1.0, -1.0, 1.0, -1.0, 1.0)
        glMatrixMode(GL_MODELVIEW)
        glLoadIdentity()

    def _handle_events(self):
        for event in pygame.event.get():
            if event.type == QUIT:
                self.running = False
            elif event.type == KEYDOWN:
                if event.key == K_ESCAPE:
                    self.running = False
                elif event.key == K_SPACE:
                    self.playing = not self.playing
                elif event.key == K_LEFT:
                    self.current_frame = max(0, self.current_frame - 1)
                elif event.key == K_RIGHT:
                    self.current_frame = min(self.frame_count - 1, self.current_frame + 1)
                elif event.key == K_UP:
                    self.speed = min(4.0, self.speed * 1.5)
                elif event.key == K_DOWN:
                    self.speed = max(0.1, self.speed / 1.5)
                elif event.key == K_r:
                    self.current_frame = 0
                elif event.key == K_l:
                    self.loop = not self.loop

    def _render(self):
        glClear(GL_COLOR_BUFFER_BIT)
        glLoadIdentity()

        positions, velocities = self.frames[self.current_frame]
        build_vertices_numba(positions, velocities, self._vertices, self.aspect, self.size)

        self.boundary.draw(self.aspect)
        self.flock_renderer.draw(self._vertices)
        self._draw_hud()

        pygame.display.flip()

    def _draw_hud(self):
        fps = self.clock.get_fps()
        status = "playing" if self.playing else "paused"
        loop_status = " | loop" if self.loop else ""
        text = (f"Frame {self.current_frame + 1}/{self.frame_count} | Speed: {self.speed:.1f}x | "
                f"FPS: {fps:.0f} | {status}{loop_status}")
        self.text_renderer.draw_text(text, 10, 10, (self.width, self.height))

    def run(self):
        print(f"\n[Playback] Starting at {self.target_fps} FPS, speed {self.speed:.1f}x")
        print("[Playback] Controls: SPACE=pause, LEFT/RIGHT=frame, UP/DOWN=speed, R=restart, L=loop, ESC=quit\n")

        frame_accumulator = 0.0

        while self.running:
            dt = self.clock.tick(60) / 1000.0
            self._handle_events()

            if self.playing:
                frame_accumulator += dt * self.target_fps * self.speed

                while frame_accumulator >= 1.0:
                    frame_accumulator -= 1.0
                    self.current_frame += 1

                    if self.current_frame >= self.frame_count:
                        if self.loop:
                            self.current_frame = 0
                            frame_accumulator = 0.0
                        else:
                            self.current_frame = self.frame_count - 1
                            self.playing = False
                            break

            self._render()

        pygame.quit()


def main(argv: Optional[list] = None):
    parser = argparse.ArgumentParser(
        description="Boids recording playback",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m tools.playback session_name                # Default settings
  python -m tools.playback session_name --fps 60       # 60 FPS playback
  python -m tools.playback session_name --speed 2.0    # 2x playback speed
        """
    )
    parser.add_argument("session", help="Recording session name")
    parser.add_argument("--fps", type=int, default=30,
                        help="Playback FPS (default: 30)")
    parser.add_argument("--loop", action="store_true",
                        help="Loop playback")
    parser.add_argument("--speed", type=float, default=1.0,
                        help="Initial playback speed multiplier (default: 1.0, range: 0.1-4.0)")

    args = parser.parse_args(argv)

    speed = args.speed
    if speed < 0.1 or speed > 4.0:
        print(f"[Playback] Warning: Speed {speed} out of range, clamping to 0.1-4.0")
        speed = max(0.1, min(4.0, speed))

    app = PlaybackApp(args.session, fps=args.fps, loop=args.loop, initial_speed=speed)
    app.run()


if __name__ == "__main__":
    main()
