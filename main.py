"""
2D Boids Simulation
===================

A real-time flocking simulation: every frame each boid steers by cohesion,
alignment, separation and edge avoidance, then is drawn as a triangle
pointing along its velocity.

Controls:
    - TAB / Shift+TAB: Select parameter
    - UP/DOWN: Adjust selected parameter
    - SPACE: Pause/Resume
    - . (period): Single step while paused
    - R: Reseed the flock
    - ESC: Quit
"""

from core.application import Application


def main():
    app = Application()
    app.run()


if __name__ == "__main__":
    main()
