"""Input handling: keyboard controls for the flocking parameters."""

from dataclasses import replace

import pygame
from pygame.locals import *

from config import boids as config
from boids import Flock


class InputHandler:
    """Maps keys to simulation controls and parameter adjustments."""

    def __init__(self, flock: Flock):
        self.flock = flock
        self.controls = list(config.CONTROLS.keys())
        self.selected = 0
        self.paused = False
        self.step_requested = False

    @property
    def selected_name(self) -> str:
        return self.controls[self.selected]

    def handle_event(self, event: pygame.event.Event) -> bool:
        """
        Handle a single pygame event.
        Returns False if the application should quit, True otherwise.
        """
        if event.type == QUIT:
            return False
        elif event.type == KEYDOWN:
            if event.key == K_ESCAPE:
                return False
            elif event.key == K_SPACE:
                self.paused = not self.paused
                print(f"[App] {'Paused' if self.paused else 'Running'}")
            elif event.key == K_PERIOD:
                if self.paused:
                    self.step_requested = True
            elif event.key == K_r:
                self.flock.reseed()
            elif event.key == K_TAB:
                direction = -1 if event.mod & KMOD_SHIFT else 1
                self.selected = (self.selected + direction) % len(self.controls)
            elif event.key == K_UP:
                self.adjust(self.selected_name, 1)
            elif event.key == K_DOWN:
                self.adjust(self.selected_name, -1)

        return True

    def adjust(self, name: str, steps: int):
        """Move parameter ``name`` by ``steps`` increments, clamped to its range."""
        _label, step, low, high = config.CONTROLS[name]
        current = getattr(self.flock.params, name)
        value = round(min(high, max(low, current + steps * step)), 6)
        if value == current:
            return

        self.flock.set_params(replace(self.flock.params, **{name: value}))
        print(f"[App] {name} = {value:g}")

    def consume_step(self) -> bool:
        """Whether the simulation should advance this frame."""
        if not self.paused:
            return True
        if self.step_requested:
            self.step_requested = False
            return True
        return False
