"""Tests for core.input_handler module."""

from __future__ import annotations

import numpy as np
import pygame
import pytest

from boids import Flock, FlockParams
from config import boids as config
from core.input_handler import InputHandler


def _key(key: int, mod: int = 0) -> pygame.event.Event:
    return pygame.event.Event(pygame.KEYDOWN, key=key, mod=mod)


@pytest.fixture
def handler() -> InputHandler:
    flock = Flock.from_state(
        np.array([[0.0, 0.0], [0.1, 0.1]]),
        np.array([[0.0, 0.001], [0.001, 0.0]]),
        params=FlockParams(),
    )
    return InputHandler(flock)


class TestQuit:
    def test_escape_quits(self, handler) -> None:
        assert handler.handle_event(_key(pygame.K_ESCAPE)) is False

    def test_window_close_quits(self, handler) -> None:
        assert handler.handle_event(pygame.event.Event(pygame.QUIT)) is False

    def test_other_keys_continue(self, handler) -> None:
        assert handler.handle_event(_key(pygame.K_z)) is True


class TestParameterControls:
    def test_tab_cycles_selection(self, handler) -> None:
        names = list(config.CONTROLS)
        assert handler.selected_name == names[0]
        handler.handle_event(_key(pygame.K_TAB))
        assert handler.selected_name == names[1]
        handler.handle_event(_key(pygame.K_TAB, pygame.KMOD_LSHIFT))
        handler.handle_event(_key(pygame.K_TAB, pygame.KMOD_LSHIFT))
        assert handler.selected_name == names[-1]

    def test_up_increases_selected_parameter(self, handler) -> None:
        before = handler.flock.params.cohesion_weight
        handler.handle_event(_key(pygame.K_UP))
        assert handler.flock.params.cohesion_weight == pytest.approx(before + 0.1)

    def test_adjust_clamps_to_range(self, handler) -> None:
        handler.adjust("separation_weight", 50)
        assert handler.flock.params.separation_weight == 1.0
        handler.adjust("separation_weight", -50)
        assert handler.flock.params.separation_weight == 0.0

    def test_velocity_step_is_fine_grained(self, handler) -> None:
        handler.adjust("max_velocity", 1)
        assert handler.flock.params.max_velocity == pytest.approx(0.01)

    def test_adjust_replaces_params_object(self, handler) -> None:
        original = handler.flock.params
        handler.adjust("alignment_weight", -1)
        assert handler.flock.params is not original
        assert original.alignment_weight == 0.5


class TestStepping:
    def test_runs_by_default(self, handler) -> None:
        assert handler.consume_step() is True

    def test_pause_blocks_steps(self, handler) -> None:
        handler.handle_event(_key(pygame.K_SPACE))
        assert handler.paused
        assert handler.consume_step() is False

    def test_single_step_while_paused(self, handler) -> None:
        handler.handle_event(_key(pygame.K_SPACE))
        handler.handle_event(_key(pygame.K_PERIOD))
        assert handler.consume_step() is True
        assert handler.consume_step() is False

    def test_reseed_key(self, handler) -> None:
        before = handler.flock.positions.copy()
        handler.handle_event(_key(pygame.K_r))
        assert not np.array_equal(handler.flock.positions, before)
