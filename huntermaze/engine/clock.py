from __future__ import annotations

import math
import random
from typing import Callable, Mapping

from huntermaze.common.constants import (
    BASE_CELL_SIZE,
    BASE_TAG_SCORE,
    COMBO_STEP,
    COMBO_WINDOW,
    INITIAL_GRID_SIZE,
    MAX_TIME,
    SHRINK_INTERVAL,
    TAG_RADIUS,
    TIME_BONUS_FACTOR,
    WORLD_SPAN,
)
from huntermaze.common.types import Intent, Status
from huntermaze.engine.controls import InputState
from huntermaze.engine.maze import Maze
from huntermaze.engine.movement import update_player
from huntermaze.engine.pursuit import PursuitAI, create_ghosts
from huntermaze.engine.state import GhostState, PlayerState, SessionState, TickEvents

IntentSource = Callable[[], Mapping[Intent, bool]]


class SimulationClock:
    """One game session: maze, player, ghosts and the fixed-phase tick.

    The clock is the only writer of its state. Hosts call ``tick(dt)`` once
    per frame and read ``snapshot()`` between ticks. Velocities are in world
    units per tick; ``dt`` only drives the countdown.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        input_source: IntentSource | None = None,
        max_time: float = MAX_TIME,
        shrink_interval: float = SHRINK_INTERVAL,
        initial_size: int = INITIAL_GRID_SIZE,
        base_cell_size: float = BASE_CELL_SIZE,
        world_span: float = WORLD_SPAN,
        strict_grid: bool = False,
    ) -> None:
        self.rng = rng or random.Random()
        self.input = InputState()
        self.input_source: IntentSource = input_source or self.input
        self.max_time = max_time
        self.shrink_interval = shrink_interval
        self.initial_size = initial_size
        self.base_cell_size = base_cell_size
        self.world_span = world_span
        self.strict_grid = strict_grid
        self.ai = PursuitAI(self.rng)
        self.new_session()

    def new_session(self) -> None:
        """(Re)build the maze, entities and session bookkeeping."""
        self.maze = Maze(
            self.initial_size,
            rng=self.rng,
            base_cell_size=self.base_cell_size,
            world_span=self.world_span,
            strict=self.strict_grid,
        )
        center = self.maze.size // 2
        x, y = self.maze.find_nearest_open_cell(*self.maze.cell_center(center, center))
        self.player = PlayerState(x=x, y=y)
        self.ghosts: list[GhostState] = create_ghosts(self.maze)
        self.state = SessionState(max_time=self.max_time, time_remaining=self.max_time)

    def restart(self) -> None:
        self.input.clear()
        self.new_session()

    @property
    def status(self) -> Status:
        return self.state.status

    def ghosts_remaining(self) -> int:
        return sum(1 for g in self.ghosts if not g.tagged)

    def tick(self, dt: float) -> TickEvents:
        """Advance one frame of ``dt`` seconds and return this tick's events."""
        intent = self.input_source()
        if self.state.finished:
            if intent.get(Intent.RESTART):
                self.restart()
                return self.state.tick_events
            return TickEvents()
        state = self.state
        state.ticks += 1
        state.tick_events = TickEvents()
        state.time_remaining -= dt
        self._maybe_shrink()
        update_player(self.player, intent, self.maze)
        player_pos = (self.player.x, self.player.y)
        for ghost in self.ghosts:
            self.ai.update(ghost, player_pos, self.maze)
        self._resolve_tags()
        if self.ghosts_remaining() == 0:
            state.time_remaining = max(0.0, state.time_remaining)
            state.status = Status.WON
        elif state.time_remaining <= 0:
            state.time_remaining = 0.0
            state.status = Status.LOST
        return state.tick_events

    def _maybe_shrink(self) -> None:
        state = self.state
        if state.elapsed - state.last_shrink_elapsed < self.shrink_interval:
            return
        if not self.maze.shrink():
            return
        state.tick_events.flash = True
        state.last_shrink_elapsed = state.elapsed
        if self.maze.is_wall(self.player.x, self.player.y):
            self.player.x, self.player.y = self.maze.find_nearest_open_cell(
                self.player.x, self.player.y
            )
            state.tick_events.relocated.append("player")
        for ghost in self.ghosts:
            # Tagged ghosts stay frozen where they were caught.
            if ghost.tagged or not self.maze.is_wall(ghost.x, ghost.y):
                continue
            ghost.x, ghost.y = self.maze.find_nearest_open_cell(ghost.x, ghost.y)
            state.tick_events.relocated.append(ghost.ghost_id)

    def _resolve_tags(self) -> None:
        for ghost in self.ghosts:
            if ghost.tagged:
                continue
            if math.hypot(self.player.x - ghost.x, self.player.y - ghost.y) < TAG_RADIUS:
                self.tag_ghost(ghost)

    def tag_ghost(self, ghost: GhostState) -> int:
        """Mark ``ghost`` tagged and award points; returns the points awarded."""
        state = self.state
        ghost.tagged = True
        elapsed = state.elapsed
        if elapsed - state.last_tag_elapsed < COMBO_WINDOW:
            state.combo += 1
        else:
            state.combo = 0
        state.last_tag_elapsed = elapsed
        time_bonus = max(0.0, state.time_remaining) / state.max_time * TIME_BONUS_FACTOR
        points = math.floor(BASE_TAG_SCORE * time_bonus * (1 + state.combo * COMBO_STEP))
        state.score += points
        state.tick_events.tagged.append(ghost.ghost_id)
        state.tick_events.points.append(points)
        return points

    def snapshot(self) -> dict:
        """Read-only view for the render collaborator."""
        state = self.state
        events = state.tick_events
        return {
            "status": state.status.value,
            "tick": state.ticks,
            "time_remaining": state.time_remaining,
            "max_time": state.max_time,
            "elapsed": state.elapsed,
            "score": state.score,
            "combo": state.combo,
            "ghosts_remaining": self.ghosts_remaining(),
            "size": self.maze.size,
            "cell_size": self.maze.cell_size,
            "cells": self.maze.render_rows(),
            "player": {
                "x": self.player.x,
                "y": self.player.y,
                "radius": self.player.radius,
                "direction": self.player.direction,
            },
            "ghosts": [
                {
                    "id": g.ghost_id,
                    "personality": g.personality.value,
                    "color": g.color,
                    "x": g.x,
                    "y": g.y,
                    "radius": g.radius,
                    "tagged": g.tagged,
                    "wobble": g.wobble,
                }
                for g in self.ghosts
            ],
            "events": {
                "flash": events.flash,
                "tagged": list(events.tagged),
                "points": list(events.points),
                "relocated": list(events.relocated),
            },
        }
