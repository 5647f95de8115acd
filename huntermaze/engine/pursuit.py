from __future__ import annotations

import math
import random

from huntermaze.common.constants import (
    FLEE_DISTANCE,
    PATROL_REHEAD_PROB,
    PATROL_SPEED_FACTOR,
    RANDOM_REHEAD_PROB,
    WOBBLE_STEP,
)
from huntermaze.common.types import Personality, Point
from huntermaze.engine.maze import Maze
from huntermaze.engine.movement import step
from huntermaze.engine.state import GhostState

SMART_SPREAD = math.pi / 2
BALANCED_SPREAD = 0.5


class PursuitAI:
    """Per-tick ghost steering.

    The only state is the ghost's velocity: each policy either re-heads it
    or leaves it as it was, then the ghost moves with wall bouncing.
    Randomness comes solely from the injected generator.
    """

    def __init__(self, rng: random.Random) -> None:
        self.rng = rng

    def update(self, ghost: GhostState, player: Point, maze: Maze) -> None:
        if ghost.tagged:
            return
        ghost.wobble += WOBBLE_STEP
        dx = ghost.x - player[0]
        dy = ghost.y - player[1]
        dist = math.hypot(dx, dy)
        if dist < FLEE_DISTANCE:
            self._flee(ghost, dx, dy, dist)
        elif self.rng.random() < PATROL_REHEAD_PROB or _is_still(ghost):
            self._set_heading(ghost, self._random_angle(), ghost.speed * PATROL_SPEED_FACTOR)
        if _is_still(ghost):
            self._set_heading(ghost, self._random_angle(), ghost.speed)
        step(ghost, ghost.vx, ghost.vy, maze, bounce=True)

    def _flee(self, ghost: GhostState, dx: float, dy: float, dist: float) -> None:
        personality = ghost.personality
        if personality == Personality.FAST:
            if dist == 0:
                self._set_heading(ghost, self._random_angle(), ghost.speed)
            else:
                ghost.vx = dx / dist * ghost.speed
                ghost.vy = dy / dist * ghost.speed
        elif personality == Personality.RANDOM:
            if self.rng.random() < RANDOM_REHEAD_PROB:
                self._set_heading(ghost, self._random_angle(), ghost.speed)
        elif personality == Personality.SMART:
            angle = math.atan2(dy, dx) + (self.rng.random() - 0.5) * SMART_SPREAD
            self._set_heading(ghost, angle, ghost.speed)
        elif personality == Personality.BALANCED:
            angle = math.atan2(dy, dx) + (self.rng.random() - 0.5) * BALANCED_SPREAD
            self._set_heading(ghost, angle, ghost.speed)

    def _random_angle(self) -> float:
        return self.rng.random() * math.tau

    @staticmethod
    def _set_heading(ghost: GhostState, angle: float, speed: float) -> None:
        ghost.vx = math.cos(angle) * speed
        ghost.vy = math.sin(angle) * speed


def _is_still(ghost: GhostState) -> bool:
    return ghost.vx == 0 and ghost.vy == 0


def create_ghosts(maze: Maze) -> list[GhostState]:
    """Spawn one ghost per personality near the four inner corners.

    Spawn points are snapped to the center of the nearest open cell so no
    ghost starts inside a wall.
    """
    cs = maze.cell_size
    near = 2 * cs
    far = (maze.size - 3) * cs
    corners = [
        (Personality.FAST, near, near),
        (Personality.RANDOM, far, near),
        (Personality.SMART, near, far),
        (Personality.BALANCED, far, far),
    ]
    ghosts: list[GhostState] = []
    for personality, x, y in corners:
        x, y = maze.find_nearest_open_cell(x, y)
        ghosts.append(GhostState(ghost_id=personality.value, personality=personality, x=x, y=y))
    return ghosts
