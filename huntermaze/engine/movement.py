from __future__ import annotations

import math
from typing import Mapping, Protocol

from huntermaze.common.constants import BOUNCE_FACTOR, DIAGONAL_FACTOR
from huntermaze.common.types import Intent, Point
from huntermaze.engine.maze import Maze
from huntermaze.engine.state import PlayerState


class Movable(Protocol):
    x: float
    y: float
    vx: float
    vy: float
    radius: float


def _clear(maze: Maze, x: float, y: float, r: float) -> bool:
    """True if the center and the four radius-offset probes are all open."""
    probes = ((x, y), (x + r, y), (x - r, y), (x, y + r), (x, y - r))
    return not any(maze.is_wall(px, py) for px, py in probes)


def _clear_x(maze: Maze, x: float, y: float, r: float) -> bool:
    # Horizontal slide: center plus the vertical extremes.
    return not any(maze.is_wall(x, py) for py in (y, y + r, y - r))


def _clear_y(maze: Maze, x: float, y: float, r: float) -> bool:
    # Vertical slide: center plus the horizontal extremes.
    return not any(maze.is_wall(px, y) for px in (x, x + r, x - r))


def step(entity: Movable, vx: float, vy: float, maze: Maze, bounce: bool = False) -> Point:
    """Move ``entity`` by ``(vx, vy)``, sliding along walls it runs into.

    The full move is taken when the center and the four radius-offset probes
    are all open. Otherwise each axis is tried on its own, x first, with three
    probes across the direction of travel; a blocked axis stays put and, when
    ``bounce`` is set, its velocity is reflected and halved. The result is
    always clamped inside the maze span.
    """
    r = entity.radius
    new_x = entity.x + vx
    new_y = entity.y + vy
    if _clear(maze, new_x, new_y, r):
        entity.x = new_x
        entity.y = new_y
    else:
        if _clear_x(maze, new_x, entity.y, r):
            entity.x = new_x
        elif bounce:
            entity.vx *= BOUNCE_FACTOR
        if _clear_y(maze, entity.x, new_y, r):
            entity.y = new_y
        elif bounce:
            entity.vy *= BOUNCE_FACTOR
    clamp_to_maze(entity, maze)
    return entity.x, entity.y


def clamp_to_maze(entity: Movable, maze: Maze) -> None:
    r = entity.radius
    entity.x = max(r, min(maze.width - r, entity.x))
    entity.y = max(r, min(maze.height - r, entity.y))


def intent_velocity(intent: Mapping[Intent, bool], speed: float) -> tuple[float, float]:
    vx = 0.0
    vy = 0.0
    if intent.get(Intent.UP):
        vy = -speed
    if intent.get(Intent.DOWN):
        vy = speed
    if intent.get(Intent.LEFT):
        vx = -speed
    if intent.get(Intent.RIGHT):
        vx = speed
    if vx != 0 and vy != 0:
        vx *= DIAGONAL_FACTOR
        vy *= DIAGONAL_FACTOR
    return vx, vy


def update_player(player: PlayerState, intent: Mapping[Intent, bool], maze: Maze) -> None:
    player.vx, player.vy = intent_velocity(intent, player.speed)
    if player.vx != 0 or player.vy != 0:
        player.direction = math.atan2(player.vy, player.vx)
    step(player, player.vx, player.vy, maze)
