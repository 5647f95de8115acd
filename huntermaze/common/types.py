from __future__ import annotations

from enum import Enum, IntEnum
from typing import Tuple

Tile = Tuple[int, int]
Point = Tuple[float, float]


class Cell(IntEnum):
    PATH = 0
    WALL = 1


class Personality(str, Enum):
    FAST = "fast"
    RANDOM = "random"
    SMART = "smart"
    BALANCED = "balanced"


class Status(str, Enum):
    RUNNING = "running"
    WON = "won"
    LOST = "lost"


class Intent(str, Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    RESTART = "restart"
