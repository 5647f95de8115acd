from __future__ import annotations

from dataclasses import dataclass, field

from huntermaze.common.constants import (
    GHOST_COLORS,
    GHOST_RADIUS,
    GHOST_SPEEDS,
    MAX_TIME,
    PLAYER_RADIUS,
    PLAYER_SPEED,
)
from huntermaze.common.types import Personality, Status


def _validate_motion(speed: float, radius: float) -> None:
    if speed < 0:
        raise ValueError(f"Speed must be non-negative, got {speed}")
    if radius < 0:
        raise ValueError(f"Radius must be non-negative, got {radius}")


@dataclass
class PlayerState:
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    radius: float = PLAYER_RADIUS
    speed: float = PLAYER_SPEED
    direction: float = 0.0

    def __post_init__(self) -> None:
        _validate_motion(self.speed, self.radius)


@dataclass
class GhostState:
    ghost_id: str
    personality: Personality
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    radius: float = GHOST_RADIUS
    speed: float | None = None
    color: str | None = None
    tagged: bool = False
    wobble: float = 0.0

    def __post_init__(self) -> None:
        # Accepts the plain string form; an unknown name raises ValueError.
        self.personality = Personality(self.personality)
        if self.speed is None:
            self.speed = GHOST_SPEEDS[self.personality]
        if self.color is None:
            self.color = GHOST_COLORS[self.personality]
        _validate_motion(self.speed, self.radius)


@dataclass
class TickEvents:
    flash: bool = False
    tagged: list[str] = field(default_factory=list)
    points: list[int] = field(default_factory=list)
    relocated: list[str] = field(default_factory=list)


@dataclass
class SessionState:
    max_time: float = MAX_TIME
    time_remaining: float = MAX_TIME
    score: int = 0
    combo: int = 0
    last_tag_elapsed: float = 0.0
    last_shrink_elapsed: float = 0.0
    status: Status = Status.RUNNING
    ticks: int = 0
    tick_events: TickEvents = field(default_factory=TickEvents)

    @property
    def elapsed(self) -> float:
        return self.max_time - self.time_remaining

    @property
    def finished(self) -> bool:
        return self.status != Status.RUNNING
