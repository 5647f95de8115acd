from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class NewSessionRequest(BaseModel):
    seed: Optional[int] = None


class NewSessionResponse(BaseModel):
    session_id: str
    call_sign: str
    seed: int


class InputRequest(BaseModel):
    """Either a full key map, key-down/key-up events, or both.

    ``keys`` replaces the pressed set first, then ``down`` and ``up`` are
    applied in that order.
    """

    keys: Optional[Dict[str, bool]] = None
    down: List[str] = Field(default_factory=list)
    up: List[str] = Field(default_factory=list)


class TickRequest(BaseModel):
    dt: float = Field(default=1 / 60, gt=0, le=1.0)
    steps: int = Field(default=1, ge=1, le=600)


class PlayerView(BaseModel):
    x: float
    y: float
    radius: float
    direction: float


class GhostView(BaseModel):
    id: str
    personality: str
    color: str
    x: float
    y: float
    radius: float
    tagged: bool
    wobble: float


class TickEventsView(BaseModel):
    flash: bool = False
    tagged: List[str] = Field(default_factory=list)
    points: List[int] = Field(default_factory=list)
    relocated: List[str] = Field(default_factory=list)


class SessionSnapshot(BaseModel):
    session_id: str
    call_sign: str
    status: str
    tick: int
    time_remaining: float
    max_time: float
    elapsed: float
    score: int
    combo: int
    ghosts_remaining: int
    size: int
    cell_size: float
    cells: List[str]
    player: PlayerView
    ghosts: List[GhostView]
    events: TickEventsView


class SessionSummary(BaseModel):
    session_id: str
    call_sign: str
    status: str
    score: int
    total_ticks: int


class LeaderboardEntry(BaseModel):
    call_sign: str
    score: int
    won: bool
    elapsed: float
    ghosts_tagged: int


class ReplaySessionSummary(BaseModel):
    session_id: str
    seed: int
    started_at: int
    ended_at: int | None = None
    total_ticks: int
    games_played: int
    best_score: int
    wins: int


class ReplayTickEntry(BaseModel):
    tick: int
    snapshot: dict


class ReplayResponse(BaseModel):
    session_id: str
    ticks: List[ReplayTickEntry]
    has_more: bool
