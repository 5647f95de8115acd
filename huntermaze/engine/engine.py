from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass
from typing import Mapping

from huntermaze.common.types import Status
from huntermaze.engine.clock import SimulationClock
from huntermaze.persist.base import Persistence

logger = logging.getLogger(__name__)

SEED_RANGE = 2**31


@dataclass
class SessionRecord:
    session_id: str
    call_sign: str
    seed: int
    clock: SimulationClock
    total_ticks: int = 0
    finished_ticks: int = 0
    games_played: int = 0
    best_score: int = 0
    wins: int = 0


class TickEngine:
    """Registry of independent game sessions driven by one host loop."""

    def __init__(
        self,
        persistence: Persistence,
        seed: int = 42,
        max_sessions: int | None = None,
        finished_session_ticks: int = 3600,
        enable_replay_logging: bool = True,
        replay_every_ticks: int = 30,
        **clock_options,
    ) -> None:
        self.persistence = persistence
        self.rng = random.Random(seed)
        self.max_sessions = max_sessions
        self.finished_session_ticks = finished_session_ticks
        self.enable_replay_logging = enable_replay_logging
        self.replay_every_ticks = replay_every_ticks
        self.clock_options = clock_options
        self.sessions: dict[str, SessionRecord] = {}

    def create_session(self, seed: int | None = None) -> SessionRecord | None:
        """Start a new session; returns None when the session cap is reached."""
        if self.max_sessions is not None and len(self.sessions) >= self.max_sessions:
            return None
        if seed is None:
            seed = self.rng.randrange(SEED_RANGE)
        clock = SimulationClock(rng=random.Random(seed), **self.clock_options)
        record = SessionRecord(
            session_id=str(uuid.uuid4()),
            call_sign=self._random_call_sign(),
            seed=seed,
            clock=clock,
        )
        self.sessions[record.session_id] = record
        if self.enable_replay_logging:
            self.persistence.register_replay_session(record.session_id, seed)
        logger.info(
            "Session %s (%s) created with seed %s", record.session_id, record.call_sign, seed
        )
        return record

    def get_session(self, session_id: str) -> SessionRecord | None:
        return self.sessions.get(session_id)

    def set_input(self, session_id: str, keys: Mapping[str, bool]) -> bool:
        record = self.sessions.get(session_id)
        if not record:
            return False
        record.clock.input.replace(keys)
        return True

    def press(self, session_id: str, key: str) -> bool:
        record = self.sessions.get(session_id)
        if not record:
            return False
        record.clock.input.press(key)
        return True

    def release(self, session_id: str, key: str) -> bool:
        record = self.sessions.get(session_id)
        if not record:
            return False
        record.clock.input.release(key)
        return True

    def restart_session(self, session_id: str) -> bool:
        record = self.sessions.get(session_id)
        if not record:
            return False
        record.clock.restart()
        record.finished_ticks = 0
        return True

    def tick_once(self, dt: float) -> None:
        """Advance every session by one frame of ``dt`` seconds."""
        for record in list(self.sessions.values()):
            self._tick_session(record, dt)

    def tick_session(self, session_id: str, dt: float, steps: int = 1) -> bool:
        record = self.sessions.get(session_id)
        if not record:
            return False
        for _ in range(steps):
            self._tick_session(record, dt)
            if session_id not in self.sessions:
                break
        return True

    def _tick_session(self, record: SessionRecord, dt: float) -> None:
        clock = record.clock
        was_finished = clock.state.finished
        clock.tick(dt)
        record.total_ticks += 1
        if was_finished and not clock.state.finished:
            record.finished_ticks = 0
            logger.info("Session %s restarted", record.session_id)
        if not was_finished and clock.state.finished:
            self._record_result(record)
            self._record_replay_tick(record)
        elif (
            not clock.state.finished
            and self.replay_every_ticks > 0
            and record.total_ticks % self.replay_every_ticks == 0
        ):
            self._record_replay_tick(record)
        if clock.state.finished:
            record.finished_ticks += 1
            if record.finished_ticks >= self.finished_session_ticks:
                self.drop_session(record.session_id)

    def drop_session(self, session_id: str) -> None:
        record = self.sessions.pop(session_id, None)
        if not record:
            return
        if self.enable_replay_logging:
            self.persistence.finalize_replay_session(
                session_id,
                total_ticks=record.total_ticks,
                stats={
                    "games_played": record.games_played,
                    "best_score": record.best_score,
                    "wins": record.wins,
                },
            )
        logger.info("Session %s dropped after %s ticks", session_id, record.total_ticks)

    def render_session_view(self, session_id: str) -> dict:
        record = self.sessions.get(session_id)
        if not record:
            return {}
        view = record.clock.snapshot()
        view["session_id"] = record.session_id
        view["call_sign"] = record.call_sign
        return view

    def _record_result(self, record: SessionRecord) -> None:
        clock = record.clock
        state = clock.state
        won = state.status == Status.WON
        tagged = len(clock.ghosts) - clock.ghosts_remaining()
        record.games_played += 1
        record.best_score = max(record.best_score, state.score)
        if won:
            record.wins += 1
        self.persistence.record_result(
            record.session_id,
            record.call_sign,
            state.score,
            won,
            state.elapsed,
            tagged,
        )
        logger.info(
            "Session %s %s with score %s after %.1fs",
            record.session_id,
            state.status.value,
            state.score,
            state.elapsed,
        )

    def _record_replay_tick(self, record: SessionRecord) -> None:
        if not self.enable_replay_logging:
            return
        self.persistence.record_replay_tick(
            record.session_id, record.total_ticks, record.clock.snapshot()
        )

    def _random_call_sign(self) -> str:
        """Generate a short call sign for leaderboard identity."""
        adjectives = ["Neon", "Swift", "Sly", "Grim", "Lucky"]
        nouns = ["Hunter", "Tracker", "Stalker", "Seeker", "Warden"]
        return f"{self.rng.choice(adjectives)}-{self.rng.choice(nouns)}"
