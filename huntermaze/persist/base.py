from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List


class Persistence(ABC):
    """Abstract persistence interface for session results and replays."""

    @abstractmethod
    def record_result(
        self,
        session_id: str,
        call_sign: str,
        score: int,
        won: bool,
        elapsed: float,
        ghosts_tagged: int,
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def leaderboard(self, limit: int = 20) -> List[Dict]:
        raise NotImplementedError

    @abstractmethod
    def record_replay_tick(self, session_id: str, tick: int, snapshot: dict) -> None:
        raise NotImplementedError

    @abstractmethod
    def register_replay_session(self, session_id: str, seed: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def finalize_replay_session(self, session_id: str, total_ticks: int, stats: dict) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_replay_sessions(self, limit: int = 50) -> List[Dict]:
        raise NotImplementedError

    @abstractmethod
    def get_replay_ticks(
        self, session_id: str, start_tick: int = 0, limit: int = 100
    ) -> List[Dict]:
        raise NotImplementedError
