from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_bool(value: str, default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _parse_origins(value: str | None) -> list[str]:
    if not value:
        return [
            "http://localhost:8000",
            "http://127.0.0.1:8000",
            "http://localhost:5173",
        ]
    return [origin.strip() for origin in value.split(",") if origin.strip()]


@dataclass(frozen=True)
class Settings:
    """Runtime settings loaded from environment variables.

    Gameplay tuning that never changes per deployment lives in
    ``huntermaze.common.constants``; only knobs worth flipping per host
    are read here.
    """

    db_path: str = os.getenv("HUNTERMAZE_DB_PATH", "huntermaze.db")
    tick_hz: float = float(os.getenv("HUNTERMAZE_TICK_HZ", "60"))
    random_seed: int = int(os.getenv("HUNTERMAZE_RANDOM_SEED", "42"))
    enable_tick_loop: bool = _env_bool(os.getenv("HUNTERMAZE_ENABLE_TICK_LOOP", "1"))
    cors_origins: list[str] = field(
        default_factory=lambda: _parse_origins(os.getenv("HUNTERMAZE_CORS_ORIGINS"))
    )
    api_key: str | None = os.getenv("HUNTERMAZE_API_KEY")
    max_sessions: int = int(os.getenv("HUNTERMAZE_MAX_SESSIONS", "200"))
    finished_session_ticks: int = int(os.getenv("HUNTERMAZE_FINISHED_SESSION_TICKS", "3600"))
    max_time: float = float(os.getenv("HUNTERMAZE_MAX_TIME", "120"))
    shrink_interval: float = float(os.getenv("HUNTERMAZE_SHRINK_INTERVAL", "20"))
    initial_size: int = int(os.getenv("HUNTERMAZE_INITIAL_SIZE", "15"))
    base_cell_size: float = float(os.getenv("HUNTERMAZE_BASE_CELL_SIZE", "40"))
    world_span: float = float(os.getenv("HUNTERMAZE_WORLD_SPAN", "600"))
    strict_grid: bool = _env_bool(os.getenv("HUNTERMAZE_STRICT_GRID", "0"))
    enable_replay_logging: bool = _env_bool(os.getenv("HUNTERMAZE_REPLAY_LOGGING", "1"))
    replay_every_ticks: int = int(os.getenv("HUNTERMAZE_REPLAY_EVERY_TICKS", "30"))
    replay_compress: bool = _env_bool(os.getenv("HUNTERMAZE_REPLAY_COMPRESS", "0"))
    replay_max_ticks: int = int(os.getenv("HUNTERMAZE_REPLAY_MAX_TICKS", "0"))
    replay_max_sessions: int = int(os.getenv("HUNTERMAZE_REPLAY_MAX_SESSIONS", "0"))
    leaderboard_cache_seconds: int = int(
        os.getenv("HUNTERMAZE_LEADERBOARD_CACHE_SECONDS", "30")
    )


settings = Settings()
