from __future__ import annotations

import base64
import json
import logging
import queue
import sqlite3
import threading
import time
import zlib
from collections.abc import Callable

from huntermaze.persist.base import Persistence

logger = logging.getLogger(__name__)


class SqlitePersistence(Persistence):
    def __init__(
        self,
        db_path: str,
        replay_compress: bool = False,
        replay_max_ticks: int = 0,
        replay_max_sessions: int = 0,
    ) -> None:
        self.db_path = db_path
        self._pragmas = (
            "PRAGMA journal_mode=WAL",
            "PRAGMA synchronous=NORMAL",
            "PRAGMA busy_timeout=5000",
        )
        self._local = threading.local()
        self._replay_compress = replay_compress
        self._replay_max_ticks = replay_max_ticks
        self._replay_max_sessions = replay_max_sessions
        self._init_db()
        self._write_queue: queue.Queue[
            tuple[Callable[[sqlite3.Connection], object], threading.Event, dict[str, object]] | None
        ] = queue.Queue()
        self._writer_stop = threading.Event()
        self._writer_thread = threading.Thread(
            target=self._writer_loop, name="sqlite-writer", daemon=True
        )
        self._writer_thread.start()

    def _writer_loop(self) -> None:
        conn = sqlite3.connect(self.db_path)
        self._apply_pragmas(conn)
        while True:
            task = self._write_queue.get()
            if task is None:
                self._write_queue.task_done()
                break
            fn, event, holder = task
            try:
                holder["result"] = fn(conn)
                conn.commit()
            except Exception as exc:
                conn.rollback()
                holder["error"] = exc
                logger.exception("SQLite write failed")
            finally:
                event.set()
                self._write_queue.task_done()
        conn.close()

    def _run_write(self, fn: Callable[[sqlite3.Connection], object], wait: bool = True):
        if self._writer_stop.is_set():
            raise RuntimeError("Persistence writer stopped")
        event = threading.Event()
        holder: dict[str, object] = {"result": None, "error": None}
        self._write_queue.put((fn, event, holder))
        if not wait:
            return None
        event.wait()
        if holder["error"] is not None:
            raise holder["error"]
        return holder["result"]

    def flush(self) -> None:
        self._write_queue.join()

    def _init_db(self) -> None:
        conn = self._get_conn()
        conn.execute("""
                CREATE TABLE IF NOT EXISTS results (
                    session_id TEXT NOT NULL,
                    call_sign TEXT NOT NULL,
                    score INTEGER NOT NULL,
                    won INTEGER NOT NULL,
                    elapsed REAL NOT NULL,
                    ghosts_tagged INTEGER NOT NULL,
                    created_at INTEGER NOT NULL
                )
                """)
        conn.execute("""
                CREATE TABLE IF NOT EXISTS replay_ticks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT NOT NULL,
                    tick INTEGER NOT NULL,
                    snapshot TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    UNIQUE(session_id, tick)
                )
                """)
        conn.execute("""
                CREATE TABLE IF NOT EXISTS replay_sessions (
                    session_id TEXT PRIMARY KEY,
                    seed INTEGER NOT NULL,
                    started_at INTEGER NOT NULL,
                    ended_at INTEGER,
                    total_ticks INTEGER DEFAULT 0,
                    games_played INTEGER DEFAULT 0,
                    best_score INTEGER DEFAULT 0,
                    wins INTEGER DEFAULT 0
                )
                """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_results_score ON results(score)")
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_replay_session_tick ON replay_ticks(session_id, tick)"
        )
        conn.commit()

    def _apply_pragmas(self, conn: sqlite3.Connection) -> None:
        for pragma in self._pragmas:
            conn.execute(pragma)

    def _get_conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(self.db_path)
            self._apply_pragmas(conn)
            self._local.conn = conn
        return conn

    def close(self) -> None:
        self.flush()
        self._writer_stop.set()
        self._write_queue.put(None)
        self._writer_thread.join(timeout=2)
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    def record_result(
        self,
        session_id: str,
        call_sign: str,
        score: int,
        won: bool,
        elapsed: float,
        ghosts_tagged: int,
    ) -> None:
        created_at = int(time.time())

        def _task(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT INTO results(session_id, call_sign, score, won, elapsed, "
                "ghosts_tagged, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (session_id, call_sign, score, int(won), elapsed, ghosts_tagged, created_at),
            )

        self._run_write(_task, wait=False)

    def leaderboard(self, limit: int = 20) -> list[dict]:
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT call_sign, score, won, elapsed, ghosts_tagged FROM results "
            "ORDER BY score DESC, elapsed ASC LIMIT ?",
            (limit,),
        ).fetchall()
        return [
            {
                "call_sign": r[0],
                "score": r[1],
                "won": bool(r[2]),
                "elapsed": r[3],
                "ghosts_tagged": r[4],
            }
            for r in rows
        ]

    def record_replay_tick(self, session_id: str, tick: int, snapshot: dict) -> None:
        payload = self._encode_snapshot(snapshot)
        created_at = int(time.time())

        def _task(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT OR REPLACE INTO replay_ticks(session_id, tick, snapshot, created_at) "
                "VALUES (?, ?, ?, ?)",
                (session_id, tick, payload, created_at),
            )
            if self._replay_max_ticks > 0:
                cutoff = tick - self._replay_max_ticks
                if cutoff >= 0:
                    conn.execute(
                        "DELETE FROM replay_ticks WHERE session_id = ? AND tick <= ?",
                        (session_id, cutoff),
                    )

        self._run_write(_task, wait=False)

    def register_replay_session(self, session_id: str, seed: int) -> None:
        started_at = int(time.time())

        def _task(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT OR IGNORE INTO replay_sessions(session_id, seed, started_at) "
                "VALUES (?, ?, ?)",
                (session_id, seed, started_at),
            )
            self._enforce_replay_session_limit(conn)

        self._run_write(_task, wait=False)

    def finalize_replay_session(self, session_id: str, total_ticks: int, stats: dict) -> None:
        ended_at = int(time.time())
        games_played = int(stats.get("games_played", 0))
        best_score = int(stats.get("best_score", 0))
        wins = int(stats.get("wins", 0))

        def _task(conn: sqlite3.Connection) -> None:
            conn.execute(
                "UPDATE replay_sessions SET ended_at = ?, total_ticks = ?, games_played = ?, "
                "best_score = ?, wins = ? WHERE session_id = ?",
                (ended_at, total_ticks, games_played, best_score, wins, session_id),
            )
            self._enforce_replay_session_limit(conn)

        self._run_write(_task, wait=False)

    def list_replay_sessions(self, limit: int = 50) -> list[dict]:
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT session_id, seed, started_at, ended_at, total_ticks, games_played, "
            "best_score, wins FROM replay_sessions ORDER BY started_at DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [
            {
                "session_id": row[0],
                "seed": row[1],
                "started_at": row[2],
                "ended_at": row[3],
                "total_ticks": row[4],
                "games_played": row[5],
                "best_score": row[6],
                "wins": row[7],
            }
            for row in rows
        ]

    def get_replay_ticks(
        self, session_id: str, start_tick: int = 0, limit: int = 100
    ) -> list[dict]:
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT tick, snapshot FROM replay_ticks WHERE session_id = ? AND tick >= ? "
            "ORDER BY tick ASC LIMIT ?",
            (session_id, start_tick, limit),
        ).fetchall()
        return [
            {"tick": tick, "snapshot": self._decode_snapshot(snapshot)} for tick, snapshot in rows
        ]

    def _encode_snapshot(self, snapshot: dict) -> str:
        payload = json.dumps(snapshot, separators=(",", ":"))
        if not self._replay_compress:
            return payload
        compressed = zlib.compress(payload.encode("utf-8"))
        encoded = base64.b64encode(compressed).decode("ascii")
        return f"zlib:{encoded}"

    def _decode_snapshot(self, payload: str) -> dict:
        if payload.startswith("zlib:"):
            encoded = payload.split(":", 1)[1]
            raw = zlib.decompress(base64.b64decode(encoded)).decode("utf-8")
            return json.loads(raw)
        return json.loads(payload)

    def _enforce_replay_session_limit(self, conn: sqlite3.Connection) -> None:
        if self._replay_max_sessions <= 0:
            return
        active_rows = conn.execute(
            "SELECT session_id FROM replay_sessions WHERE ended_at IS NULL"
        ).fetchall()
        keep_ids = [row[0] for row in active_rows]
        remaining = max(0, self._replay_max_sessions - len(keep_ids))
        if remaining > 0:
            rows = conn.execute(
                "SELECT session_id FROM replay_sessions WHERE ended_at IS NOT NULL "
                "ORDER BY started_at DESC LIMIT ?",
                (remaining,),
            ).fetchall()
            keep_ids.extend(row[0] for row in rows)
        if not keep_ids:
            return
        placeholders = ",".join("?" for _ in keep_ids)
        conn.execute(
            f"DELETE FROM replay_ticks WHERE session_id NOT IN ({placeholders})",
            keep_ids,
        )
        conn.execute(
            f"DELETE FROM replay_sessions WHERE session_id NOT IN ({placeholders})",
            keep_ids,
        )
