from pathlib import Path

import pytest
from fastapi.testclient import TestClient

import huntermaze.api.app as app_module
from huntermaze.common.config import Settings
from huntermaze.engine.maze import Maze


def _client(monkeypatch, tmp_path: Path, **overrides) -> TestClient:
    options = {
        "db_path": str(tmp_path / "api.db"),
        "enable_tick_loop": False,
        "api_key": None,
        "replay_every_ticks": 1,
    }
    options.update(overrides)
    monkeypatch.setattr(app_module, "settings", Settings(**options))
    monkeypatch.setitem(app_module.leaderboard_cache, "data", [])
    monkeypatch.setitem(app_module.leaderboard_cache, "timestamp", 0)
    return TestClient(app_module.app)


@pytest.fixture
def client(monkeypatch, tmp_path):
    with _client(monkeypatch, tmp_path) as test_client:
        yield test_client


def _new_session(client, **body) -> dict:
    res = client.post("/session/new", json=body or None)
    assert res.status_code == 200
    return res.json()


def test_new_session_and_state(client):
    created = _new_session(client, seed=12)
    assert created["seed"] == 12
    res = client.get(f"/session/{created['session_id']}/state")
    assert res.status_code == 200
    data = res.json()
    assert data["status"] == "running"
    assert data["call_sign"] == created["call_sign"]
    assert data["size"] == 15
    assert len(data["ghosts"]) == 4
    assert data["time_remaining"] == 120


def test_tick_advances_clock(client):
    session_id = _new_session(client)["session_id"]
    res = client.post(f"/session/{session_id}/tick", json={"dt": 0.5, "steps": 4})
    assert res.status_code == 200
    data = res.json()
    assert data["time_remaining"] == 118
    assert data["tick"] == 4


def test_tick_rejects_bad_dt(client):
    session_id = _new_session(client)["session_id"]
    res = client.post(f"/session/{session_id}/tick", json={"dt": 0})
    assert res.status_code == 422


def test_input_moves_player(client):
    session_id = _new_session(client)["session_id"]
    record = app_module.engine.get_session(session_id)
    inner = "#" + "." * 13 + "#"
    record.clock.maze = Maze.from_rows(["#" * 15] + [inner] * 13 + ["#" * 15])
    record.clock.player.x, record.clock.player.y = 300, 300

    res = client.post(f"/session/{session_id}/input", json={"keys": {"ArrowRight": True}})
    assert res.json() == {"status": "ok"}
    data = client.post(f"/session/{session_id}/tick", json={}).json()
    assert data["player"]["x"] == 303
    assert data["player"]["y"] == 300


def test_restart_resets_session(client):
    session_id = _new_session(client)["session_id"]
    client.post(f"/session/{session_id}/tick", json={"dt": 1.0, "steps": 10})
    res = client.post(f"/session/{session_id}/restart")
    assert res.status_code == 200
    data = res.json()
    assert data["time_remaining"] == 120
    assert data["score"] == 0
    assert data["tick"] == 0


def test_unknown_session_is_404(client):
    assert client.get("/session/missing/state").status_code == 404
    assert client.post("/session/missing/tick", json={}).status_code == 404
    assert client.post("/session/missing/restart").status_code == 404
    res = client.post("/session/missing/input", json={"keys": {"up": True}})
    assert res.status_code == 404


def test_sessions_listing(client):
    created = _new_session(client)
    listing = client.get("/sessions").json()
    assert [s["session_id"] for s in listing] == [created["session_id"]]
    assert listing[0]["status"] == "running"


def test_empty_leaderboard_is_204(client):
    res = client.get("/leaderboard")
    assert res.status_code == 204


def test_leaderboard_lists_finished_game(client):
    session_id = _new_session(client)["session_id"]
    record = app_module.engine.get_session(session_id)
    inner = "#" + "." * 13 + "#"
    record.clock.maze = Maze.from_rows(["#" * 15] + [inner] * 13 + ["#" * 15])
    record.clock.player.x, record.clock.player.y = 300, 300
    for ghost in record.clock.ghosts:
        ghost.x, ghost.y = 300, 300

    data = client.post(f"/session/{session_id}/tick", json={}).json()
    assert data["status"] == "won"
    app_module.persistence.flush()

    entries = client.get("/leaderboard").json()["entries"]
    assert entries[0]["call_sign"] == record.call_sign
    assert entries[0]["won"] is True


def test_replay_endpoints(client):
    session_id = _new_session(client)["session_id"]
    client.post(f"/session/{session_id}/tick", json={"steps": 3})
    app_module.persistence.flush()

    sessions = client.get("/replay/sessions").json()
    assert session_id in [s["session_id"] for s in sessions]

    res = client.get(f"/replay/{session_id}", params={"start_tick": 1, "limit": 2})
    data = res.json()
    assert [t["tick"] for t in data["ticks"]] == [1, 2]
    assert data["has_more"] is True


def test_api_key_required(monkeypatch, tmp_path):
    with _client(monkeypatch, tmp_path, api_key="secret") as client:
        assert client.post("/session/new").status_code == 401
        res = client.post("/session/new", headers={"x-api-key": "secret"})
        assert res.status_code == 200


def test_server_full(monkeypatch, tmp_path):
    with _client(monkeypatch, tmp_path, max_sessions=1) as client:
        _new_session(client)
        assert client.post("/session/new").status_code == 503


def test_websocket_rejects_unknown_session(client):
    from starlette.websockets import WebSocketDisconnect

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/session/ws/missing") as ws:
            ws.receive_text()


def test_key_down_and_up_events(client):
    session_id = _new_session(client)["session_id"]
    record = app_module.engine.get_session(session_id)
    inner = "#" + "." * 13 + "#"
    record.clock.maze = Maze.from_rows(["#" * 15] + [inner] * 13 + ["#" * 15])
    record.clock.player.x, record.clock.player.y = 300, 300

    res = client.post(f"/session/{session_id}/input", json={"down": ["ArrowDown", "d"]})
    assert res.status_code == 200
    data = client.post(f"/session/{session_id}/tick", json={}).json()
    assert data["player"]["x"] == pytest.approx(300 + 3 * 0.707)
    assert data["player"]["y"] == pytest.approx(300 + 3 * 0.707)

    client.post(f"/session/{session_id}/input", json={"up": ["d"]})
    data = client.post(f"/session/{session_id}/tick", json={}).json()
    assert data["player"]["x"] == pytest.approx(300 + 3 * 0.707)
    assert data["player"]["y"] == pytest.approx(303 + 3 * 0.707)

    res = client.post("/session/missing/input", json={"down": ["w"]})
    assert res.status_code == 404


def test_key_map_then_events_in_one_request(client):
    session_id = _new_session(client)["session_id"]
    client.post(
        f"/session/{session_id}/input",
        json={"keys": {"ArrowUp": True, "ArrowLeft": True}, "up": ["ArrowUp"]},
    )
    intent = app_module.engine.get_session(session_id).clock.input()
    assert [i.value for i, pressed in intent.items() if pressed] == ["left"]
