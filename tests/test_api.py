"""Tests for the game session HTTP endpoints."""

import pytest
from fastapi.testclient import TestClient

import api
import core


@pytest.fixture
def client():
    api._games.clear()
    api.limiter.reset()
    with TestClient(api.app) as test_client:
        yield test_client
    api._games.clear()


def new_game(client, **settings):
    response = client.post("/games", json=settings)
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateGame:

    def test_default_game_is_empty(self, client):
        state = new_game(client)
        assert state["board_size"] == api.DEFAULT_SIZE
        assert state["board"] == [[0] * 4 for _ in range(4)]
        assert state["score"] == 0
        assert state["max_score"] == 0
        assert state["game_over"] is False
        assert state["progress"] == core.GameProgressState.IN_PROGRESS.value

    def test_sized_game(self, client):
        state = new_game(client, size=6)
        assert state["board_size"] == 6
        assert len(state["board"]) == 6

    def test_scenario_game(self, client):
        board = [[2, 0], [0, 4]]
        state = new_game(client, board=board, score=12, max_score=40)
        assert state["board"] == board
        assert state["score"] == 12
        assert state["max_score"] == 40

    def test_rejects_non_square_board(self, client):
        response = client.post("/games", json={"board": [[2, 0], [0]]})
        assert response.status_code == 400

    def test_rejects_one_by_one_board(self, client):
        response = client.post("/games", json={"size": 1})
        assert response.status_code == 422

    def test_sessions_are_independent(self, client):
        first = new_game(client)
        second = new_game(client)
        assert first["game_id"] != second["game_id"]
        client.post(f"/games/{first['game_id']}/tiles", json={"value": 2, "column": 0, "row": 0})
        state = client.get(f"/games/{second['game_id']}").json()
        assert state["board"] == [[0] * 4 for _ in range(4)]


class TestPlaceTile:

    def test_bottom_left_tile_shows_in_last_row(self, client):
        game_id = new_game(client)["game_id"]
        response = client.post(f"/games/{game_id}/tiles", json={"value": 2, "column": 0, "row": 0})
        assert response.status_code == 200
        assert response.json()["board"][3] == [2, 0, 0, 0]

    def test_occupied_cell_conflicts(self, client):
        game_id = new_game(client)["game_id"]
        client.post(f"/games/{game_id}/tiles", json={"value": 2, "column": 1, "row": 1})
        response = client.post(f"/games/{game_id}/tiles", json={"value": 4, "column": 1, "row": 1})
        assert response.status_code == 409

    def test_out_of_bounds_is_rejected(self, client):
        game_id = new_game(client)["game_id"]
        response = client.post(f"/games/{game_id}/tiles", json={"value": 2, "column": 9, "row": 0})
        assert response.status_code == 400

    def test_value_must_be_a_power_of_two(self, client):
        game_id = new_game(client)["game_id"]
        response = client.post(f"/games/{game_id}/tiles", json={"value": 3, "column": 0, "row": 0})
        assert response.status_code == 400

    def test_max_tile_wins(self, client):
        game_id = new_game(client)["game_id"]
        state = client.post(
            f"/games/{game_id}/tiles", json={"value": 2048, "column": 2, "row": 2}
        ).json()
        assert state["game_over"] is True
        assert state["progress"] == core.GameProgressState.GAME_WON.value


class TestTilt:

    def test_merge_reports_score(self, client):
        board = [[2, 2, 2, 0], [0] * 4, [0] * 4, [0] * 4]
        game_id = new_game(client, board=board)["game_id"]
        response = client.post(f"/games/{game_id}/tilt", json={"direction": "LEFT"})
        assert response.status_code == 200
        state = response.json()
        assert state["board"][0] == [4, 2, 0, 0]
        assert state["score"] == 4
        assert state["score_gained"] == 4
        assert state["move_was_effective"] is True
        assert state["message"] is None

    def test_ineffective_tilt(self, client):
        board = [[2, 4, 8, 16], [0] * 4, [0] * 4, [0] * 4]
        game_id = new_game(client, board=board)["game_id"]
        state = client.post(f"/games/{game_id}/tilt", json={"direction": "LEFT"}).json()
        assert state["move_was_effective"] is False
        assert state["score_gained"] == 0
        assert "not effective" in state["message"]

    def test_winning_tilt(self, client):
        board = [[1024, 1024, 0, 0], [0] * 4, [0] * 4, [0] * 4]
        game_id = new_game(client, board=board)["game_id"]
        state = client.post(f"/games/{game_id}/tilt", json={"direction": "RIGHT"}).json()
        assert state["board"][0] == [0, 0, 0, 2048]
        assert state["game_over"] is True
        assert state["max_score"] == 2048
        assert state["message"] == "Congratulations! You won!"

    def test_lost_game_message(self, client):
        board = [[2, 4], [8, 16]]
        game_id = new_game(client, board=board)["game_id"]
        state = client.post(f"/games/{game_id}/tilt", json={"direction": "UP"}).json()
        assert state["progress"] == core.GameProgressState.GAME_OVER.value
        assert state["message"] == "Game Over. No more valid moves."

    def test_unknown_direction(self, client):
        game_id = new_game(client)["game_id"]
        response = client.post(f"/games/{game_id}/tilt", json={"direction": "NORTH"})
        assert response.status_code == 422


class TestSessionLifecycle:

    def test_unknown_game(self, client):
        assert client.get("/games/missing").status_code == 404
        assert client.post("/games/missing/tilt", json={"direction": "UP"}).status_code == 404

    def test_clear_keeps_max_score(self, client):
        board = [[2, 2], [0, 0]]
        game_id = new_game(client, board=board, score=8, max_score=64)["game_id"]
        state = client.post(f"/games/{game_id}/clear").json()
        assert state["board"] == [[0, 0], [0, 0]]
        assert state["score"] == 0
        assert state["max_score"] == 64

    def test_delete(self, client):
        game_id = new_game(client)["game_id"]
        assert client.delete(f"/games/{game_id}").status_code == 204
        assert client.get(f"/games/{game_id}").status_code == 404


class TestLimits:

    def test_size_above_maximum_is_rejected(self, client):
        response = client.post("/games", json={"size": api.MAX_SIZE + 1})
        assert response.status_code == 422
        assert len(api._games) == 0

    def test_board_above_maximum_is_rejected(self, client):
        size = api.MAX_SIZE + 1
        response = client.post("/games", json={"board": [[0] * size for _ in range(size)]})
        assert response.status_code == 422

    def test_wide_rows_are_rejected(self, client):
        response = client.post("/games", json={"board": [[0] * (api.MAX_SIZE + 1), [0, 0]]})
        assert response.status_code == 422

    def test_largest_board_is_accepted(self, client):
        state = new_game(client, size=api.MAX_SIZE)
        assert state["board_size"] == api.MAX_SIZE

    def test_oldest_session_is_evicted_past_the_cap(self, client, monkeypatch):
        monkeypatch.setattr(api, "MAX_SESSIONS", 3)
        ids = [new_game(client)["game_id"] for _ in range(5)]
        assert list(api._games) == ids[2:]
        assert client.get(f"/games/{ids[0]}").status_code == 404
        assert client.get(f"/games/{ids[4]}").status_code == 200


class TestSettings:

    def test_unset_setting_uses_default(self, monkeypatch):
        monkeypatch.delenv("GAME_DEFAULT_SIZE", raising=False)
        assert api._int_setting("GAME_DEFAULT_SIZE", 4, api.MIN_SIZE, api.MAX_SIZE) == 4

    @pytest.mark.parametrize("raw", ["0", "1", "abc", "1000"])
    def test_invalid_default_size_is_rejected(self, monkeypatch, raw):
        monkeypatch.setenv("GAME_DEFAULT_SIZE", raw)
        with pytest.raises(ValueError):
            api._int_setting("GAME_DEFAULT_SIZE", 4, api.MIN_SIZE, 16)

    def test_valid_setting_is_read(self, monkeypatch):
        monkeypatch.setenv("GAME_MAX_SESSIONS", "25")
        assert api._int_setting("GAME_MAX_SESSIONS", 1000, 1) == 25
