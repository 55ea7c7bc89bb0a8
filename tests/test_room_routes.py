import pytest

pytest.importorskip("httpx", reason="httpx requis pour les tests client FastAPI")

from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.main import app

client = TestClient(app)


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _lobby(count: int) -> tuple[str, list[dict]]:
    """Crée une room et y fait entrer `count` joueurs (le premier est admin)."""
    created = client.post("/rooms", json={"player_name": "Admin"})
    assert created.status_code == 200
    data = created.json()
    room_id = data["room_id"]
    seats = [data]
    for i in range(count - 1):
        joined = client.post(f"/rooms/{room_id}/join", json={"player_name": f"Guest {i}"})
        assert joined.status_code == 200
        seats.append(joined.json())
    return room_id, seats


def test_rules_endpoints():
    assert client.get("/rules/distribution/7").json()["fascists"] == 2
    assert client.get("/rules/distribution/7").json()["knowledge"]["hitler_knows_fascists"] is False
    assert client.get("/rules/distribution/11").status_code == 404
    assert client.get("/rules/can_start", params={"player_count": 4}).json() == {
        "can_start": False,
        "reason": "Need at least 5 players to start",
    }
    assert client.get("/rules").json()["distribution"]["10"]["liberals"] == 6


def test_room_requires_player_token():
    room_id, _seats = _lobby(1)
    assert client.get(f"/rooms/{room_id}").status_code == 401
    assert client.get(f"/rooms/{room_id}", headers=_auth("nope")).status_code == 401
    assert client.get("/rooms/ZZZZZZZ", headers=_auth("nope")).status_code == 404


def test_start_game_gates():
    room_id, seats = _lobby(4)
    admin, guest = seats[0], seats[1]

    not_admin = client.post(f"/rooms/{room_id}/start", headers=_auth(guest["token"]))
    assert not_admin.status_code == 403
    assert not_admin.json()["detail"] == "Only admin can start the game"

    too_few = client.post(f"/rooms/{room_id}/start", headers=_auth(admin["token"]))
    assert too_few.status_code == 400
    assert too_few.json()["detail"] == "Need at least 5 players to start"


def test_full_game_flow_keeps_roles_private():
    room_id, seats = _lobby(5)
    admin = seats[0]

    started = client.post(f"/rooms/{room_id}/start", headers=_auth(admin["token"]))
    assert started.status_code == 200
    body = started.json()
    assert body["status"] == "ROLE_REVEAL"
    assert body["current_president_id"] == admin["player_id"]

    again = client.post(f"/rooms/{room_id}/start", headers=_auth(admin["token"]))
    assert again.status_code == 400

    late = client.post(f"/rooms/{room_id}/join", json={"player_name": "Late"})
    assert late.status_code == 400
    assert late.json()["detail"] == "Cannot join a game in progress"

    views = {}
    for seat in seats:
        view = client.get(f"/rooms/{room_id}", headers=_auth(seat["token"])).json()
        assert all("role" not in p for p in view["players"].values())
        assert view["visible_roles"][seat["player_id"]] == view["my_role"]
        views[seat["player_id"]] = view

    roles = {pid: v["my_role"] for pid, v in views.items()}
    assert sorted(roles.values()) == ["FASCIST", "HITLER", "LIBERAL", "LIBERAL", "LIBERAL"]
    for pid, view in views.items():
        expected = {"LIBERAL": 1, "FASCIST": 2, "HITLER": 2}[roles[pid]]
        assert len(view["visible_roles"]) == expected

    visibility = client.get(f"/rooms/{room_id}/visibility", headers=_auth(admin["token"]))
    assert visibility.status_code == 200
    assert visibility.json()["visible_roles"] == views[admin["player_id"]]["visible_roles"]


def test_investigation_over_http():
    room_id, seats = _lobby(5)
    president, target, other = seats[0], seats[1], seats[2]
    client.post(f"/rooms/{room_id}/start", headers=_auth(president["token"]))

    not_president = client.post(
        f"/rooms/{room_id}/investigate", json={"target_id": president["player_id"]}, headers=_auth(other["token"])
    )
    assert not_president.status_code == 403
    assert not_president.json()["detail"] == "Only President can investigate players"

    self_target = client.post(
        f"/rooms/{room_id}/investigate", json={"target_id": president["player_id"]}, headers=_auth(president["token"])
    )
    assert self_target.status_code == 400
    assert self_target.json()["detail"] == "Cannot investigate yourself"

    ghost = client.post(f"/rooms/{room_id}/investigate", json={"target_id": "ghost"}, headers=_auth(president["token"]))
    assert ghost.status_code == 404

    target_view = client.get(f"/rooms/{room_id}", headers=_auth(target["token"])).json()
    done = client.post(
        f"/rooms/{room_id}/investigate", json={"target_id": target["player_id"]}, headers=_auth(president["token"])
    )
    assert done.status_code == 200
    record = done.json()
    expected_party = "LIBERAL" if target_view["my_role"] == "LIBERAL" else "FASCIST"
    assert record["result"] == expected_party
    assert record["investigated_by"] == president["player_id"]

    second = client.post(
        f"/rooms/{room_id}/investigate", json={"target_id": other["player_id"]}, headers=_auth(president["token"])
    )
    assert second.status_code == 409
    assert second.json()["detail"] == "Investigation power already used in this game"

    president_view = client.get(f"/rooms/{room_id}", headers=_auth(president["token"])).json()
    assert target["player_id"] in president_view["my_investigations"]
    other_view = client.get(f"/rooms/{room_id}", headers=_auth(other["token"])).json()
    assert other_view["my_investigations"] == {}
    assert other_view["investigation_used"] is True

    targets = client.get(f"/rooms/{room_id}/investigation/targets", headers=_auth(president["token"])).json()
    labels = {t["player_id"]: t["status"] for t in targets}
    assert labels[president["player_id"]] == "Cannot investigate self"
    assert labels[target["player_id"]] == "Already investigated"


def test_reset_returns_to_lobby():
    room_id, seats = _lobby(5)
    admin, guest = seats[0], seats[1]
    client.post(f"/rooms/{room_id}/start", headers=_auth(admin["token"]))

    denied = client.post(f"/rooms/{room_id}/reset", json={"reason": "CONSENSUS"}, headers=_auth(guest["token"]))
    assert denied.status_code == 403
    assert denied.json()["detail"] == "Only admin can reset the game"

    reset = client.post(f"/rooms/{room_id}/reset", json={"reason": "ADMIN_REQUEST"}, headers=_auth(admin["token"]))
    assert reset.status_code == 200
    view = client.get(f"/rooms/{room_id}", headers=_auth(guest["token"])).json()
    assert view["status"] == "LOBBY"
    assert view["my_role"] is None
    assert view["visible_roles"] == {}


def test_admin_lobby_management():
    room_id, seats = _lobby(3)
    admin, second, third = seats

    cannot_self = client.delete(f"/rooms/{room_id}/players/{admin['player_id']}", headers=_auth(admin["token"]))
    assert cannot_self.status_code == 400
    assert cannot_self.json()["detail"] == "Admin cannot remove themselves"

    removed = client.delete(f"/rooms/{room_id}/players/{third['player_id']}", headers=_auth(admin["token"]))
    assert removed.status_code == 200
    assert client.get(f"/rooms/{room_id}", headers=_auth(third["token"])).status_code == 401

    transfer = client.post(
        f"/rooms/{room_id}/admin", json={"player_id": second["player_id"]}, headers=_auth(admin["token"])
    )
    assert transfer.status_code == 200

    left = client.post(f"/rooms/{room_id}/leave", headers=_auth(admin["token"]))
    assert left.json()["room_deleted"] is False
    view = client.get(f"/rooms/{room_id}", headers=_auth(second["token"])).json()
    assert view["admin_id"] == second["player_id"]
    assert list(view["players"]) == [second["player_id"]]

    last = client.post(f"/rooms/{room_id}/leave", headers=_auth(second["token"]))
    assert last.json()["room_deleted"] is True


def test_admin_leaving_hands_over_to_next_seat():
    room_id, seats = _lobby(3)
    client.post(f"/rooms/{room_id}/leave", headers=_auth(seats[0]["token"]))
    view = client.get(f"/rooms/{room_id}", headers=_auth(seats[2]["token"])).json()
    assert view["admin_id"] == seats[1]["player_id"]


def test_room_full_at_ten():
    room_id, _seats = _lobby(10)
    full = client.post(f"/rooms/{room_id}/join", json={"player_name": "Eleventh"})
    assert full.status_code == 400
    assert full.json()["detail"] == "Room is full"


def test_websocket_pushes_filtered_view_on_change():
    room_id, seats = _lobby(2)
    guest = seats[1]

    with client.websocket_connect(f"/ws/rooms/{room_id}?token={guest['token']}") as ws:
        first = ws.receive_json()
        assert first["type"] == "room_state"
        assert first["payload"]["players"][guest["player_id"]]["is_ready"] is False

        client.post(f"/rooms/{room_id}/ready", json={"ready": True}, headers=_auth(guest["token"]))
        update = ws.receive_json()
        assert update["type"] == "room_state"
        assert update["payload"]["players"][guest["player_id"]]["is_ready"] is True

        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_websocket_rejects_bad_token():
    room_id, _seats = _lobby(1)
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/ws/rooms/{room_id}?token=bogus") as ws:
            ws.receive_json()


def test_rename_and_ready():
    room_id, seats = _lobby(2)
    guest = seats[1]
    renamed = client.post(f"/rooms/{room_id}/name", json={"name": "  Bob  "}, headers=_auth(guest["token"]))
    assert renamed.status_code == 200
    view = client.get(f"/rooms/{room_id}", headers=_auth(guest["token"])).json()
    assert view["players"][guest["player_id"]]["name"] == "Bob"


def test_status_transitions_and_presidency():
    room_id, seats = _lobby(5)
    admin = seats[0]

    early = client.post(f"/rooms/{room_id}/status", json={"status": "VOTING"}, headers=_auth(admin["token"]))
    assert early.status_code == 400

    client.post(f"/rooms/{room_id}/start", headers=_auth(admin["token"]))
    voting = client.post(f"/rooms/{room_id}/status", json={"status": "VOTING"}, headers=_auth(admin["token"]))
    assert voting.status_code == 200
    assert voting.json()["status"] == "VOTING"

    nxt = client.post(f"/rooms/{room_id}/president/next", headers=_auth(admin["token"]))
    assert nxt.json()["current_president_id"] == seats[1]["player_id"]

    # le nouveau président peut enquêter, l'ancien non
    stale = client.post(
        f"/rooms/{room_id}/investigate", json={"target_id": seats[2]["player_id"]}, headers=_auth(admin["token"])
    )
    assert stale.status_code == 403
    fresh = client.post(
        f"/rooms/{room_id}/investigate", json={"target_id": seats[2]["player_id"]}, headers=_auth(seats[1]["token"])
    )
    assert fresh.status_code == 200
