import random
import threading

import pytest

from app.engine.investigation import (
    AlreadyInvestigatedError,
    AlreadyUsedError,
    NoContextError,
    NotPresidentError,
    RoleNotAssignedError,
    SelfTargetForbiddenError,
    TargetNotFoundError,
    check_investigation,
    investigation_status,
)
from app.engine.roles import party_from_role
from app.models.game import Party
from app.services import game_service
from app.services.game_service import RoomNotFoundError
from app.services.room_store import get_room_state
from app.services.room_views import player_view


def _room(roles: dict, investigations: dict | None = None) -> dict:
    return {
        "id": "ROOM",
        "players": {pid: {"id": pid, "name": pid, "role": role} for pid, role in roles.items()},
        "investigations": investigations or {},
    }


ROLES = {"pres": "LIBERAL", "a": "HITLER", "b": "FASCIST", "c": "LIBERAL", "d": "LIBERAL"}


def test_check_builds_record():
    record = check_investigation(_room(ROLES), "pres", "a", now=1234)
    assert record.result == Party.FASCIST
    assert record.investigated_by == "pres"
    assert record.target_id == "a"
    assert record.investigated_at == 1234
    assert record.investigation_id == "pres_1234"


def test_check_liberal_target():
    assert check_investigation(_room(ROLES), "pres", "c").result == Party.LIBERAL


@pytest.mark.parametrize(
    "room,actor,target,error,message",
    [
        (None, "pres", "a", NoContextError, "No room or user"),
        (_room(ROLES), None, "a", NoContextError, "No room or user"),
        (
            _room(ROLES, {"c": {"target_id": "c"}}),
            "pres",
            "a",
            AlreadyUsedError,
            "Investigation power already used in this game",
        ),
        (_room(ROLES), "pres", "ghost", TargetNotFoundError, "Target player not found"),
        (_room(ROLES), "pres", "pres", SelfTargetForbiddenError, "Cannot investigate yourself"),
        (
            _room({"pres": "LIBERAL", "a": None}),
            "pres",
            "a",
            RoleNotAssignedError,
            "Target role not found - game may not be started",
        ),
    ],
)
def test_check_failures(room, actor, target, error, message):
    with pytest.raises(error) as excinfo:
        check_investigation(room, actor, target)
    assert str(excinfo.value) == message


def test_already_investigated_error_message():
    assert AlreadyInvestigatedError().code == "already_investigated"
    assert str(AlreadyInvestigatedError()) == "Player already investigated"


def test_investigation_status_labels():
    room = _room(ROLES, {"b": {"target_id": "b"}})
    assert investigation_status(room, "pres", "pres") == "Cannot investigate self"
    assert investigation_status(room, "pres", "b") == "Already investigated"
    assert investigation_status(room, "pres", "c") == "Eligible for investigation"


# ---------------------------------------------------------------------------
# Service (room persistée)
# ---------------------------------------------------------------------------
def _started_room(count: int = 5):
    state, admin_id, _token = game_service.create_room("Admin")
    for i in range(count - 1):
        game_service.join_room(state.room_id, f"Guest {i}")
    game_service.start_game(state, admin_id, rng=random.Random(7))
    return state, admin_id


def test_president_investigates_once():
    state, president = _started_room()
    room = state.snapshot()
    target = next(pid for pid in room["players"] if pid != president)

    record = game_service.investigate(state, president, target)
    assert record.result == party_from_role(room["players"][target]["role"])

    stored = get_room_state(state.room_id).snapshot()["investigations"]
    assert list(stored) == [target]
    assert stored[target]["result"] == record.result.value

    other = next(pid for pid in room["players"] if pid not in (president, target))
    with pytest.raises(AlreadyUsedError) as excinfo:
        game_service.investigate(state, president, other)
    assert str(excinfo.value) == "Investigation power already used in this game"


def test_service_rejects_self_and_unknown_without_writing():
    state, president = _started_room()
    with pytest.raises(SelfTargetForbiddenError):
        game_service.investigate(state, president, president)
    with pytest.raises(TargetNotFoundError):
        game_service.investigate(state, president, "nobody")
    assert state.snapshot()["investigations"] == {}


def test_only_president_may_investigate():
    state, president = _started_room()
    other = next(pid for pid in state.snapshot()["players"] if pid != president)
    with pytest.raises(NotPresidentError):
        game_service.investigate(state, other, president)


def test_no_context_in_service():
    with pytest.raises(NoContextError):
        game_service.investigate(None, "someone", "target")


def test_concurrent_attempts_produce_one_record():
    state, president = _started_room(8)
    targets = [pid for pid in state.snapshot()["players"] if pid != president]
    outcomes: list = []
    barrier = threading.Barrier(len(targets))

    def _attempt(target):
        barrier.wait()
        try:
            outcomes.append(game_service.investigate(state, president, target))
        except AlreadyUsedError as exc:
            outcomes.append(exc)

    threads = [threading.Thread(target=_attempt, args=(t,)) for t in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    successes = [o for o in outcomes if not isinstance(o, Exception)]
    assert len(successes) == 1
    assert len(state.snapshot()["investigations"]) == 1


def test_reset_clears_investigation_and_roles():
    state, president = _started_room()
    target = next(pid for pid in state.snapshot()["players"] if pid != president)
    game_service.investigate(state, president, target)

    game_service.reset_game(state, president, "ADMIN_REQUEST")
    room = state.snapshot()
    assert room["status"] == "LOBBY"
    assert room["investigations"] == {}
    assert all("role" not in p for p in room["players"].values())


def test_hitler_view_keeps_dealt_count_after_departure():
    state, admin_id = _started_room(7)
    room = state.snapshot()
    hitler = next(pid for pid, p in room["players"].items() if p["role"] == "HITLER")
    leaver = next(
        pid for pid, p in room["players"].items()
        if p["role"] == "LIBERAL" and pid != admin_id
    )
    assert player_view(room, hitler)["visible_roles"] == {hitler: "HITLER"}

    game_service.leave_room(state, leaver)
    room = state.snapshot()
    assert len(room["players"]) == 6
    assert room["status"] == "ROLE_REVEAL"
    assert player_view(room, hitler)["visible_roles"] == {hitler: "HITLER"}

    game_service.reset_game(state, admin_id, "ADMIN_REQUEST")
    assert state.snapshot()["dealt_player_count"] is None


def test_ready_and_rename_for_departed_player():
    state, admin_id, _token = game_service.create_room("Admin")
    with pytest.raises(RoomNotFoundError) as excinfo:
        game_service.set_player_ready(state, "gone", True)
    assert str(excinfo.value) == "Player not found in room"
    with pytest.raises(RoomNotFoundError):
        game_service.rename_player(state, "gone", "Ghost")
    assert "gone" not in state.snapshot()["players"]
