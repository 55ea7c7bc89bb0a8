"""
Service: game_service.py
Rôle:
- Actions de room (lobby, démarrage, reset, enquête) appliquées au document via
  `RoomState.update()` : chaque action relit l'état SOUS VERROU avant d'écrire.
- Le moteur pur (`app/engine`) décide ; ce service applique, journalise et persiste.

Garanties:
- Démarrage : le tirage n'a lieu que depuis LOBBY (un double clic ne retire pas les rôles).
- Enquête : compare-and-set sur la collection `investigations` (créée seulement si vide).
- Une action refusée n'écrit rien (la copie de travail est jetée).
"""
from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from app.engine.investigation import NoContextError, NotPresidentError, check_investigation
from app.engine.roles import (
    MAX_PLAYERS,
    assign_roles,
    can_start_game,
    is_valid_state_transition,
    next_president,
    validate_role_assignment,
)
from app.models.game import GameStatus, InvestigationRecord, Role
from app.services.room_state import RoomState, now_ms
from app.services.room_store import create_room_state, delete_room, get_room_state

logger = logging.getLogger(__name__)

RESET_REASONS = ("GAME_OVER", "ADMIN_REQUEST", "CONSENSUS")


class RoomActionError(RuntimeError):
    """Action refusée (règle de lobby/partie). `status_code` guide la réponse HTTP."""
    status_code = 400


class RoomNotFoundError(RoomActionError):
    status_code = 404


class PermissionDeniedError(RoomActionError):
    status_code = 403


def _require_context(state: Optional[RoomState], actor_id: Optional[str]) -> RoomState:
    if state is None or not actor_id:
        raise RoomActionError("No room or user")
    return state


def _require_admin(room: Dict[str, Any], actor_id: str, message: str) -> None:
    if room.get("admin_id") != actor_id:
        raise PermissionDeniedError(message)


def _seated_player(room: Dict[str, Any], player_id: str) -> Dict[str, Any]:
    player = (room.get("players") or {}).get(player_id)
    if player is None:
        raise RoomNotFoundError("Player not found in room")
    return player


def seating_order(room: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Joueurs dans l'ordre d'arrivée (ordre utilisé pour le tirage et la présidence)."""
    players = list((room.get("players") or {}).values())
    return sorted(players, key=lambda p: p.get("joined_at") or 0)


def _new_player(player_id: str, name: Optional[str]) -> Dict[str, Any]:
    return {
        "id": player_id,
        "name": (name or "").strip() or f"Player {player_id[-4:]}",
        "is_ready": False,
        "joined_at": now_ms(),
    }


# -----------------------------
# Lobby
# -----------------------------
def create_room(player_name: Optional[str] = None) -> Tuple[RoomState, str, str]:
    """Crée une room ; le créateur en devient admin et premier joueur."""
    player_id = str(uuid4())
    state = create_room_state(admin_id=player_id)

    def _mutate(room: Dict[str, Any]) -> None:
        room["players"][player_id] = _new_player(player_id, player_name)

    state.update(_mutate)
    token = state.issue_token(player_id)
    state.log_event("room_created", {"admin_id": player_id})
    return state, player_id, token


def join_room(room_id: str, player_name: str) -> Tuple[RoomState, str, str]:
    state = get_room_state(room_id)
    if state is None:
        raise RoomNotFoundError("Room not found")

    player_id = str(uuid4())

    def _mutate(room: Dict[str, Any]) -> None:
        if room.get("status") != GameStatus.LOBBY.value:
            raise RoomActionError("Cannot join a game in progress")
        if len(room.get("players") or {}) >= MAX_PLAYERS:
            raise RoomActionError("Room is full")
        room.setdefault("players", {})[player_id] = _new_player(player_id, player_name)

    state.update(_mutate)
    token = state.issue_token(player_id)
    state.log_event("player_join", {"player_id": player_id, "name": player_name})
    return state, player_id, token


def leave_room(state: Optional[RoomState], player_id: Optional[str]) -> Dict[str, Any]:
    """Retire le joueur ; transfère l'admin au suivant, supprime la room si elle est vide."""
    state = _require_context(state, player_id)

    def _mutate(room: Dict[str, Any]) -> Dict[str, Any]:
        players = room.get("players") or {}
        players.pop(player_id, None)
        new_admin = None
        if room.get("admin_id") == player_id and players:
            new_admin = seating_order(room)[0]["id"]
            room["admin_id"] = new_admin
        return {"new_admin_id": new_admin, "remaining": len(players)}

    outcome = state.update(_mutate)
    state.revoke_tokens(player_id)
    if outcome["remaining"] == 0:
        delete_room(state.room_id)
        logger.info("Room deleted after last player left", extra={"room_id": state.room_id})
        return {"room_deleted": True, "new_admin_id": None}

    state.log_event("player_leave", {"player_id": player_id, "new_admin_id": outcome["new_admin_id"]})
    return {"room_deleted": False, "new_admin_id": outcome["new_admin_id"]}


def remove_player(state: Optional[RoomState], actor_id: Optional[str], player_id: str) -> None:
    state = _require_context(state, actor_id)

    def _mutate(room: Dict[str, Any]) -> None:
        _require_admin(room, actor_id, "Only admin can remove players")
        if player_id == actor_id:
            raise RoomActionError("Admin cannot remove themselves")
        if player_id not in (room.get("players") or {}):
            raise RoomNotFoundError("Player not found in room")
        room["players"].pop(player_id)

    state.update(_mutate)
    state.revoke_tokens(player_id)
    state.log_event("player_removed", {"player_id": player_id, "by": actor_id})


def transfer_admin(state: Optional[RoomState], actor_id: Optional[str], player_id: str) -> None:
    state = _require_context(state, actor_id)

    def _mutate(room: Dict[str, Any]) -> None:
        _require_admin(room, actor_id, "Only admin can transfer admin rights")
        if player_id not in (room.get("players") or {}):
            raise RoomNotFoundError("Player not found in room")
        room["admin_id"] = player_id

    state.update(_mutate)
    state.log_event("admin_transferred", {"from": actor_id, "to": player_id})


def set_player_ready(state: RoomState, player_id: str, ready: bool) -> None:
    def _mutate(room: Dict[str, Any]) -> None:
        _seated_player(room, player_id)["is_ready"] = bool(ready)

    state.update(_mutate)


def rename_player(state: RoomState, player_id: str, name: str) -> None:
    clean = (name or "").strip()
    if not clean:
        raise RoomActionError("Name cannot be empty")

    def _mutate(room: Dict[str, Any]) -> None:
        _seated_player(room, player_id)["name"] = clean

    state.update(_mutate)


# -----------------------------
# Partie
# -----------------------------
def start_game(
    state: Optional[RoomState],
    actor_id: Optional[str],
    rng: Optional[random.Random] = None,
) -> Dict[str, Role]:
    """
    Distribue les rôles (admin uniquement) et passe la room en ROLE_REVEAL.
    Le premier joueur arrivé devient président de départ.
    """
    state = _require_context(state, actor_id)

    def _mutate(room: Dict[str, Any]) -> Dict[str, Role]:
        _require_admin(room, actor_id, "Only admin can start the game")
        if not is_valid_state_transition(room.get("status"), GameStatus.ROLE_REVEAL):
            raise RoomActionError("Game already started")

        seats = seating_order(room)
        gate = can_start_game(len(seats))
        if not gate.can_start:
            raise RoomActionError(gate.reason or "Cannot start game")

        roles = assign_roles(seats, rng=rng)
        check = validate_role_assignment(roles, len(seats))
        if not check.valid:
            logger.error("Dealt roles failed validation", extra={"room_id": state.room_id, "error": check.error})
            raise RoomActionError(check.error or "Invalid role assignment")

        for pid, role in roles.items():
            room["players"][pid]["role"] = role.value
        room["status"] = GameStatus.ROLE_REVEAL.value
        room["started_at"] = now_ms()
        # figé au tirage : la visibilité d'Hitler dépend du nombre de joueurs distribués
        room["dealt_player_count"] = len(seats)
        room["starting_player_id"] = seats[0]["id"]
        room["current_president_id"] = seats[0]["id"]
        room["investigations"] = {}
        return roles

    roles = state.update(_mutate)
    state.log_event("game_started", {"by": actor_id, "player_count": len(roles)})
    return roles


def reset_game(state: Optional[RoomState], actor_id: Optional[str], reason: str = "GAME_OVER") -> None:
    """Retour au lobby : efface rôles, enquêtes et horodatages de partie."""
    state = _require_context(state, actor_id)
    if reason not in RESET_REASONS:
        raise RoomActionError(f"Invalid reset reason: {reason}")

    def _mutate(room: Dict[str, Any]) -> None:
        if room.get("admin_id") != actor_id and room.get("status") != GameStatus.GAME_OVER.value:
            raise PermissionDeniedError("Only admin can reset the game")
        room["status"] = GameStatus.LOBBY.value
        room["started_at"] = None
        room["ended_at"] = None
        room["dealt_player_count"] = None
        room["starting_player_id"] = None
        room["current_president_id"] = None
        room["current_chancellor_id"] = None
        room["investigations"] = {}
        for player in (room.get("players") or {}).values():
            player.pop("role", None)

    state.update(_mutate)
    state.log_event("game_reset", {"reset_by": actor_id, "reason": reason, "reset_at": now_ms()})


def set_status(state: Optional[RoomState], actor_id: Optional[str], status: str) -> str:
    """Transition manuelle de statut (admin), bornée par la table de transitions."""
    state = _require_context(state, actor_id)

    def _mutate(room: Dict[str, Any]) -> str:
        _require_admin(room, actor_id, "Only admin can change the game status")
        current = room.get("status")
        if status in (GameStatus.ROLE_REVEAL.value, GameStatus.LOBBY.value):
            raise RoomActionError("Use start or reset to enter this status")
        if not is_valid_state_transition(current, status):
            raise RoomActionError(f"Invalid transition from {current} to {status}")
        room["status"] = status
        if status == GameStatus.GAME_OVER.value:
            room["ended_at"] = now_ms()
        return status

    result = state.update(_mutate)
    state.log_event("status_changed", {"by": actor_id, "status": result})
    return result


def advance_president(state: Optional[RoomState], actor_id: Optional[str]) -> str:
    """Passe la présidence au joueur suivant dans l'ordre d'arrivée (admin)."""
    state = _require_context(state, actor_id)

    def _mutate(room: Dict[str, Any]) -> str:
        _require_admin(room, actor_id, "Only admin can pass the presidency")
        if room.get("status") == GameStatus.LOBBY.value:
            raise RoomActionError("Game not started")
        nxt = next_president(room.get("current_president_id") or "", seating_order(room))
        room["current_president_id"] = nxt
        return nxt

    president = state.update(_mutate)
    state.log_event("president_changed", {"president_id": president})
    return president


def investigate(state: Optional[RoomState], actor_id: Optional[str], target_id: str) -> InvestigationRecord:
    """
    Enquête du président sur `target_id`.
    Vérifications et écriture se font dans la même section critique : deux tentatives
    concurrentes ne peuvent pas produire deux enregistrements.
    """
    if state is None or not actor_id:
        raise NoContextError()

    def _mutate(room: Dict[str, Any]) -> InvestigationRecord:
        if room.get("current_president_id") != actor_id:
            raise NotPresidentError()
        record = check_investigation(room, actor_id, target_id)
        room.setdefault("investigations", {})[target_id] = record.model_dump(mode="json")
        return record

    record = state.update(_mutate)
    # le résultat n'est jamais journalisé
    state.log_event("investigation", {"investigated_by": actor_id, "target_id": target_id}, scope="private")
    return record
