"""
Room store registry
===================

Expose des helpers pour récupérer le `RoomState` d'une room
(`rooms/<ROOM_ID>/`). Les instances sont mises en cache en mémoire et
chargées depuis le disque à la demande. Génère aussi les codes de room
(4 à 6 caractères alphanumériques majuscules).
"""
from __future__ import annotations

import random
import shutil
import string
from threading import RLock
from typing import Dict, Iterable, Optional

from .room_state import RoomState, default_room, rooms_dir

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
ROOM_CODE_MIN_LENGTH = 4
ROOM_CODE_MAX_LENGTH = 6
MAX_CODE_ATTEMPTS = 10

_ROOMS: Dict[str, RoomState] = {}
_LOCK = RLock()
_RNG = random.SystemRandom()


class RoomStoreError(RuntimeError):
    """Raised when the store cannot satisfy a lifecycle request."""


def normalize_room_id(room_id: Optional[str]) -> str:
    return (room_id or "").strip().upper()


def generate_room_code() -> str:
    length = _RNG.randint(ROOM_CODE_MIN_LENGTH, ROOM_CODE_MAX_LENGTH)
    return "".join(_RNG.choice(ROOM_CODE_ALPHABET) for _ in range(length))


def room_exists(room_id: str) -> bool:
    rid = normalize_room_id(room_id)
    if not rid:
        return False
    with _LOCK:
        if rid in _ROOMS:
            return True
    return (rooms_dir() / rid).is_dir()


def generate_unique_room_code() -> str:
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_room_code()
        if not room_exists(code):
            return code
    raise RoomStoreError("Failed to generate unique room code after maximum attempts")


def get_room_state(room_id: str) -> Optional[RoomState]:
    """
    Retourne l'instance `RoomState` de `room_id`, ou None si la room n'existe pas.
    Charge la room depuis le disque si elle n'est pas encore en cache.
    """
    rid = normalize_room_id(room_id)
    if not rid:
        return None
    with _LOCK:
        state = _ROOMS.get(rid)
        if state is None:
            state = RoomState(room_id=rid)
            if not state.exists_on_disk():
                return None
            state.load()
            _ROOMS[rid] = state
        return state


def create_room_state(room_id: Optional[str] = None, admin_id: Optional[str] = None) -> RoomState:
    """Crée une room vide (statut LOBBY) et la persiste."""
    with _LOCK:
        rid = normalize_room_id(room_id) or generate_unique_room_code()
        if room_exists(rid):
            raise RoomStoreError(f"Room {rid} already exists")
        state = RoomState(room_id=rid)
        state.room = default_room(rid, admin_id)
        state.save()
        _ROOMS[rid] = state
        return state


def drop_room_state(room_id: str) -> None:
    """Retire une room du cache (sans supprimer les fichiers)."""
    with _LOCK:
        _ROOMS.pop(normalize_room_id(room_id), None)


def delete_room(room_id: str) -> None:
    """Supprime la room du cache et du disque."""
    rid = normalize_room_id(room_id)
    with _LOCK:
        _ROOMS.pop(rid, None)
        target = rooms_dir() / rid
        if rid and target.exists():
            shutil.rmtree(target, ignore_errors=True)


def list_room_ids() -> list[str]:
    """Retourne la liste des rooms actuellement chargées en mémoire."""
    with _LOCK:
        return list(_ROOMS.keys())


def _disk_room_ids() -> Iterable[str]:
    base = rooms_dir()
    if not base.exists():
        return []
    return (path.name for path in base.iterdir() if path.is_dir())


def list_all_room_ids() -> list[str]:
    """Retourne la liste des rooms connues (cache + disque)."""
    ids = set(list_room_ids())
    ids.update(_disk_room_ids())
    return sorted(ids)


def clear_cache() -> None:
    with _LOCK:
        _ROOMS.clear()
