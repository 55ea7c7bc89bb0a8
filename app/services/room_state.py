"""
Service: room_state.py
Rôle :
- Stocker le document d'une room (statut, joueurs, rôles, enquêtes) et le persister.
- Fournir la primitive de mise à jour atomique `update()` : la mutation s'applique sur une
  copie, n'est validée (puis sauvegardée) que si elle réussit, et réveille les abonnés.
- Tenir le journal d'audit (append-only, borné) et les jetons joueurs.

Stockage (par room) :
- `rooms/<ROOM_ID>/room.json` (document public côté serveur, contient les rôles)
- `rooms/<ROOM_ID>/tokens.json` (jetons Bearer -> player_id, jamais exposés)
- `rooms/<ROOM_ID>/events.ndjson` (journal append-only)

Concurrence :
- Un `RLock` par room : toute lecture-modification-écriture passe par `update()`,
  ce qui donne la sémantique compare-and-set attendue pour l'enquête et le tirage des rôles.
"""
from __future__ import annotations

import copy
import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar
from uuid import uuid4

from app.config.settings import settings
from app.models.game import GameStatus
from .io_utils import read_json, write_json

logger = logging.getLogger(__name__)

ROOM_FILENAME = "room.json"
TOKENS_FILENAME = "tokens.json"
EVENTS_FILENAME = "events.ndjson"
MAX_AUDIT_EVENTS = 2000

T = TypeVar("T")
Listener = Callable[[Dict[str, Any]], None]


def rooms_dir() -> Path:
    return Path(settings.DATA_DIR) / "rooms"


def now_ms() -> int:
    return int(time.time() * 1000)


def default_room(room_id: str, admin_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": room_id,
        "status": GameStatus.LOBBY.value,
        "admin_id": admin_id,
        "created_at": now_ms(),
        "started_at": None,
        "ended_at": None,
        "starting_player_id": None,
        "current_president_id": None,
        "current_chancellor_id": None,
        "enacted_liberal_policies": 0,
        "enacted_fascist_policies": 0,
        "election_tracker": 0,
        "players": {},
        "investigations": {},
    }


def _read_events_ndjson(path: Path) -> list[Dict[str, Any]]:
    if not path.exists():
        return []
    events: list[Dict[str, Any]] = []
    with path.open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                logger.warning("Skipping corrupt journal line", extra={"journal": str(path)})
    return events


def _write_events_ndjson(path: Path, events: Iterable[Dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        for event in events:
            fh.write(json.dumps(event, ensure_ascii=False))
            fh.write("\n")


@dataclass
class RoomState:
    room_id: str
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)
    _listeners: List[Listener] = field(default_factory=list, init=False, repr=False)
    room: Dict[str, Any] = field(default_factory=dict)
    tokens: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: list[Dict[str, Any]] = field(default_factory=list)

    # -----------------------------
    # Chemins
    # -----------------------------
    def _room_dir(self) -> Path:
        return rooms_dir() / self.room_id

    def _room_path(self) -> Path:
        return self._room_dir() / ROOM_FILENAME

    def _tokens_path(self) -> Path:
        return self._room_dir() / TOKENS_FILENAME

    def _events_path(self) -> Path:
        return self._room_dir() / EVENTS_FILENAME

    def exists_on_disk(self) -> bool:
        return self._room_path().exists()

    # -----------------------------
    # Chargement / Sauvegarde
    # -----------------------------
    def load(self) -> None:
        """Charge room/tokens/events depuis le disque (ou valeurs par défaut)."""
        with self._lock:
            self.room = read_json(self._room_path()) or default_room(self.room_id)
            self.tokens = read_json(self._tokens_path()) or {}
            self.events = _read_events_ndjson(self._events_path())
            self._trim_events()

    def save(self) -> None:
        """Persiste room/tokens/events sur disque."""
        with self._lock:
            self._trim_events()
            write_json(self._room_path(), self.room)
            write_json(self._tokens_path(), self.tokens)
            _write_events_ndjson(self._events_path(), self.events)

    # -----------------------------
    # Lecture / mise à jour atomique
    # -----------------------------
    def snapshot(self) -> Dict[str, Any]:
        """Copie profonde du document courant (sûre à lire hors verrou)."""
        with self._lock:
            return copy.deepcopy(self.room)

    def update(self, mutator: Callable[[Dict[str, Any]], T]) -> T:
        """
        Applique `mutator` sur une copie du document, sous verrou.
        - Si `mutator` lève, rien n'est écrit (pas d'écriture partielle) et l'erreur remonte.
        - Sinon la copie remplace le document, est persistée, puis les abonnés sont notifiés.
        """
        with self._lock:
            draft = copy.deepcopy(self.room)
            result = mutator(draft)
            previous, self.room = self.room, draft
            try:
                self.save()
            except Exception:
                self.room = previous
                logger.exception("Room save failed, change discarded", extra={"room_id": self.room_id})
                raise
            published = copy.deepcopy(self.room)
        self._notify(published)
        return result

    # -----------------------------
    # Abonnements (push du document à chaque changement)
    # -----------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, document: Dict[str, Any]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(document)
            except Exception:
                logger.exception("Room listener failed", extra={"room_id": self.room_id})

    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    # -----------------------------
    # Jetons joueurs
    # -----------------------------
    def issue_token(self, player_id: str) -> str:
        with self._lock:
            token = uuid4().hex
            self.tokens[token] = {
                "player_id": player_id,
                "exp": int(time.time()) + settings.PLAYER_TOKEN_TTL_SECONDS,
            }
            self.save()
            return token

    def resolve_token(self, token: Optional[str]) -> Optional[str]:
        """Retourne le player_id du jeton s'il est valide, non expiré et le joueur toujours présent."""
        if not token:
            return None
        with self._lock:
            rec = self.tokens.get(token)
            if not isinstance(rec, dict):
                return None
            if int(rec.get("exp", 0)) < int(time.time()):
                self.tokens.pop(token, None)
                self.save()
                return None
            pid = rec.get("player_id")
            if pid not in (self.room.get("players") or {}):
                return None
            return pid

    def revoke_tokens(self, player_id: str) -> None:
        with self._lock:
            stale = [t for t, rec in self.tokens.items() if rec.get("player_id") == player_id]
            for token in stale:
                self.tokens.pop(token, None)
            if stale:
                self.save()

    # -----------------------------
    # Journal d'audit
    # -----------------------------
    def _trim_events(self) -> None:
        """Bornage du journal en mémoire pour éviter la dérive."""
        overflow = len(self.events) - MAX_AUDIT_EVENTS
        if overflow > 0:
            del self.events[:overflow]

    def log_event(self, kind: str, payload: Dict[str, Any], scope: str = "system") -> Dict[str, Any]:
        """Enregistre un événement avec verrou (thread-safe) puis sauvegarde."""
        with self._lock:
            entry = {
                "id": str(uuid4()),
                "kind": kind,
                "scope": scope,
                "payload": payload,
                "ts": time.time(),
            }
            self.events.append(entry)
            self.save()
        logger.info("Room event %s", kind, extra={"room_id": self.room_id, "scope": scope})
        return entry

    def events_snapshot(self) -> list[Dict[str, Any]]:
        """Retourne une copie des événements courants."""
        with self._lock:
            return [event.copy() for event in self.events]
