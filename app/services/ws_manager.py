# app/services/ws_manager.py
"""
Service: ws_manager.py
- Mapping (room_id, player_id) -> sockets ET socket -> (room_id, player_id).
- Snapshots immuables pour éviter "set changed size during iteration".
- Envois typés ciblés joueur ou room entière (chaque envoi est déjà filtré par l'appelant).
- Admin: stats(), kick_player().
"""
from __future__ import annotations
from typing import Dict, Set, Any, Tuple
from dataclasses import dataclass, field
from threading import RLock
import json
import logging
from starlette.websockets import WebSocket

logger = logging.getLogger(__name__)

Key = Tuple[str, str]


@dataclass
class WSManager:
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)
    # (room_id, player_id) -> set(WebSocket)
    clients: Dict[Key, Set[WebSocket]] = field(default_factory=dict)
    # reverse map: socket -> (room_id, player_id)
    ws_to_player: Dict[WebSocket, Key] = field(default_factory=dict)

    async def connect(self, ws: WebSocket, room_id: str, player_id: str) -> None:
        """Accepte la connexion WS et l'associe au joueur de la room."""
        await ws.accept()
        with self._lock:
            key = (room_id, player_id)
            self.clients.setdefault(key, set()).add(ws)
            self.ws_to_player[ws] = key

    def _unlink(self, ws: WebSocket) -> None:
        with self._lock:
            key = self.ws_to_player.pop(ws, None)
            if key:
                bucket = self.clients.get(key)
                if bucket is not None:
                    bucket.discard(ws)
                    if not bucket:
                        self.clients.pop(key, None)

    async def disconnect(self, ws: WebSocket) -> None:
        """Ferme proprement la connexion et nettoie les registres."""
        self._unlink(ws)
        try:
            await ws.close()
        except Exception:
            # socket déjà fermée côté client
            logger.debug("Websocket already closed", exc_info=True)

    async def send_json(self, ws: WebSocket, payload: Any) -> bool:
        """Envoie à un WS; renvoie True si succès, sinon False (et retire le WS mort)."""
        try:
            data = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
            await ws.send_text(data)
            return True
        except Exception:
            logger.debug("Dropping dead websocket", exc_info=True)
            self._unlink(ws)
            return False

    # ---------- snapshots immuables ----------
    def _snapshot_player(self, room_id: str, player_id: str) -> list[WebSocket]:
        with self._lock:
            return list(self.clients.get((room_id, player_id), set()))

    def _snapshot_room(self, room_id: str) -> list[WebSocket]:
        with self._lock:
            result: list[WebSocket] = []
            for (rid, _pid), bucket in self.clients.items():
                if rid == room_id:
                    result.extend(bucket)
            return result

    # ---------- envois ----------
    async def send_to_player(self, room_id: str, player_id: str, payload: Any) -> int:
        conns = self._snapshot_player(room_id, player_id)
        success = 0
        for ws in conns:
            if await self.send_json(ws, payload):
                success += 1
        logger.debug("send_to_player", extra={"room_id": room_id, "player_id": player_id, "sent": success})
        return success

    async def send_type_to_player(self, room_id: str, player_id: str, event_type: str, payload: Any) -> int:
        return await self.send_to_player(room_id, player_id, {"type": event_type, "payload": payload})

    async def broadcast_room_type(self, room_id: str, event_type: str, payload: Any) -> int:
        """Diffuse un message PUBLIC à toute la room (ne jamais y mettre de rôle)."""
        success = 0
        for ws in self._snapshot_room(room_id):
            if await self.send_json(ws, {"type": event_type, "payload": payload}):
                success += 1
        return success

    # ---------- admin ----------
    def stats(self) -> dict:
        with self._lock:
            per_room: Dict[str, int] = {}
            for (rid, _pid), conns in self.clients.items():
                per_room[rid] = per_room.get(rid, 0) + len(conns)
            return {"rooms": per_room, "total": sum(per_room.values())}

    async def kick_player(self, room_id: str, player_id: str) -> int:
        """Ferme toutes les sockets d'un joueur et nettoie les mappings."""
        conns = self._snapshot_player(room_id, player_id)
        for ws in conns:
            await self.disconnect(ws)
        return len(conns)

    async def close_room(self, room_id: str) -> int:
        conns = self._snapshot_room(room_id)
        for ws in conns:
            await self.disconnect(ws)
        return len(conns)


WS = WSManager()
