# app/routes/websocket.py
"""
WebSocket endpoint.

- /ws/rooms/{room_id}?token=... : abonnement d'un joueur à sa room.
  * À la connexion : envoi de la vue filtrée courante (type=room_state).
  * À chaque modification du document : nouvelle vue filtrée pour CE joueur.
  * Ping/pong pour heartbeat, ACK générique pour les autres messages.

Le document complet (avec rôles) ne quitte jamais le serveur : chaque push passe
par `player_view(room, player_id)`.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from app.deps.auth import resolve_player
from app.services.room_store import get_room_state
from app.services.room_views import player_view
from app.services.ws_manager import WS

logger = logging.getLogger(__name__)

router = APIRouter()

# code de fermeture applicatif (RFC 6455: 4000-4999 libres)
WS_CLOSE_UNAUTHORIZED = 4401


@router.websocket("/ws/rooms/{room_id}")
async def room_stream(ws: WebSocket, room_id: str, token: Optional[str] = Query(default=None)):
    state = get_room_state(room_id)
    ctx = resolve_player(state, token) if state is not None else None
    if ctx is None:
        await ws.close(code=WS_CLOSE_UNAUTHORIZED)
        return

    loop = asyncio.get_running_loop()
    updates: asyncio.Queue[Dict[str, Any]] = asyncio.Queue()

    def _on_change(document: Dict[str, Any]) -> None:
        # peut être appelé depuis un thread worker
        loop.call_soon_threadsafe(updates.put_nowait, document)

    await WS.connect(ws, ctx.room_id, ctx.player_id)
    unsubscribe = ctx.state.subscribe(_on_change)

    async def _pump() -> None:
        while True:
            document = await updates.get()
            if ctx.player_id not in (document.get("players") or {}):
                await WS.disconnect(ws)
                return
            await WS.send_json(ws, {"type": "room_state", "payload": player_view(document, ctx.player_id)})

    pump = asyncio.create_task(_pump())
    try:
        await WS.send_json(ws, {"type": "room_state", "payload": player_view(ctx.state.snapshot(), ctx.player_id)})
        while True:
            raw = await ws.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                # Message non JSON -> ignore
                continue

            if msg.get("type") == "ping":
                await WS.send_json(ws, {"type": "pong"})
            else:
                await WS.send_json(ws, {"type": "ack", "received": msg})
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe()
        pump.cancel()
        await WS.disconnect(ws)
        logger.debug("Room stream closed", extra={"room_id": ctx.room_id, "player_id": ctx.player_id})
