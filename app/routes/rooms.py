"""
Module routes/rooms.py
Rôle:
- Cycle de vie du lobby : création, join, départ, prêt/renommage, gestion admin.
- Lecture de la room : chaque joueur reçoit SA vue filtrée (`player_view`),
  jamais les rôles des autres.

Intégrations:
- `player_required` : identifie le joueur via son jeton Bearer.
- `game_service` : règles de lobby appliquées sous verrou de room.
- `WS` : déconnexion des sockets d'un joueur retiré.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.deps.auth import PlayerContext, player_required
from app.services import game_service
from app.services.game_service import RoomActionError
from app.services.room_store import RoomStoreError
from app.services.room_views import player_view
from app.services.ws_manager import WS

router = APIRouter(prefix="/rooms", tags=["rooms"])


# ---------------------------------------------------------------------------
# Modèles Pydantic
# ---------------------------------------------------------------------------
class CreateRoomPayload(BaseModel):
    player_name: Optional[str] = Field(None, max_length=40)


class JoinPayload(BaseModel):
    player_name: str = Field(..., min_length=1, max_length=40)


class JoinResponse(BaseModel):
    room_id: str
    player_id: str
    token: str


class ReadyPayload(BaseModel):
    ready: bool


class RenamePayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=40)


class TransferAdminPayload(BaseModel):
    player_id: str


def as_http_error(exc: RoomActionError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.post("", response_model=JoinResponse)
async def create_room(payload: CreateRoomPayload):
    """Crée une room ; l'appelant en devient admin et reçoit son jeton."""
    try:
        state, player_id, token = game_service.create_room(payload.player_name)
    except RoomStoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return JoinResponse(room_id=state.room_id, player_id=player_id, token=token)


@router.post("/{room_id}/join", response_model=JoinResponse)
async def join_room(room_id: str, payload: JoinPayload):
    try:
        state, player_id, token = game_service.join_room(room_id, payload.player_name)
    except RoomActionError as exc:
        raise as_http_error(exc)
    return JoinResponse(room_id=state.room_id, player_id=player_id, token=token)


@router.get("/{room_id}")
async def get_room(ctx: PlayerContext = Depends(player_required)) -> Dict[str, Any]:
    """Vue de la room pour le joueur authentifié."""
    return player_view(ctx.state.snapshot(), ctx.player_id)


@router.post("/{room_id}/leave")
async def leave_room(ctx: PlayerContext = Depends(player_required)):
    outcome = game_service.leave_room(ctx.state, ctx.player_id)
    await WS.kick_player(ctx.room_id, ctx.player_id)
    if outcome["room_deleted"]:
        await WS.close_room(ctx.room_id)
    return {"ok": True, **outcome}


@router.post("/{room_id}/ready")
async def set_ready(payload: ReadyPayload, ctx: PlayerContext = Depends(player_required)):
    game_service.set_player_ready(ctx.state, ctx.player_id, payload.ready)
    return {"ok": True, "ready": payload.ready}


@router.post("/{room_id}/name")
async def rename(payload: RenamePayload, ctx: PlayerContext = Depends(player_required)):
    try:
        game_service.rename_player(ctx.state, ctx.player_id, payload.name)
    except RoomActionError as exc:
        raise as_http_error(exc)
    return {"ok": True, "name": payload.name.strip()}


@router.delete("/{room_id}/players/{player_id}")
async def remove_player(player_id: str, ctx: PlayerContext = Depends(player_required)):
    """Retrait d'un joueur par l'admin (ses sockets sont fermées)."""
    try:
        game_service.remove_player(ctx.state, ctx.player_id, player_id)
    except RoomActionError as exc:
        raise as_http_error(exc)
    await WS.kick_player(ctx.room_id, player_id)
    return {"ok": True, "removed": player_id}


@router.post("/{room_id}/admin")
async def transfer_admin(payload: TransferAdminPayload, ctx: PlayerContext = Depends(player_required)):
    try:
        game_service.transfer_admin(ctx.state, ctx.player_id, payload.player_id)
    except RoomActionError as exc:
        raise as_http_error(exc)
    return {"ok": True, "admin_id": payload.player_id}
