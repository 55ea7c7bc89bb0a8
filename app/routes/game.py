"""
Module routes/game.py
Rôle:
- Démarrage / reset de partie, transitions de statut et présidence (admin).
- Visibilité des rôles calculée côté serveur pour le joueur authentifié.
- Pouvoir d'enquête du président (un seul par partie).

Codes retour:
- 400 règle de jeu violée, 403 permission, 404 cible inconnue,
  409 pouvoir déjà utilisé / cible déjà enquêtée.
- `detail` porte le message exact (affiché tel quel côté joueur).
"""
from __future__ import annotations

import logging
from typing import List, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.deps.auth import PlayerContext, player_required
from app.engine.investigation import (
    AlreadyInvestigatedError,
    AlreadyUsedError,
    InvestigationError,
    NotPresidentError,
    TargetNotFoundError,
    STATUS_ELIGIBLE,
    investigation_status,
)
from app.engine.visibility import visible_information
from app.models.game import GameStatus, InvestigationRecord, VisibleInformation
from app.routes.rooms import as_http_error
from app.services import game_service
from app.services.game_service import RoomActionError
from app.services.room_views import dealt_player_count
from app.services.ws_manager import WS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rooms", tags=["game"])

INVESTIGATION_STATUS_CODES = {
    NotPresidentError: 403,
    TargetNotFoundError: 404,
    AlreadyUsedError: 409,
    AlreadyInvestigatedError: 409,
}


# ---------------------------------------------------------------------------
# Modèles Pydantic
# ---------------------------------------------------------------------------
class ResetPayload(BaseModel):
    reason: Literal["GAME_OVER", "ADMIN_REQUEST", "CONSENSUS"] = "GAME_OVER"


class StatusPayload(BaseModel):
    status: GameStatus


class InvestigatePayload(BaseModel):
    target_id: str = Field(..., min_length=1)


class InvestigationTarget(BaseModel):
    player_id: str
    name: str
    can_investigate: bool
    status: str


class StartResponse(BaseModel):
    ok: bool
    status: GameStatus
    player_count: int
    current_president_id: str


# ---------------------------------------------------------------------------
# Partie
# ---------------------------------------------------------------------------
@router.post("/{room_id}/start", response_model=StartResponse)
async def start_game(ctx: PlayerContext = Depends(player_required)):
    """Distribue les rôles. La réponse ne contient AUCUN rôle : chacun lit sa vue."""
    try:
        roles = game_service.start_game(ctx.state, ctx.player_id)
    except RoomActionError as exc:
        raise as_http_error(exc)
    room = ctx.state.snapshot()
    await WS.broadcast_room_type(ctx.room_id, "game_started", {"status": room["status"]})
    return StartResponse(
        ok=True,
        status=room["status"],
        player_count=len(roles),
        current_president_id=room["current_president_id"],
    )


@router.post("/{room_id}/reset")
async def reset_game(payload: ResetPayload = ResetPayload(), ctx: PlayerContext = Depends(player_required)):
    try:
        game_service.reset_game(ctx.state, ctx.player_id, payload.reason)
    except RoomActionError as exc:
        raise as_http_error(exc)
    await WS.broadcast_room_type(ctx.room_id, "game_reset", {"reason": payload.reason})
    return {"ok": True, "status": GameStatus.LOBBY.value}


@router.post("/{room_id}/status")
async def change_status(payload: StatusPayload, ctx: PlayerContext = Depends(player_required)):
    try:
        status = game_service.set_status(ctx.state, ctx.player_id, payload.status.value)
    except RoomActionError as exc:
        raise as_http_error(exc)
    return {"ok": True, "status": status}


@router.post("/{room_id}/president/next")
async def next_president(ctx: PlayerContext = Depends(player_required)):
    try:
        president = game_service.advance_president(ctx.state, ctx.player_id)
    except RoomActionError as exc:
        raise as_http_error(exc)
    return {"ok": True, "current_president_id": president}


# ---------------------------------------------------------------------------
# Visibilité
# ---------------------------------------------------------------------------
@router.get("/{room_id}/visibility", response_model=VisibleInformation)
async def my_visibility(ctx: PlayerContext = Depends(player_required)):
    room = ctx.state.snapshot()
    players = room.get("players") or {}
    role = players[ctx.player_id].get("role")
    if not role:
        raise HTTPException(status_code=409, detail="Roles have not been assigned yet")
    return visible_information(ctx.player_id, role, players.values(), dealt_player_count(room))


# ---------------------------------------------------------------------------
# Enquête
# ---------------------------------------------------------------------------
@router.get("/{room_id}/investigation/targets", response_model=List[InvestigationTarget])
async def investigation_targets(ctx: PlayerContext = Depends(player_required)):
    """Liste de sélection de cible, avec le libellé d'éligibilité de chaque joueur."""
    room = ctx.state.snapshot()
    targets: List[InvestigationTarget] = []
    for pid, player in (room.get("players") or {}).items():
        label = investigation_status(room, ctx.player_id, pid)
        targets.append(
            InvestigationTarget(
                player_id=pid,
                name=player.get("name", ""),
                can_investigate=label == STATUS_ELIGIBLE,
                status=label,
            )
        )
    return targets


@router.post("/{room_id}/investigate", response_model=InvestigationRecord)
async def investigate(payload: InvestigatePayload, ctx: PlayerContext = Depends(player_required)):
    """Enquête du président : le résultat n'est renvoyé qu'à lui (HTTP + WS ciblé)."""
    try:
        record = game_service.investigate(ctx.state, ctx.player_id, payload.target_id)
    except InvestigationError as exc:
        status_code = INVESTIGATION_STATUS_CODES.get(type(exc), 400)
        logger.info(
            "Investigation refused",
            extra={"room_id": ctx.room_id, "actor_id": ctx.player_id, "code": exc.code},
        )
        raise HTTPException(status_code=status_code, detail=str(exc))

    await WS.send_type_to_player(ctx.room_id, ctx.player_id, "investigation_result", record.model_dump(mode="json"))
    await WS.broadcast_room_type(ctx.room_id, "investigation_used", {"investigated_by": ctx.player_id})
    return record
