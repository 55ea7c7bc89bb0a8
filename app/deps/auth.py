"""
Dépendances d'authentification joueur
=====================================

Objectif
--------
Fournir une *dependency* FastAPI `player_required` qui identifie le joueur
d'une room à partir du jeton émis à la création/au join :
1) `Authorization: Bearer <token>` (clients HTTP), *ou*
2) `?token=<token>` (WebSocket, le navigateur ne pouvant pas poser de header).

Intégrations
------------
- `RoomState.tokens` : jetons persistés par room (`rooms/<ROOM_ID>/tokens.json`),
  avec TTL `settings.PLAYER_TOKEN_TTL_SECONDS`.

Comportement & codes retour
---------------------------
- 404 si la room n'existe pas.
- 401 si aucun jeton valide pour cette room (absent, expiré, joueur parti).
- Sinon un `PlayerContext(state, player_id)`.

Notes
-----
- `HTTPBearer(auto_error=False)` pour renvoyer nos 401 propres.
- Le préflight CORS (OPTIONS) n'est pas concerné : la dépendance est posée par route.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.services.room_state import RoomState
from app.services.room_store import get_room_state


@dataclass
class PlayerContext:
    state: RoomState
    player_id: str

    @property
    def room_id(self) -> str:
        return self.state.room_id


# Schéma Bearer (désactive l'erreur auto pour qu'on rende nos 401)
bearer = HTTPBearer(auto_error=False)


def require_room(room_id: str) -> RoomState:
    state = get_room_state(room_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Room not found")
    return state


def resolve_player(state: RoomState, token: Optional[str]) -> Optional[PlayerContext]:
    player_id = state.resolve_token(token)
    if not player_id:
        return None
    return PlayerContext(state=state, player_id=player_id)


def player_required(
    room_id: str,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    token: Optional[str] = Query(default=None, description="Jeton joueur (alternative au header)"),
) -> PlayerContext:
    """
    Dépendance d'accès joueur.

    Exceptions:
    - 404 si la room est inconnue,
    - 401 si le jeton est absent ou invalide pour cette room.
    """
    state = require_room(room_id)

    raw = None
    if credentials and (credentials.scheme or "").lower() == "bearer":
        raw = credentials.credentials
    ctx = resolve_player(state, raw or token)
    if ctx is None:
        raise HTTPException(status_code=401, detail="Player authentication required")
    return ctx
