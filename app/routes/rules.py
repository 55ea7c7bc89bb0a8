"""
Module routes/rules.py
Rôle:
- Exposer les règles statiques (publiques) : table de distribution, seuil de démarrage,
  règles de connaissance. Aucune donnée de room ici.
"""
from fastapi import APIRouter, HTTPException, Query

from app.engine.roles import (
    FASCIST_POLICY_WIN,
    LIBERAL_POLICY_WIN,
    MAX_PLAYERS,
    MIN_PLAYERS,
    ROLE_DISTRIBUTION,
    can_start_game,
    distribution_for,
    knowledge_rules,
)

router = APIRouter(prefix="/rules", tags=["rules"])


@router.get("")
async def rules_overview():
    return {
        "min_players": MIN_PLAYERS,
        "max_players": MAX_PLAYERS,
        "liberal_policy_win": LIBERAL_POLICY_WIN,
        "fascist_policy_win": FASCIST_POLICY_WIN,
        "distribution": {str(n): d.model_dump() for n, d in ROLE_DISTRIBUTION.items()},
    }


@router.get("/distribution/{player_count}")
async def distribution(player_count: int):
    found = distribution_for(player_count)
    if found is None:
        raise HTTPException(
            status_code=404,
            detail=f"No role distribution for {player_count} players ({MIN_PLAYERS}-{MAX_PLAYERS})",
        )
    return {"player_count": player_count, **found.model_dump(), "knowledge": knowledge_rules(player_count).model_dump()}


@router.get("/can_start")
async def can_start(player_count: int = Query(..., ge=0)):
    return can_start_game(player_count).model_dump()
