"""
Module routes/health.py
Rôle:
- Endpoints de santé (service OK + état des rooms/sockets).

Intégrations:
- settings: nom d'app.
- room_store / WS: compteurs en mémoire (aucune donnée de partie).
"""
from fastapi import APIRouter

from app.config.settings import settings
from app.services.room_store import list_room_ids
from app.services.ws_manager import WS

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health():
    """Renvoie un OK minimal avec le nom de service configuré."""
    return {"ok": True, "service": settings.APP_NAME}


@router.get("/rooms")
async def health_rooms():
    """Nombre de rooms chargées en mémoire et de sockets ouvertes."""
    return {"ok": True, "rooms_loaded": len(list_room_ids()), "sockets": WS.stats()}
