"""
Application FastAPI — Point d'entrée
====================================

Rôle
----
- Instancie l'app FastAPI, configure logging et CORS pour le front,
- Monte tous les routeurs (REST + WebSocket),
- Affiche la liste des routes au démarrage.

Notes
-----
- Les importations des routeurs sont explicites pour éviter les surprises d'auto-discovery.
- ⚠️ Le middleware CORS doit être ajouté AVANT les include_router.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.routes.game import router as game_router
from app.routes.health import router as health_router
from app.routes.rooms import router as rooms_router
from app.routes.rules import router as rules_router
from app.routes.websocket import router as ws_router

from app.config.settings import settings

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Au démarrage: liste les routes (path + méthodes) dans les logs (diagnostic)."""
    logger.info("== %s on %s:%s ==", settings.APP_NAME, settings.HOST, settings.PORT)
    for r in app.routes:
        logger.debug("route %s %s", getattr(r, "path", "?"), getattr(r, "methods", None))
    yield


# --- App FastAPI principale ---
app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# ===========================
# CORS
# ===========================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,   # ← whitelist des frontends autorisés
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],                      # ← dont Authorization (jeton joueur)
)

# ===========================
# Montage des routers
# ===========================
# L'auth joueur est posée PAR ROUTE (Depends(player_required)) pour laisser passer les préflights OPTIONS.
app.include_router(health_router)
app.include_router(rules_router)
app.include_router(rooms_router)
app.include_router(game_router)
app.include_router(ws_router)                  # WebSocket endpoint (/ws/rooms/{room_id})


# --- Racine utile pour "ping" simple (sans /health) ---
@app.get("/")
async def root():
    return {"ok": True, "service": "chancellor-dossier-backend"}


def run() -> None:
    """Lance le serveur avec la configuration de `settings` (entrée console `chancellor-dossier`)."""
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
