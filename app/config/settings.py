"""
Configuration de l'application (Settings)
=========================================

Rôle
----
- Centraliser les paramètres de l'app (nom, host/port, chemins, CORS, logs, jetons joueurs).
- Les valeurs par défaut conviennent pour un environnement de dev local.
- Les variables peuvent être surchargées via un fichier `.env` ou l'environnement.

Intégrations
------------
- `pydantic-settings` charge automatiquement les variables d'env et `.env`.
- Les services/routers importent `from app.config.settings import settings`.

Notes
-----
- Les règles du jeu (5-10 joueurs, table de distribution) ne sont PAS configurables :
  elles vivent dans `app/engine/roles.py`.
- `DATA_DIR` est relu à chaque accès par les services : les tests peuvent le
  rediriger vers un dossier temporaire.

Exemple de `.env`
-----------------
APP_NAME="Chancellor Dossier (Staging)"
PORT=8080
DATA_DIR="/var/opt/chancellor/data"
LOG_LEVEL="DEBUG"
"""
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
import os


class Settings(BaseSettings):
    # Nom du service (apparaît dans /health)
    APP_NAME: str = "Chancellor Dossier Backend"
    # Bind réseau (FastAPI / Uvicorn)
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Frontends autorisés (CORS)
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Niveau de log racine (logging.basicConfig)
    LOG_LEVEL: str = "INFO"

    # Durée de vie d'un jeton joueur (Bearer) émis à la création/au join d'une room
    PLAYER_TOKEN_TTL_SECONDS: int = 12 * 3600

    # Répertoire des fichiers persistés (rooms/<ROOM_ID>/room.json, events.ndjson)
    # Par défaut: <repo>/app/data
    DATA_DIR: str = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


# Instance unique importable partout : `settings`
settings = Settings()
