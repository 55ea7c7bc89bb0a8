"""
Models / player.py
Rôle:
- Définir la structure d'un joueur de room (côté modèles Pydantic).

Champs:
- id: identifiant unique du joueur.
- name: nom d'affichage.
- is_ready: case "prêt" du lobby.
- joined_at: horodatage d'arrivée (epoch ms).

`GamePlayer` enrichit le joueur avec son rôle (optionnel), le parti dérivé et un
drapeau de vie. Ce n'est pas la source de vérité : les rôles vivent dans le
document de room, indexés par player_id.
"""
from pydantic import BaseModel
from typing import Optional

from app.models.game import Party, Role


class Player(BaseModel):
    """Profil joueur minimal pour sérialisation/validation côté API."""
    id: str  # player_id unique
    name: str  # nom affiché
    is_ready: bool = False
    joined_at: int = 0


class GamePlayer(Player):
    role: Optional[Role] = None  # None tant que la partie n'a pas démarré
    party: Optional[Party] = None  # toujours party_from_role(role)
    is_alive: bool = True
