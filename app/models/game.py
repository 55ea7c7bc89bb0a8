"""
Models / game.py
Rôle:
- Définir les valeurs de règles du jeu échangées dans l'app (rôles, partis, statuts de room)
  et les petits enregistrements immuables produits par le moteur (`app/engine`).

Notes:
- `Role` et `Party` sont des Enum `str` : ils se sérialisent tels quels en JSON
  ("LIBERAL", "FASCIST", "HITLER") et se comparent aux chaînes stockées dans les rooms.
- `Party` n'est jamais stockée : toujours dérivée du rôle (`party_from_role`).
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    LIBERAL = "LIBERAL"
    FASCIST = "FASCIST"
    HITLER = "HITLER"


class Party(str, Enum):
    LIBERAL = "LIBERAL"
    FASCIST = "FASCIST"


class GameStatus(str, Enum):
    LOBBY = "LOBBY"
    ROLE_REVEAL = "ROLE_REVEAL"
    VOTING = "VOTING"
    LEGISLATIVE = "LEGISLATIVE"
    EXECUTIVE_ACTION = "EXECUTIVE_ACTION"
    GAME_OVER = "GAME_OVER"


class RoleDistribution(BaseModel):
    """Nombre de rôles par camp pour un nombre de joueurs donné (ligne de table figée)."""
    liberals: int
    fascists: int
    hitler: int = 1

    model_config = ConfigDict(frozen=True)

    @property
    def total(self) -> int:
        return self.liberals + self.fascists + self.hitler


class KnowledgeRules(BaseModel):
    """Qui connaît qui au début de la partie (dérivé du nombre de joueurs, jamais stocké)."""
    hitler_knows_fascists: bool  # True uniquement sous 7 joueurs
    fascists_know_hitler: bool = True
    fascists_know_each_other: bool = True

    model_config = ConfigDict(frozen=True)


class ValidationResult(BaseModel):
    valid: bool
    error: Optional[str] = None


class StartEligibility(BaseModel):
    can_start: bool
    reason: Optional[str] = None


class InvestigationRecord(BaseModel):
    """Résultat d'enquête, stocké dans la room sous `investigations[target_id]`."""
    investigation_id: str  # "<actor_id>_<timestamp ms>"
    result: Party
    investigated_by: str
    investigated_at: int  # epoch en millisecondes
    target_id: str


class VisibleInformation(BaseModel):
    """Sous-ensemble des rôles/partis qu'un observateur a le droit de connaître."""
    visible_roles: Dict[str, Role] = Field(default_factory=dict)
    visible_parties: Dict[str, Party] = Field(default_factory=dict)
