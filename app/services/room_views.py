"""
Service: room_views.py
Rôle:
- Construire la vue d'une room pour UN joueur donné, côté serveur.
- Le document stocké contient tous les rôles ; la vue n'expose que :
  * les champs publics (statut, admin, président, joueurs sans leur rôle),
  * ce que le moteur de visibilité autorise (`visible_information`),
  * les enquêtes menées par ce joueur (les autres restent privées).
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from app.engine.roles import party_from_role
from app.engine.visibility import visible_information

PUBLIC_ROOM_FIELDS = (
    "id",
    "status",
    "admin_id",
    "created_at",
    "started_at",
    "ended_at",
    "starting_player_id",
    "current_president_id",
    "current_chancellor_id",
    "enacted_liberal_policies",
    "enacted_fascist_policies",
    "election_tracker",
)
PUBLIC_PLAYER_FIELDS = ("id", "name", "is_ready", "joined_at")


def public_players(room: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    players = room.get("players") or {}
    return {
        pid: {key: player.get(key) for key in PUBLIC_PLAYER_FIELDS}
        for pid, player in players.items()
    }


def dealt_player_count(room: Dict[str, Any]) -> int:
    """Nombre de joueurs au moment du tirage (les départs en cours de partie n'y changent rien)."""
    return room.get("dealt_player_count") or len(room.get("players") or {})


def player_view(room: Dict[str, Any], viewer_id: Optional[str]) -> Dict[str, Any]:
    view: Dict[str, Any] = {key: room.get(key) for key in PUBLIC_ROOM_FIELDS}
    players = room.get("players") or {}
    investigations = room.get("investigations") or {}

    view["players"] = public_players(room)
    view["player_count"] = len(players)
    view["is_player_in_room"] = bool(viewer_id) and viewer_id in players
    view["investigation_used"] = bool(investigations)

    me = players.get(viewer_id) if viewer_id else None
    role = (me or {}).get("role")
    view["my_role"] = role
    view["my_party"] = party_from_role(role).value if role else None

    if role:
        info = visible_information(viewer_id, role, players.values(), dealt_player_count(room))
        view["visible_roles"] = {pid: r.value for pid, r in info.visible_roles.items()}
        view["visible_parties"] = {pid: p.value for pid, p in info.visible_parties.items()}
    else:
        view["visible_roles"] = {}
        view["visible_parties"] = {}

    view["my_investigations"] = {
        target: record
        for target, record in investigations.items()
        if record.get("investigated_by") == viewer_id
    }
    return view
