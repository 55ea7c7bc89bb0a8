"""
Static knowledge: which roles a given player is allowed to see.

- everybody sees themselves;
- a Fascist sees every Fascist and Hitler;
- Hitler sees the Fascists only at tables of fewer than 7 players;
- a Liberal sees nobody else.

The server computes this per requester and ships only the result; full role
data never leaves the room store.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from app.engine.roles import knowledge_rules, party_from_role
from app.models.game import Role, VisibleInformation
from app.models.player import GamePlayer

GamePlayerLike = Union[GamePlayer, Mapping[str, Any]]


def _id_and_role(player: GamePlayerLike) -> Tuple[str, Optional[Role]]:
    if isinstance(player, Mapping):
        raw = player.get("role")
        return str(player["id"]), Role(raw) if raw else None
    return player.id, player.role


def visible_information(
    observer_id: str,
    observer_role: Union[Role, str],
    all_players: Iterable[GamePlayerLike],
    total_player_count: int,
) -> VisibleInformation:
    observer_role = Role(observer_role)
    info = VisibleInformation()
    info.visible_roles[observer_id] = observer_role
    info.visible_parties[observer_id] = party_from_role(observer_role)

    if observer_role == Role.FASCIST:
        seen = {Role.FASCIST, Role.HITLER}
    elif observer_role == Role.HITLER and knowledge_rules(total_player_count).hitler_knows_fascists:
        seen = {Role.FASCIST}
    else:
        return info

    for player in all_players:
        pid, role = _id_and_role(player)
        if role in seen:
            info.visible_roles[pid] = role
            info.visible_parties[pid] = party_from_role(role)
    return info
