"""
Rules engine: role distribution, dealing and validation.

Pure functions only. Nothing here touches the room store; callers persist the
returned values themselves. Randomness comes from an injectable
`random.Random`-compatible generator so tests can replay a deal.
"""
from __future__ import annotations

import random
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from app.models.game import (
    GameStatus,
    KnowledgeRules,
    Party,
    Role,
    RoleDistribution,
    StartEligibility,
    ValidationResult,
)
from app.models.player import GamePlayer, Player

MIN_PLAYERS = 5
MAX_PLAYERS = 10

LIBERAL_POLICY_WIN = 5
FASCIST_POLICY_WIN = 6

# Official table. Not a formula: fascist counts step unevenly between rows.
ROLE_DISTRIBUTION: Dict[int, RoleDistribution] = {
    5: RoleDistribution(liberals=3, fascists=1, hitler=1),
    6: RoleDistribution(liberals=4, fascists=1, hitler=1),
    7: RoleDistribution(liberals=4, fascists=2, hitler=1),
    8: RoleDistribution(liberals=5, fascists=2, hitler=1),
    9: RoleDistribution(liberals=5, fascists=3, hitler=1),
    10: RoleDistribution(liberals=6, fascists=3, hitler=1),
}

VALID_TRANSITIONS: Dict[GameStatus, tuple] = {
    GameStatus.LOBBY: (GameStatus.ROLE_REVEAL,),
    GameStatus.ROLE_REVEAL: (GameStatus.VOTING,),
    # a failed election stays in VOTING
    GameStatus.VOTING: (GameStatus.LEGISLATIVE, GameStatus.VOTING),
    GameStatus.LEGISLATIVE: (GameStatus.EXECUTIVE_ACTION, GameStatus.VOTING),
    GameStatus.EXECUTIVE_ACTION: (GameStatus.VOTING, GameStatus.GAME_OVER),
    GameStatus.GAME_OVER: (GameStatus.LOBBY,),
}

PlayerLike = Union[Player, Mapping[str, Any]]


class InvalidPlayerCountError(ValueError):
    """Raised when roles are dealt for a table outside 5-10 players."""

    def __init__(self, player_count: int) -> None:
        self.player_count = player_count
        self.min_players = MIN_PLAYERS
        self.max_players = MAX_PLAYERS
        super().__init__(
            f"Invalid player count: {player_count}. Must be {MIN_PLAYERS}-{MAX_PLAYERS} players."
        )


def _player_id(player: PlayerLike) -> str:
    if isinstance(player, Mapping):
        return str(player["id"])
    return player.id


def distribution_for(player_count: int) -> Optional[RoleDistribution]:
    """Return the role counts for `player_count`, or None outside 5..10."""
    return ROLE_DISTRIBUTION.get(player_count)


def knowledge_rules(player_count: int) -> KnowledgeRules:
    return KnowledgeRules(hitler_knows_fascists=player_count < 7)


def party_from_role(role: Union[Role, str]) -> Party:
    return Party.LIBERAL if Role(role) == Role.LIBERAL else Party.FASCIST


def can_start_game(player_count: int) -> StartEligibility:
    """Lobby gate, checked before `assign_roles` to get a user-facing reason."""
    if player_count < MIN_PLAYERS:
        return StartEligibility(can_start=False, reason="Need at least 5 players to start")
    if player_count > MAX_PLAYERS:
        return StartEligibility(can_start=False, reason="Maximum 10 players allowed")
    return StartEligibility(can_start=True)


def _role_tokens(distribution: RoleDistribution) -> List[Role]:
    return (
        [Role.LIBERAL] * distribution.liberals
        + [Role.FASCIST] * distribution.fascists
        + [Role.HITLER] * distribution.hitler
    )


def _shuffle(items: List[Role], rng: random.Random) -> None:
    """In-place Fisher-Yates."""
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]


def assign_roles(
    players: List[PlayerLike],
    rng: Optional[random.Random] = None,
) -> Dict[str, Role]:
    """
    Deal one role per player following the distribution table.

    The shuffled role list is zipped against `players` in order. Without an
    explicit `rng` a freshly OS-seeded generator is used for every deal.

    Raises:
        InvalidPlayerCountError: fewer than 5 or more than 10 players.
    """
    distribution = distribution_for(len(players))
    if distribution is None:
        raise InvalidPlayerCountError(len(players))

    rng = rng or random.Random()
    roles = _role_tokens(distribution)
    _shuffle(roles, rng)

    return {_player_id(player): role for player, role in zip(players, roles)}


def validate_role_assignment(assignment: Mapping[str, Union[Role, str]], player_count: int) -> ValidationResult:
    """Integrity check of a deal; reports the first mismatch instead of raising."""
    distribution = distribution_for(player_count)
    if distribution is None:
        return ValidationResult(valid=False, error=f"Invalid player count: {player_count}")

    counts = {role: 0 for role in Role}
    for value in assignment.values():
        try:
            counts[Role(value)] += 1
        except ValueError:
            # missing or unknown role: not counted, surfaces as a mismatch below
            continue

    if counts[Role.LIBERAL] != distribution.liberals:
        return ValidationResult(
            valid=False,
            error=f"Expected {distribution.liberals} liberals, got {counts[Role.LIBERAL]}",
        )
    if counts[Role.FASCIST] != distribution.fascists:
        return ValidationResult(
            valid=False,
            error=f"Expected {distribution.fascists} fascists, got {counts[Role.FASCIST]}",
        )
    if counts[Role.HITLER] != distribution.hitler:
        return ValidationResult(
            valid=False,
            error=f"Expected {distribution.hitler} Hitler, got {counts[Role.HITLER]}",
        )
    return ValidationResult(valid=True)


def create_game_players(players: Iterable[PlayerLike], roles: Mapping[str, Union[Role, str]]) -> List[GamePlayer]:
    result: List[GamePlayer] = []
    for player in players:
        data = dict(player) if isinstance(player, Mapping) else player.model_dump()
        role = roles.get(data["id"])
        data["role"] = role
        data["party"] = party_from_role(role) if role else None
        data["is_alive"] = True
        result.append(GamePlayer.model_validate(data))
    return result


def next_president(current_president_id: str, players: List[PlayerLike]) -> str:
    """Round-robin on seating order; an unknown current id restarts at the first seat."""
    ids = [_player_id(p) for p in players]
    try:
        index = ids.index(current_president_id)
    except ValueError:
        index = -1
    return ids[(index + 1) % len(ids)]


def is_valid_state_transition(from_state: Union[GameStatus, str], to_state: Union[GameStatus, str]) -> bool:
    try:
        source, target = GameStatus(from_state), GameStatus(to_state)
    except ValueError:
        return False
    return target in VALID_TRANSITIONS.get(source, ())
