"""
Investigation power: precondition checks and record construction.

`check_investigation` is pure: it reads a room document (dict as stored by
`RoomState`) and either raises an `InvestigationError` subclass or returns the
record to persist. Who may investigate (the president) is decided by the
caller; only target-side rules live here.

Rules:
- one investigation per room per game (the collection must be empty);
- the target must be a known player, not the actor, not already investigated,
  and must already hold a role.
"""
from __future__ import annotations

import time
from typing import Any, Mapping, Optional

from app.engine.roles import party_from_role
from app.models.game import InvestigationRecord

STATUS_SELF = "Cannot investigate self"
STATUS_ALREADY_INVESTIGATED = "Already investigated"
STATUS_ELIGIBLE = "Eligible for investigation"


class InvestigationError(RuntimeError):
    """Base class; `code` is stable for API clients, `message` for players."""

    code = "investigation_error"
    message = "Investigation failed"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.message)


class NoContextError(InvestigationError):
    code = "no_context"
    message = "No room or user"


class NotPresidentError(InvestigationError):
    code = "not_president"
    message = "Only President can investigate players"


class AlreadyUsedError(InvestigationError):
    code = "already_used"
    message = "Investigation power already used in this game"


class TargetNotFoundError(InvestigationError):
    code = "target_not_found"
    message = "Target player not found"


class SelfTargetForbiddenError(InvestigationError):
    code = "self_target_forbidden"
    message = "Cannot investigate yourself"


class AlreadyInvestigatedError(InvestigationError):
    code = "already_investigated"
    message = "Player already investigated"


class RoleNotAssignedError(InvestigationError):
    code = "role_not_assigned"
    message = "Target role not found - game may not be started"


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def check_investigation(
    room: Optional[Mapping[str, Any]],
    actor_id: Optional[str],
    target_id: str,
    now: Optional[int] = None,
) -> InvestigationRecord:
    if not room or not actor_id:
        raise NoContextError()

    investigations = room.get("investigations") or {}
    if investigations:
        raise AlreadyUsedError()

    players = room.get("players") or {}
    target = players.get(target_id)
    if target is None:
        raise TargetNotFoundError()

    if target_id == actor_id:
        raise SelfTargetForbiddenError()

    # unreachable while the one-shot rule holds
    if target_id in investigations:
        raise AlreadyInvestigatedError()

    role = target.get("role")
    if not role:
        raise RoleNotAssignedError()

    stamp = now if now is not None else _now_ms()
    return InvestigationRecord(
        investigation_id=f"{actor_id}_{stamp}",
        result=party_from_role(role),
        investigated_by=actor_id,
        investigated_at=stamp,
        target_id=target_id,
    )


def investigation_status(room: Mapping[str, Any], actor_id: str, player_id: str) -> str:
    """Label shown next to each candidate in the target picker."""
    if player_id == actor_id:
        return STATUS_SELF
    if player_id in (room.get("investigations") or {}):
        return STATUS_ALREADY_INVESTIGATED
    return STATUS_ELIGIBLE
