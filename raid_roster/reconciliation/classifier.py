from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from raid_roster.models.enums import Role
from raid_roster.models.player import Player, RaidAssist, RaidLeader
from raid_roster.models.team import Team
from .identity import players_match


class TeamComposition(BaseModel):
    """Read-only projection of a team into its display buckets."""

    team_lead: Optional[RaidLeader] = None
    raid_assists: List[RaidAssist] = Field(default_factory=list)
    tanks: List[Player] = Field(default_factory=list)
    healers: List[Player] = Field(default_factory=list)
    dps: List[Player] = Field(default_factory=list)


def classify(player: Player, team: Team) -> Role:
    """Assign ``player`` its single role within ``team``; first match wins."""
    if team.raid_leader is not None and players_match(player, team.raid_leader):
        return Role.TEAM_LEAD
    if any(
        not assist.is_placeholder and players_match(player, assist)
        for assist in team.raid_assists
    ):
        return Role.RAID_ASSIST
    if player.role == Role.TEAM_ASSIST:
        return Role.TEAM_ASSIST
    if player.role == Role.TANK:
        return Role.TANK
    if player.role == Role.HEALER:
        return Role.HEALER
    return Role.DPS


def role_from_type(role_type: Optional[str]) -> Role:
    """Map a Blizzard specialization role type onto a combat role."""
    normalized = (role_type or "").strip().upper()
    if normalized == "TANK":
        return Role.TANK
    if normalized in ("HEALER", "HEALING"):
        return Role.HEALER
    return Role.DPS


def role_from_specialization(payload: Optional[Dict[str, Any]]) -> Role:
    """Role of the active specialization in a Blizzard specializations payload.

    Falls back to the first listed specialization, and to DPS when the payload
    carries no usable role type.
    """
    if not isinstance(payload, dict):
        return Role.DPS
    specializations = payload.get("specializations")
    if not isinstance(specializations, list) or not specializations:
        return Role.DPS
    active = next(
        (s for s in specializations if isinstance(s, dict) and s.get("active")),
        specializations[0],
    )
    if not isinstance(active, dict):
        return Role.DPS
    specialization = active.get("specialization") or {}
    role = specialization.get("role") if isinstance(specialization, dict) else None
    role_type = role.get("type") if isinstance(role, dict) else None
    return role_from_type(role_type)


def sort_by_name(players: List[Player]) -> List[Player]:
    return sorted(players, key=lambda p: (p.display_name.casefold(), p.display_name))


def compose(team: Team) -> TeamComposition:
    """Split a team into leader, assists and sorted Tank/Healer/DPS buckets."""
    buckets: Dict[Role, List[Player]] = {Role.TANK: [], Role.HEALER: [], Role.DPS: []}
    for player in team.roster:
        role = classify(player, team)
        if role in buckets:
            buckets[role].append(player)
        else:
            # Team Assists are promoted by the merge engine; until then show them as DPS
            buckets[Role.DPS].append(player)

    return TeamComposition(
        team_lead=team.raid_leader,
        raid_assists=[a for a in team.raid_assists if not a.is_placeholder],
        tanks=sort_by_name(buckets[Role.TANK]),
        healers=sort_by_name(buckets[Role.HEALER]),
        dps=sort_by_name(buckets[Role.DPS]),
    )
