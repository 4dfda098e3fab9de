from typing import Any, Iterable, List, Optional, Set

from loguru import logger

from raid_roster.models.enums import Role
from raid_roster.models.player import Player, RaidAssist, RaidLeader
from raid_roster.models.team import Team
from .identity import names_of, players_match

# Fields a provider owns. Everything else (roles, cosmetics) belongs to the officers.
PROVIDER_FIELDS = (
    "player_class",
    "race",
    "level",
    "avatar",
    "overall_ranking",
    "overall_ranking_metric",
    "highest_boss_kill",
    "highest_boss_kill_difficulty",
    "warcraft_logs_url",
    "warcraft_logs_available",
)

_SLOT_FIELDS = {"leader_role", "assist_role"}

# Roles a roster entry may carry; positional roles come from the buckets
ROSTER_ROLES = (Role.TANK, Role.HEALER, Role.DPS, Role.TEAM_ASSIST)


def roster_role(role: Optional[Role]) -> Optional[Role]:
    if role is None or role in ROSTER_ROLES:
        return role
    return Role.DPS


def as_player(player: Player, role: Optional[Role] = None) -> Player:
    """Plain roster record for any leader/assist/roster entry."""
    data = player.model_dump(exclude=_SLOT_FIELDS)
    if role is not None:
        data["role"] = role
    return Player.model_validate(data)


def as_leader(player: Player, leader_role: Optional[Role] = None) -> RaidLeader:
    data = player.model_dump(exclude=_SLOT_FIELDS)
    data["leader_role"] = leader_role
    return RaidLeader.model_validate(data)


def as_assist(player: Player, assist_role: Optional[Role] = None) -> RaidAssist:
    data = player.model_dump(exclude=_SLOT_FIELDS)
    data["assist_role"] = assist_role
    return RaidAssist.model_validate(data)


def _has_value(value: Any) -> bool:
    return value is not None and value != ""


def apply_provider_fields(target: Player, fresh: Player) -> bool:
    """Copy supplied provider fields from ``fresh`` onto ``target``; report changes."""
    changed = False
    for field in PROVIDER_FIELDS:
        value = getattr(fresh, field)
        if _has_value(value) and getattr(target, field) != value:
            setattr(target, field, value)
            changed = True
    if target.role is None and fresh.role is not None:
        target.role = roster_role(fresh.role)
        changed = True
    return changed


def _find_in_team(team: Team, fresh: Player) -> Optional[Player]:
    for player in team.members():
        if players_match(player, fresh):
            return player
    return None


def reconcile_buckets(team: Team) -> Team:
    """Re-derive the leader/assist/roster partition in place.

    The leader wins over assists, assists win over the roster, and roster
    players flagged Team Assist are promoted. Placeholder assist slots are
    left where they are.
    """
    leader_names: Set[str] = names_of(team.raid_leader)

    assists: List[RaidAssist] = []
    taken: Set[str] = set(leader_names)
    for assist in team.raid_assists:
        if assist.is_placeholder:
            assists.append(assist)
            continue
        names = names_of(assist)
        if names & taken:
            logger.debug(f"Dropping duplicate assist slot for '{assist.display_name}'")
            continue
        taken |= names
        assists.append(assist)

    roster: List[Player] = []
    for player in team.roster:
        names = names_of(player)
        if names & taken:
            continue
        if player.role == Role.TEAM_ASSIST:
            logger.debug(f"Promoting '{player.display_name}' from roster to raid assists")
            assists.append(as_assist(player))
        else:
            roster.append(player)
        taken |= names

    team.raid_assists = assists
    team.roster = roster
    return team


def merge_roster(existing: Team, fresh_players: Iterable[Player]) -> Team:
    """Merge a freshly fetched roster into a copy of ``existing``.

    Matching players keep their manual roles and only take provider fields,
    unknown players join the roster, and nobody is dropped for missing from
    the fetch. Merging the same fetch twice leaves the team unchanged.
    """
    team = existing.model_copy(deep=True)
    added = updated = 0

    for fresh in fresh_players:
        if not names_of(fresh):
            logger.debug("Skipping fresh player without any name")
            continue
        current = _find_in_team(team, fresh)
        if current is not None:
            if apply_provider_fields(current, fresh):
                updated += 1
            continue
        team.roster.append(as_player(fresh, role=roster_role(fresh.role)))
        added += 1

    reconcile_buckets(team)

    if _content(team) != _content(existing):
        team.touch()
    logger.info(
        f"Merged roster for '{team.team_name}': {added} added, {updated} updated, "
        f"{len(team.roster)} in roster, {len([a for a in team.raid_assists if not a.is_placeholder])} assists"
    )
    return team


def _content(team: Team) -> dict:
    return team.model_dump(exclude={"last_updated"})
