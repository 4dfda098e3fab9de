"""Manual edits to a team.

Every operation works on a copy, re-derives the leader/assist/roster
partition and refreshes ``lastUpdated`` before returning. Players leaving a
leader or assist slot go back to the roster; only ``remove_player`` drops
someone from the team.
"""

import re
from typing import Optional, Tuple, Union

from loguru import logger

from raid_roster.config.settings import settings
from raid_roster.models.enums import Role, SLOT_ROLES
from raid_roster.models.player import Player, RaidAssist
from raid_roster.models.team import Team
from .errors import DuplicatePlayerError, EditError, PlayerNotFoundError, ValidationError
from .identity import matches_identity, names_of, players_match
from .merge import as_assist, as_leader, as_player, reconcile_buckets, roster_role

PlayerRef = Union[Player, str]

HEX_COLOR_RE = re.compile(r"^#([0-9a-fA-F]{6}|[0-9a-fA-F]{3})$")
WARCRAFT_LOGS_HOST = "warcraftlogs.com"

LEADER, ASSISTS, ROSTER = "leader", "assists", "roster"


def _finish(team: Team) -> Team:
    reconcile_buckets(team)
    team.touch()
    return team


def _locate(team: Team, ref: PlayerRef) -> Tuple[Optional[str], int, Optional[Player]]:
    """Find which bucket holds ``ref``: (bucket, index, player)."""

    def hit(candidate: Player) -> bool:
        if isinstance(ref, str):
            return matches_identity(candidate, ref)
        return players_match(candidate, ref)

    if team.raid_leader is not None and hit(team.raid_leader):
        return LEADER, 0, team.raid_leader
    for i, assist in enumerate(team.raid_assists):
        if not assist.is_placeholder and hit(assist):
            return ASSISTS, i, assist
    for i, player in enumerate(team.roster):
        if hit(player):
            return ROSTER, i, player
    return None, -1, None


def _resolve(team: Team, ref: PlayerRef) -> Player:
    """The team's own record for ``ref``, or ``ref`` itself for an outside Player."""
    _, _, found = _locate(team, ref)
    if found is not None:
        return found
    if isinstance(ref, Player) and names_of(ref):
        return ref
    raise PlayerNotFoundError(f"No player '{ref}' on team '{team.team_name}'")


def _slot_role(value: Optional[Union[Role, str]]) -> Optional[Role]:
    role = Role.parse(value)
    if role is not None and role not in SLOT_ROLES:
        raise EditError(f"Slot role must be Tank, Healer or DPS, got '{value}'")
    return role


def _combat_role(player: Player, preferred: Optional[Role] = None) -> Role:
    role = preferred or player.role
    if role in SLOT_ROLES:
        return role
    return Role.DPS


def _return_to_roster(team: Team, player: Player, role: Optional[Role] = None) -> None:
    logger.debug(f"Returning '{player.display_name}' to the roster")
    team.roster.append(as_player(player, role=_combat_role(player, role)))


def _drop_everywhere(team: Team, player: Player, keep_assist_index: int = -1) -> None:
    team.roster = [p for p in team.roster if not players_match(p, player)]
    team.raid_assists = [
        a
        for i, a in enumerate(team.raid_assists)
        if i == keep_assist_index or a.is_placeholder or not players_match(a, player)
    ]


def set_leader(team: Team, ref: Optional[PlayerRef]) -> Team:
    team = team.model_copy(deep=True)
    old = team.raid_leader

    if ref is None or (isinstance(ref, str) and not ref.strip()):
        if old is not None:
            _return_to_roster(team, old, old.leader_role)
        team.raid_leader = None
        return _finish(team)

    candidate = _resolve(team, ref).model_copy(deep=True)
    same = old is not None and players_match(old, candidate)
    leader_role = old.leader_role if same else None

    _drop_everywhere(team, candidate)
    if old is not None and not same:
        _return_to_roster(team, old, old.leader_role)

    team.raid_leader = as_leader(candidate, leader_role)
    logger.info(f"Raid leader of '{team.team_name}' set to '{candidate.display_name}'")
    return _finish(team)


def set_leader_role(team: Team, role: Optional[Union[Role, str]]) -> Team:
    if team.raid_leader is None:
        raise EditError(f"Team '{team.team_name}' has no raid leader")
    team = team.model_copy(deep=True)
    team.raid_leader.leader_role = _slot_role(role)
    return _finish(team)


def add_assist(team: Team) -> Team:
    team = team.model_copy(deep=True)
    team.raid_assists.append(RaidAssist())
    return _finish(team)


def _check_index(team: Team, index: int) -> None:
    if not 0 <= index < len(team.raid_assists):
        raise EditError(
            f"Assist slot {index} out of range for {len(team.raid_assists)} slot(s)"
        )


def set_assist_at_index(team: Team, index: int, ref: Optional[PlayerRef]) -> Team:
    _check_index(team, index)
    team = team.model_copy(deep=True)
    slot = team.raid_assists[index]

    if ref is None or (isinstance(ref, str) and not ref.strip()):
        team.raid_assists.pop(index)
        if not slot.is_placeholder:
            _return_to_roster(team, slot, slot.assist_role)
        return _finish(team)

    candidate = _resolve(team, ref).model_copy(deep=True)
    same = not slot.is_placeholder and players_match(slot, candidate)
    assist_role = slot.assist_role if same else None

    if team.raid_leader is not None and players_match(team.raid_leader, candidate):
        logger.warning(
            f"'{candidate.display_name}' moved from raid leader to assist; leader is now unset"
        )
        team.raid_leader = None
    _drop_everywhere(team, candidate, keep_assist_index=index)
    if not slot.is_placeholder and not same:
        _return_to_roster(team, slot, slot.assist_role)

    # Indices may have shifted if the candidate held an earlier slot
    index = next(i for i, a in enumerate(team.raid_assists) if a is slot)
    assist = as_assist(candidate, assist_role)
    # Slot roles replace any computed classification
    assist.role = None
    team.raid_assists[index] = assist
    return _finish(team)


def set_assist_role_at_index(
    team: Team, index: int, role: Optional[Union[Role, str]]
) -> Team:
    _check_index(team, index)
    team = team.model_copy(deep=True)
    team.raid_assists[index].assist_role = _slot_role(role)
    return _finish(team)


def set_player_role(team: Team, identity: str, role: Union[Role, str]) -> Team:
    parsed = Role.parse(role)
    if parsed is None or parsed in (Role.TEAM_LEAD, Role.RAID_ASSIST):
        raise EditError(f"'{role}' cannot be assigned as a player role")

    team = team.model_copy(deep=True)
    bucket, index, player = _locate(team, identity)
    if player is None:
        raise PlayerNotFoundError(f"No player '{identity}' on team '{team.team_name}'")

    if bucket == LEADER:
        if parsed == Role.TEAM_ASSIST:
            raise EditError("The raid leader cannot also be a team assist")
        team.raid_leader.leader_role = parsed
    elif parsed == Role.TEAM_ASSIST:
        if bucket == ROSTER:
            team.roster.pop(index)
            team.raid_assists.append(as_assist(as_player(player, role=Role.TEAM_ASSIST)))
    elif bucket == ASSISTS:
        team.raid_assists.pop(index)
        team.roster.append(as_player(player, role=parsed))
    else:
        player.role = parsed

    return _finish(team)


def remove_player(team: Team, identity: str) -> Team:
    team = team.model_copy(deep=True)
    bucket, index, player = _locate(team, identity)
    if player is None:
        raise PlayerNotFoundError(f"No player '{identity}' on team '{team.team_name}'")

    if bucket == LEADER:
        team.raid_leader = None
        logger.warning(f"Removed raid leader '{player.display_name}'; team has no leader")
    elif bucket == ASSISTS:
        team.raid_assists.pop(index)
    else:
        team.roster.pop(index)
    return _finish(team)


def add_player(team: Team, player: Player) -> Team:
    if not names_of(player):
        raise ValidationError("A player needs a name or character name")
    bucket, _, existing = _locate(team, player)
    if existing is not None:
        raise DuplicatePlayerError(
            f"'{player.display_name}' is already on team '{team.team_name}' ({bucket})"
        )
    team = team.model_copy(deep=True)
    team.roster.append(as_player(player, role=roster_role(player.role)))
    return _finish(team)


def rename_team(team: Team, team_name: str) -> Team:
    if not (team_name or "").strip():
        raise ValidationError("Missing required field: teamName")
    team = team.model_copy(deep=True)
    team.team_name = team_name.strip()
    return _finish(team)


def validate_border_color(color: Optional[str]) -> str:
    """``#RRGGBB`` form of a hex color; ``#RGB`` is expanded."""
    match = HEX_COLOR_RE.match((color or "").strip())
    if match is None:
        raise ValidationError(f"Border color must be a hex color, got '{color}'")
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return f"#{digits}"


def set_border_color(team: Team, color: str) -> Team:
    color = validate_border_color(color)
    team = team.model_copy(deep=True)
    team.border_color = color
    return _finish(team)


def validate_team_logo(logo: Optional[str]) -> Optional[str]:
    if not logo:
        return None
    if not logo.startswith("data:image/"):
        raise ValidationError("Team logo must be a base64 image data URL")
    if len(logo) > settings.team_logo_max_bytes:
        raise ValidationError(
            f"Team logo is {len(logo)} bytes, limit is {settings.team_logo_max_bytes}"
        )
    return logo


def set_team_logo(team: Team, logo: Optional[str]) -> Team:
    logo = validate_team_logo(logo)
    team = team.model_copy(deep=True)
    team.team_logo = logo
    return _finish(team)


def validate_source_url(url: Optional[str]) -> str:
    url = (url or "").strip()
    if url and WARCRAFT_LOGS_HOST not in url:
        raise ValidationError("Invalid Warcraft Logs URL")
    return url


def set_source_url(team: Team, url: Optional[str]) -> Team:
    url = validate_source_url(url)
    team = team.model_copy(deep=True)
    team.warcraft_logs_team_url = url
    return _finish(team)
