from enum import Enum
from typing import Optional


class Role(str, Enum):
    TANK = "Tank"
    HEALER = "Healer"
    DPS = "DPS"
    TEAM_ASSIST = "Team Assist"
    # Positional roles, derived from the team and never stored on a player
    TEAM_LEAD = "Team Lead"
    RAID_ASSIST = "Raid Assist"

    @classmethod
    def parse(cls, value: object) -> Optional["Role"]:
        """Translate provider or UI free text into a Role.

        Returns None for missing/blank values so callers can tell "no data"
        apart from an explicit DPS.
        """
        if value is None:
            return None
        if isinstance(value, Role):
            return value
        text = str(value).strip().lower()
        if not text:
            return None
        if text == "team assist":
            return cls.TEAM_ASSIST
        if text in ("team lead", "raid leader", "raid lead"):
            return cls.TEAM_LEAD
        if text == "raid assist":
            return cls.RAID_ASSIST
        if "tank" in text:
            return cls.TANK
        if "heal" in text:
            return cls.HEALER
        return cls.DPS


# Roles a player can carry inside a leader/assist slot
SLOT_ROLES = (Role.TANK, Role.HEALER, Role.DPS)


class FilterCriterion(str, Enum):
    ALL = "all"
    RANK_95_PLUS = "95+"
    RANK_90_94 = "90-94"
    RANK_75_89 = "75-89"
    RANK_50_74 = "50-74"
    MYTHIC = "mythic"
    HEROIC = "heroic"
    ACTIVE = "active"


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"
