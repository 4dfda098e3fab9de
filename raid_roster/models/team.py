from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from raid_roster.config.settings import settings
from .player import Player, RaidAssist, RaidLeader


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TeamProgress(BaseModel):
    """Raid progress as scraped from the team's Warcraft Logs page."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    bosses_killed: Optional[int] = None
    total_bosses: int = 8
    highest_difficulty: Optional[str] = None
    current_tier: Optional[str] = None
    last_log_update: Optional[str] = None


class Team(BaseModel):
    """A named raid roster, the unit of persistence."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    team_id: Optional[str] = None
    team_name: str = ""
    warcraft_logs_team_url: str = ""
    raid_leader: Optional[RaidLeader] = None
    raid_assists: List[RaidAssist] = Field(default_factory=list)
    roster: List[Player] = Field(default_factory=list)
    progress: TeamProgress = Field(default_factory=TeamProgress)
    border_color: str = Field(default_factory=lambda: settings.default_border_color)
    team_logo: Optional[str] = None
    last_updated: Optional[datetime] = None

    def members(self) -> List[Player]:
        """Every filled slot: leader first, then assists, then the roster."""
        players: List[Player] = []
        if self.raid_leader is not None:
            players.append(self.raid_leader)
        players.extend(a for a in self.raid_assists if not a.is_placeholder)
        players.extend(self.roster)
        return players

    def touch(self) -> None:
        self.last_updated = utc_now()

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class TeamCollection(BaseModel):
    """Saved teams. List order is the display order; there is no sort key."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    teams: List[Team] = Field(default_factory=list)
    last_updated: Optional[datetime] = None

    def index_of(self, team_id: str) -> int:
        for i, team in enumerate(self.teams):
            if team.team_id == team_id:
                return i
        return -1
