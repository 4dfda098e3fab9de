# raid_roster/services/community_service.py

from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from raid_roster.config.settings import settings
from raid_roster.models.enums import FilterCriterion
from raid_roster.models.player import Player
from raid_roster.models.team import utc_now
from raid_roster.providers.blizzard_provider import BlizzardProvider
from raid_roster.providers.enrichment import RosterEnricher
from raid_roster.reconciliation.filters import filter_members
from raid_roster.reconciliation.identity import find_matching
from raid_roster.storage.json_store import load_model, write_json_atomic


class CommunitySnapshot(BaseModel):
    """The guild's team leads as last fetched, with their performance data."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    team_leads: List[Player] = Field(default_factory=list)
    last_updated: Optional[datetime] = None
    source: str = "Blizzard API"


class CommunityService:
    def __init__(
        self,
        path: Optional[Path] = None,
        blizzard: Optional[BlizzardProvider] = None,
        enricher: Optional[RosterEnricher] = None,
    ):
        self.path = Path(path) if path is not None else settings.community_path
        self.blizzard = blizzard
        self.enricher = enricher

    def load(self) -> CommunitySnapshot:
        return load_model(self.path, CommunitySnapshot) or CommunitySnapshot()

    async def sync(self) -> CommunitySnapshot:
        """Fetch the guild's team-lead rank, enrich it and save the snapshot.

        Provider errors propagate so a failed fetch never replaces the saved
        snapshot with an empty one.
        """
        if self.blizzard is None:
            self.blizzard = BlizzardProvider()
        leads = await self.blizzard.get_guild_members_by_rank(settings.team_lead_rank)
        if self.enricher is not None:
            leads = await self.enricher.enrich_roster(leads)

        snapshot = CommunitySnapshot(team_leads=leads, last_updated=utc_now())
        write_json_atomic(self.path, snapshot.model_dump(by_alias=True, mode="json"))
        logger.success(f"Saved {len(leads)} team lead(s) to {self.path}")
        return snapshot

    def team_leads(self) -> List[Player]:
        return self.load().team_leads

    def find_lead(self, identity: str) -> Optional[Player]:
        return find_matching(self.team_leads(), Player(name=identity))

    def members(
        self, criterion: Union[FilterCriterion, str, None] = FilterCriterion.ALL
    ) -> List[Player]:
        return filter_members(self.team_leads(), criterion)
