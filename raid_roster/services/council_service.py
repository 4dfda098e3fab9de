# raid_roster/services/council_service.py

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


class CouncilSnapshot(BaseModel):
    """The guild's council (Guild Master and officers) as last fetched."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    council: List[Player] = Field(default_factory=list)
    last_updated: Optional[datetime] = None
    source: str = "Blizzard API"


class CouncilService:
    """Sync and read ``council.json``; members stay ordered by rank, then name."""

    def __init__(
        self,
        path: Optional[Path] = None,
        blizzard: Optional[BlizzardProvider] = None,
        enricher: Optional[RosterEnricher] = None,
    ):
        self.path = Path(path) if path is not None else settings.council_path
        self.blizzard = blizzard
        self.enricher = enricher

    def load(self) -> CouncilSnapshot:
        return load_model(self.path, CouncilSnapshot) or CouncilSnapshot()

    async def sync(self) -> CouncilSnapshot:
        if self.blizzard is None:
            self.blizzard = BlizzardProvider()
        council = await self.blizzard.get_guild_council_members()
        if self.enricher is not None:
            council = await self.enricher.enrich_roster(council)

        snapshot = CouncilSnapshot(council=council, last_updated=utc_now())
        write_json_atomic(self.path, snapshot.model_dump(by_alias=True, mode="json"))
        logger.success(f"Saved {len(council)} council member(s) to {self.path}")
        return snapshot

    def council(self) -> List[Player]:
        return self.load().council

    def find_member(self, identity: str) -> Optional[Player]:
        return find_matching(self.council(), Player(name=identity))

    def members(
        self, criterion: Union[FilterCriterion, str, None] = FilterCriterion.ALL
    ) -> List[Player]:
        return filter_members(self.council(), criterion)
