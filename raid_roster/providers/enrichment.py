# raid_roster/providers/enrichment.py

import asyncio
from typing import List, Optional, Sequence

from loguru import logger

from raid_roster.config.settings import settings
from raid_roster.models.player import Player
from .base_provider import BaseProvider
from .blizzard_provider import BlizzardProvider
from .warcraft_logs_provider import RosterFetch, WarcraftLogsProvider, parse_character_url


class RosterEnricher:
    """Fills player stubs from the Blizzard and Warcraft Logs APIs."""

    def __init__(
        self,
        blizzard: Optional[BlizzardProvider] = None,
        warcraft_logs: Optional[WarcraftLogsProvider] = None,
    ):
        self.blizzard = blizzard
        self.warcraft_logs = warcraft_logs

    def _active(self) -> List[BaseProvider]:
        providers = [p for p in (self.blizzard, self.warcraft_logs) if p is not None]
        return [p for p in providers if p.has_credentials]

    async def enrich_player(self, player: Player) -> Player:
        """Best-effort enrichment; a provider failure leaves its fields untouched."""
        enriched = player
        for provider in self._active():
            enriched = await provider.enrich_player(enriched)
        return enriched

    async def enrich_roster(self, players: Sequence[Player]) -> List[Player]:
        if not players:
            return []
        if not self._active():
            logger.warning("No provider credentials configured; roster left unenriched")
            return list(players)

        batch_size = settings.enrich_batch_size
        total_batches = (len(players) + batch_size - 1) // batch_size
        logger.info(
            f"Enriching {len(players)} player(s) in {total_batches} batch(es) of {batch_size}"
        )

        enriched: List[Player] = []
        for start in range(0, len(players), batch_size):
            batch = players[start : start + batch_size]
            logger.debug(f"Enriching batch {start // batch_size + 1}/{total_batches}")
            enriched.extend(await asyncio.gather(*(self.enrich_player(p) for p in batch)))
            if start + batch_size < len(players):
                await asyncio.sleep(settings.enrich_batch_delay)

        logger.success(f"Enriched {len(enriched)} player(s)")
        return enriched

    async def close(self):
        for provider in (self.blizzard, self.warcraft_logs):
            if provider is not None:
                await provider.close()


class WarcraftLogsRosterSource:
    """Roster source backed by a Warcraft Logs team or guild page."""

    def __init__(
        self,
        warcraft_logs: Optional[WarcraftLogsProvider] = None,
        enricher: Optional[RosterEnricher] = None,
    ):
        self.warcraft_logs = warcraft_logs or WarcraftLogsProvider()
        self.enricher = enricher or RosterEnricher(BlizzardProvider(), self.warcraft_logs)

    async def fetch_roster(self, url: str) -> RosterFetch:
        """Scrape the page, then enrich every character found on it."""
        fetched = await self.warcraft_logs.fetch_team_page(url)
        players = await self.enricher.enrich_roster(fetched.players)
        return RosterFetch(players=players, progress=fetched.progress)

    async def fetch_character(self, url: str) -> Player:
        """A single enriched character from its Warcraft Logs profile URL."""
        parsed = parse_character_url(url)
        if parsed is None:
            raise ValueError(f"Not a Warcraft Logs character URL: {url}")
        region, realm, character_name = parsed
        stub = Player(
            name=character_name,
            character_name=character_name,
            realm=realm,
            region=region,
            warcraft_logs_url=url,
        )
        return await self.enricher.enrich_player(stub)

    async def close(self):
        await self.enricher.close()
        if self.warcraft_logs is not self.enricher.warcraft_logs:
            await self.warcraft_logs.close()
