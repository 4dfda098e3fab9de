# raid_roster/providers/blizzard_provider.py

import asyncio
from typing import Any, Dict, Iterable, List, Optional

import httpx
from loguru import logger

from raid_roster.config.settings import settings
from raid_roster.models.player import Player
from raid_roster.reconciliation.classifier import role_from_specialization
from raid_roster.utils.misc_utils import realm_slug
from .base_provider import BaseProvider, ProviderError
from .warcraft_logs_provider import character_profile_url

LOCALE = "en_US"


def avatar_from_media(media: Optional[Dict[str, Any]]) -> str:
    """Avatar asset URL, falling back to the inset portrait."""
    if not isinstance(media, dict):
        return ""
    assets = media.get("assets") or []
    by_key = {a.get("key"): a.get("value") for a in assets if isinstance(a, dict)}
    return by_key.get("avatar") or by_key.get("inset") or ""


class BlizzardProvider(BaseProvider):
    """Client for the Blizzard World of Warcraft Profile API."""

    name = "Blizzard"

    def __init__(self, *args, region: Optional[str] = None, **kwargs):
        kwargs.setdefault(
            "credentials",
            (settings.blizzard_client_id, settings.blizzard_client_secret),
        )
        super().__init__(*args, **kwargs)
        self.region = (region or settings.blizzard_region).lower()
        self.api_base_url = f"https://{self.region}.api.blizzard.com"
        self.token_url = f"https://{self.region}.battle.net/oauth/token"

    def _params(self, region: Optional[str] = None) -> Dict[str, str]:
        region = (region or self.region).lower()
        return {"namespace": f"profile-{region}", "locale": LOCALE}

    def _character_url(self, realm: str, character_name: str, suffix: str = "") -> str:
        return (
            f"{self.api_base_url}/profile/wow/character/"
            f"{realm_slug(realm)}/{character_name.lower()}{suffix}"
        )

    async def get_character_profile(
        self, realm: str, character_name: str, region: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        logger.debug(f"Fetching character: {character_name} on {realm}...")
        return await self._get_json(
            self._character_url(realm, character_name), params=self._params(region)
        )

    async def get_character_media(
        self, realm: str, character_name: str, region: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        return await self._get_json(
            self._character_url(realm, character_name, "/character-media"),
            params=self._params(region),
        )

    async def get_character_specializations(
        self, realm: str, character_name: str, region: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        return await self._get_json(
            self._character_url(realm, character_name, "/specializations"),
            params=self._params(region),
        )

    async def get_guild_roster(
        self, guild_name: str, realm: str, region: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        url = f"{self.api_base_url}/data/wow/guild/{realm_slug(realm)}/{realm_slug(guild_name)}/roster"
        logger.info(f"Fetching guild roster for {guild_name} on {realm}...")
        return await self._get_json(url, params=self._params(region))

    async def get_guild_members_by_rank(
        self,
        rank: int,
        guild_name: Optional[str] = None,
        realm: Optional[str] = None,
        region: Optional[str] = None,
    ) -> List[Player]:
        """Unenriched stubs for every guild member holding ``rank``."""
        return await self.get_guild_members_by_ranks([rank], guild_name, realm, region)

    async def get_guild_council_members(
        self,
        guild_name: Optional[str] = None,
        realm: Optional[str] = None,
        region: Optional[str] = None,
    ) -> List[Player]:
        """Guild Master and officers, ordered by rank and then name."""
        members = await self.get_guild_members_by_ranks(
            settings.council_ranks, guild_name, realm, region
        )
        return sorted(members, key=lambda p: (p.rank, p.name.casefold()))

    async def get_guild_members_by_ranks(
        self,
        ranks: Iterable[int],
        guild_name: Optional[str] = None,
        realm: Optional[str] = None,
        region: Optional[str] = None,
    ) -> List[Player]:
        """Unenriched stubs for guild members holding any of ``ranks``, in roster order."""
        ranks = set(ranks)
        guild_name = guild_name or settings.guild_name
        realm = realm or settings.guild_realm
        region = (region or settings.guild_region).lower()

        roster = await self.get_guild_roster(guild_name, realm, region)
        if not roster or not isinstance(roster.get("members"), list):
            logger.warning(f"Could not fetch guild roster for {guild_name}")
            return []

        members = []
        for member in roster["members"]:
            character = member.get("character") or {}
            rank = member.get("rank")
            if rank not in ranks or not character.get("name"):
                continue
            name = character["name"]
            member_realm = (character.get("realm") or {}).get("name") or realm
            members.append(
                Player(
                    name=name,
                    character_name=name,
                    realm=member_realm,
                    region=region.upper(),
                    level=character.get("level"),
                    warcraft_logs_url=character_profile_url(region, member_realm, name),
                    warcraft_logs_available=False,
                    rank=rank,
                )
            )
        logger.info(
            f"Found {len(members)} member(s) of rank(s) {sorted(ranks)} among {len(roster['members'])} in {guild_name}"
        )
        return members

    async def enrich_player(self, player: Player) -> Player:
        """Fill class, race, level, realm, avatar and role from the Profile API.

        Never raises: a provider failure returns the player with whatever it
        already had.
        """
        if not player.realm or not player.character_name:
            return player

        enriched = player.model_copy(deep=True)
        realm, name, region = player.realm, player.character_name, player.region or "us"
        try:
            profile = await self.get_character_profile(realm, name, region)
            if not profile:
                logger.debug(f"No Blizzard profile for {name} on {realm}")
                return enriched

            enriched.player_class = (profile.get("character_class") or {}).get("name") or enriched.player_class
            enriched.race = (profile.get("race") or {}).get("name") or enriched.race
            if profile.get("level") is not None:
                enriched.level = str(profile["level"])
            enriched.realm = (profile.get("realm") or {}).get("name") or realm

            specializations, media = await asyncio.gather(
                self.get_character_specializations(realm, name, region),
                self.get_character_media(realm, name, region),
                return_exceptions=True,
            )
            if isinstance(specializations, Exception):
                logger.debug(f"Specializations unavailable for {name}: {specializations}")
                specializations = None
            if isinstance(media, Exception):
                logger.debug(f"Media unavailable for {name}: {media}")
                media = None

            if specializations:
                enriched.role = role_from_specialization(specializations)
            enriched.avatar = avatar_from_media(media)
        except (ProviderError, httpx.HTTPError) as e:
            logger.error(f"Blizzard API error for {name}: {e}")
        return enriched
