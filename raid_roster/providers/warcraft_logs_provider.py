# raid_roster/providers/warcraft_logs_provider.py

import re
from typing import Any, Dict, List, Optional, Tuple

import httpx
from bs4 import BeautifulSoup
from loguru import logger
from pydantic import BaseModel

from raid_roster.config.settings import settings
from raid_roster.models.player import Player
from raid_roster.models.team import TeamProgress
from raid_roster.reconciliation.identity import character_key
from raid_roster.utils.misc_utils import realm_display_name, realm_slug
from .base_provider import BaseProvider, ProviderError, ProviderUnavailable

WARCRAFT_LOGS_BASE_URL = "https://www.warcraftlogs.com"
WARCRAFT_LOGS_API_URL = f"{WARCRAFT_LOGS_BASE_URL}/api/v2/client"
WARCRAFT_LOGS_TOKEN_URL = f"{WARCRAFT_LOGS_BASE_URL}/oauth/token"

CHARACTER_PATH_RE = re.compile(r"/character/([^/]+)/([^/]+)/([^/?#]+)")

# Team pages link far more than the roster; only the first links are considered
MAX_CHARACTER_LINKS = 200
MAX_CHARACTER_NAME_LENGTH = 20

DIFFICULTY_NAMES = {
    1: "LFR",
    2: "Normal",
    3: "Heroic",
    4: "Mythic",
    5: "Looking For Group",
    10: "Mythic+ (Dungeon)",
    23: "Mythic",
    24: "Heroic",
    25: "Normal",
}

# Alternate raid difficulty ids folded onto the 1-4 scale for comparison
NORMALIZED_DIFFICULTY = {23: 4, 24: 3, 25: 2}

CHARACTER_RANKINGS_QUERY = """
query getCharacterRankings($characterName: String!, $serverSlug: String!, $serverRegion: String!) {
  characterData {
    character(name: $characterName, serverSlug: $serverSlug, serverRegion: $serverRegion) {
      name
      server { name region { name } }
      zoneRankings
      recentReports(limit: 50) {
        data {
          code
          startTime
          endTime
          zone { id name }
          fights(killType: Kills) { id encounterID name difficulty kill }
        }
      }
    }
  }
}
"""


class OverallRanking(BaseModel):
    percentile: float
    metric: str = "dps"
    difficulty: str = "Overall"


class BossKill(BaseModel):
    name: str
    difficulty: str
    difficulty_id: int
    report_code: Optional[str] = None
    fight_url: Optional[str] = None
    zone_name: Optional[str] = None
    start_time: Optional[int] = None


class CharacterRankings(BaseModel):
    character_name: str
    realm: str
    region: str
    warcraft_logs_url: str
    overall_ranking: Optional[OverallRanking] = None
    highest_boss_kill: Optional[BossKill] = None

    @property
    def has_data(self) -> bool:
        return self.overall_ranking is not None or self.highest_boss_kill is not None


class RosterFetch(BaseModel):
    """What a roster source returns: player stubs plus team progress."""

    players: List[Player]
    progress: TeamProgress


def difficulty_name(difficulty_id: int) -> str:
    return DIFFICULTY_NAMES.get(difficulty_id, f"Difficulty {difficulty_id}")


def _is_raid_difficulty(difficulty: int) -> bool:
    return difficulty <= 4 or 23 <= difficulty <= 25


def character_profile_url(region: str, realm: str, character_name: str) -> str:
    region = (region or "us").lower()
    if region == "united states":
        region = "us"
    return (
        f"{WARCRAFT_LOGS_BASE_URL}/character/{region}/"
        f"{realm_slug(realm)}/{character_name.lower()}"
    )


def parse_character_url(url: str) -> Optional[Tuple[str, str, str]]:
    """(REGION, Realm Name, character) from a Warcraft Logs character URL."""
    if not url or "warcraftlogs.com/character/" not in url:
        return None
    match = CHARACTER_PATH_RE.search(url)
    if not match:
        return None
    region, realm, name = match.groups()
    return region.upper(), realm_display_name(realm), name


def highest_kill_from_reports(reports: List[Dict[str, Any]]) -> Optional[BossKill]:
    """Highest-difficulty raid kill; the most recent report wins ties."""
    best: Optional[Tuple[int, int, BossKill]] = None
    for report in reports or []:
        if not isinstance(report, dict):
            continue
        zone = report.get("zone") or {}
        for fight in report.get("fights") or []:
            if not isinstance(fight, dict) or fight.get("kill") is not True:
                continue
            difficulty = fight.get("difficulty")
            if not isinstance(difficulty, int) or not difficulty or not _is_raid_difficulty(difficulty):
                continue

            code = report.get("code")
            fight_url = None
            if code:
                fight_url = f"{WARCRAFT_LOGS_BASE_URL}/reports/{code}"
                if fight.get("id"):
                    fight_url += f"#fight={fight['id']}"
            kill = BossKill(
                name=fight.get("name") or "Unknown Boss",
                difficulty=difficulty_name(difficulty),
                difficulty_id=difficulty,
                report_code=code,
                fight_url=fight_url,
                zone_name=zone.get("name"),
                start_time=report.get("startTime"),
            )
            rank = (NORMALIZED_DIFFICULTY.get(difficulty, difficulty), report.get("startTime") or 0)
            if best is None or rank > best[:2]:
                best = (*rank, kill)
    return best[2] if best else None


def overall_ranking_from_zone(zone_rankings: Optional[Dict[str, Any]]) -> Optional[OverallRanking]:
    """Overall percentile from a zoneRankings blob.

    Prefers the larger of bestPerformanceAverage and medianPerformanceAverage;
    without either, falls back to the encounter percentiles (best single or
    average, whichever is higher).
    """
    if not isinstance(zone_rankings, dict):
        return None

    metric = zone_rankings.get("metric") or "dps"
    difficulty = zone_rankings.get("difficulty")
    label = difficulty_name(difficulty) if isinstance(difficulty, int) else "Overall"

    def positive(value: Any) -> Optional[float]:
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
            return float(value)
        return None

    averages = [
        v
        for v in (
            positive(zone_rankings.get("bestPerformanceAverage")),
            positive(zone_rankings.get("medianPerformanceAverage")),
        )
        if v is not None
    ]
    if averages:
        return OverallRanking(percentile=max(averages), metric=metric, difficulty=label)

    percentiles: List[float] = []
    best_single = 0.0
    for encounter in zone_rankings.get("rankings") or []:
        if not isinstance(encounter, dict):
            continue
        rank_percent = positive(encounter.get("rankPercent")) or positive(encounter.get("percentile"))
        if rank_percent is not None:
            percentiles.append(rank_percent)
            best_single = max(best_single, rank_percent)
        median_percent = positive(encounter.get("medianPercent"))
        if median_percent is not None:
            percentiles.append(median_percent)

    if not percentiles:
        return None
    average = sum(percentiles) / len(percentiles)
    return OverallRanking(percentile=max(best_single, average), metric=metric, difficulty=label)


def _progress_from_page(soup: BeautifulSoup) -> TeamProgress:
    progress = TeamProgress()
    if not soup.select('a[href*="/reports/"]'):
        return progress

    difficulty_el = soup.select_one('.difficulty, [class*="mythic"], [class*="heroic"], [class*="normal"]')
    text = difficulty_el.get_text(strip=True).lower() if difficulty_el else ""
    for word in ("mythic", "heroic", "normal"):
        if word in text:
            progress.highest_difficulty = word.capitalize()
            break

    kills = len(soup.select('.boss-kill, .encounter-kill, [class*="kill"]'))
    if kills:
        progress.bosses_killed = kills
    return progress


def parse_team_page(html: str) -> RosterFetch:
    """Character stubs and progress from a Warcraft Logs team or guild page."""
    soup = BeautifulSoup(html, "html.parser")
    links = soup.select('a[href*="/character/"]')
    logger.debug(f"Found {len(links)} character links on page")

    seen = set()
    players: List[Player] = []
    for link in links[:MAX_CHARACTER_LINKS]:
        href = link.get("href") or ""
        match = CHARACTER_PATH_RE.search(href)
        if not match:
            continue
        region, realm, character_name = match.groups()
        if not character_name or len(character_name) >= MAX_CHARACTER_NAME_LENGTH:
            continue

        player = Player(
            character_name=character_name,
            name=link.get_text(strip=True) or character_name,
            realm=realm_display_name(realm),
            region=region.upper(),
            warcraft_logs_url=href if href.startswith("http") else f"{WARCRAFT_LOGS_BASE_URL}{href}",
        )
        key = character_key(player)
        if key in seen:
            continue
        seen.add(key)
        players.append(player)

    logger.info(f"Extracted {len(players)} unique characters from page")
    return RosterFetch(players=players, progress=_progress_from_page(soup))


class WarcraftLogsProvider(BaseProvider):
    """Client for Warcraft Logs: the v2 GraphQL API and public team pages."""

    name = "Warcraft Logs"
    token_url = WARCRAFT_LOGS_TOKEN_URL

    def __init__(self, *args, **kwargs):
        kwargs.setdefault(
            "credentials",
            (settings.warcraft_logs_client_id, settings.warcraft_logs_client_secret),
        )
        super().__init__(*args, **kwargs)

    async def query_graphql(
        self, query: str, variables: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        headers = await self._auth_headers()
        try:
            response = await self._make_request(
                "POST",
                WARCRAFT_LOGS_API_URL,
                headers=headers,
                json_data={"query": query, "variables": variables or {}},
            )
        except httpx.TransportError as e:
            raise ProviderUnavailable(f"Warcraft Logs API unreachable: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError("Warcraft Logs API returned invalid JSON") from e
        if payload.get("errors"):
            logger.error(f"Warcraft Logs GraphQL errors: {payload['errors']}")
            return None
        return payload.get("data")

    async def get_character_rankings(
        self, character_name: str, realm: str, region: str = "US"
    ) -> Optional[CharacterRankings]:
        """Overall ranking and highest raid kill, or None if the character has no logs."""
        server_region = region.lower()
        character = None
        # Lookups are case-sensitive upstream; try the common spellings
        for candidate in dict.fromkeys(
            (character_name, character_name.lower(), character_name.upper())
        ):
            data = await self.query_graphql(
                CHARACTER_RANKINGS_QUERY,
                {
                    "characterName": candidate,
                    "serverSlug": realm_slug(realm),
                    "serverRegion": server_region,
                },
            )
            character = ((data or {}).get("characterData") or {}).get("character")
            if character:
                logger.debug(f"Found Warcraft Logs character with name '{candidate}'")
                break

        if not character:
            logger.info(f"Character '{character_name}' not found in Warcraft Logs for {realm}")
            return None

        server = character.get("server") or {}
        server_name = server.get("name") or realm
        server_region_name = ((server.get("region") or {}).get("name")) or region
        reports = (character.get("recentReports") or {}).get("data") or []

        rankings = CharacterRankings(
            character_name=character.get("name") or character_name,
            realm=server_name,
            region=server_region_name,
            warcraft_logs_url=character_profile_url(
                server_region_name, server_name, character.get("name") or character_name
            ),
            overall_ranking=overall_ranking_from_zone(character.get("zoneRankings")),
            highest_boss_kill=highest_kill_from_reports(reports),
        )
        logger.info(
            f"Warcraft Logs data for {rankings.character_name}: "
            f"kill={rankings.highest_boss_kill.name if rankings.highest_boss_kill else 'none'}, "
            f"ranking={rankings.overall_ranking.percentile if rankings.overall_ranking else 'n/a'}"
        )
        return rankings

    async def enrich_player(self, player: Player) -> Player:
        """Attach ranking and boss-kill metadata. Never raises."""
        name = player.character_name or player.name
        if not name or not player.realm:
            return player

        enriched = player.model_copy(deep=True)
        try:
            rankings = await self.get_character_rankings(name, player.realm, player.region or "US")
        except (ProviderError, httpx.HTTPError) as e:
            logger.warning(f"Warcraft Logs error for {name}: {e}")
            enriched.warcraft_logs_available = False
            return enriched

        if rankings is None:
            enriched.warcraft_logs_available = False
            return enriched

        enriched.warcraft_logs_available = True
        enriched.warcraft_logs_url = rankings.warcraft_logs_url
        if rankings.highest_boss_kill:
            enriched.highest_boss_kill = rankings.highest_boss_kill.name
            enriched.highest_boss_kill_difficulty = rankings.highest_boss_kill.difficulty
        if rankings.overall_ranking:
            enriched.overall_ranking = rankings.overall_ranking.percentile
            enriched.overall_ranking_metric = rankings.overall_ranking.metric
        return enriched

    async def fetch_team_page(self, url: str) -> RosterFetch:
        """Roster stubs scraped from a public team or guild page."""
        logger.info(f"Scraping Warcraft Logs page: {url}")
        try:
            response = await self._make_request("GET", url)
        except httpx.TransportError as e:
            raise ProviderUnavailable(f"Could not load {url}: {e}") from e

        html = response.text
        if "Just a moment" in html or "Verify you are human" in html:
            # Bot challenge pages need a real browser
            raise ProviderUnavailable(f"Warcraft Logs served a challenge page for {url}")
        return parse_team_page(html)
