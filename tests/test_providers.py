"""Tests for the Blizzard and Warcraft Logs providers and roster enrichment."""

import asyncio
import json

import httpx
import pytest
from loguru import logger

from raid_roster.config.settings import settings
from raid_roster.models.enums import Role
from raid_roster.models.player import Player
from raid_roster.providers.base_provider import AuthenticationError, ProviderUnavailable
from raid_roster.providers.blizzard_provider import BlizzardProvider, avatar_from_media
from raid_roster.providers.enrichment import RosterEnricher, WarcraftLogsRosterSource
from raid_roster.providers.warcraft_logs_provider import (
    WarcraftLogsProvider,
    character_profile_url,
    difficulty_name,
    highest_kill_from_reports,
    overall_ranking_from_zone,
    parse_character_url,
    parse_team_page,
)

TOKEN = {"access_token": "tok", "expires_in": 86400}


def _client(routes):
    """AsyncClient answering ``routes[path]`` (callable or JSON) and 404 otherwise."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth/token"):
            return httpx.Response(200, json=TOKEN)
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        if callable(route):
            return route(request)
        return httpx.Response(200, json=route)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _blizzard(routes, credentials=("id", "secret")):
    return BlizzardProvider(client=_client(routes), credentials=credentials, region="us")


def _stub(name="Bob", realm="Stormrage"):
    return Player(name=name, character_name=name, realm=realm, region="US")


PROFILE_PATH = "/profile/wow/character/stormrage/bob"


# ---------------------------------------------------------------------------
# Blizzard
# ---------------------------------------------------------------------------


class TestBlizzardProvider:
    def test_enrich_player_fills_profile_fields(self) -> None:
        provider = _blizzard(
            {
                PROFILE_PATH: {
                    "name": "Bob",
                    "level": 80,
                    "character_class": {"name": "Priest"},
                    "race": {"name": "Dwarf"},
                    "realm": {"name": "Stormrage"},
                },
                PROFILE_PATH + "/specializations": {
                    "specializations": [
                        {"specialization": {"role": {"type": "DAMAGE"}}},
                        {"active": True, "specialization": {"role": {"type": "HEALER"}}},
                    ]
                },
                PROFILE_PATH + "/character-media": {
                    "assets": [{"key": "inset", "value": "https://render/inset.jpg"}]
                },
            }
        )

        player = asyncio.run(provider.enrich_player(_stub()))

        assert player.player_class == "Priest"
        assert player.race == "Dwarf"
        assert player.level == "80"
        assert player.role == Role.HEALER
        assert player.avatar == "https://render/inset.jpg"

    def test_unknown_character_is_left_alone(self) -> None:
        provider = _blizzard({})
        stub = _stub()
        assert asyncio.run(provider.get_character_profile("Stormrage", "bob")) is None
        assert asyncio.run(provider.enrich_player(stub)) == stub

    def test_enrich_never_raises(self) -> None:
        provider = _blizzard({PROFILE_PATH: lambda request: httpx.Response(401)})
        stub = _stub()
        assert asyncio.run(provider.enrich_player(stub)) == stub

    def test_auth_failure_surfaces_from_raw_calls(self) -> None:
        provider = _blizzard({PROFILE_PATH: lambda request: httpx.Response(403)})
        with pytest.raises(AuthenticationError):
            asyncio.run(provider.get_character_profile("Stormrage", "Bob"))

    def test_missing_credentials(self) -> None:
        provider = _blizzard({}, credentials=(None, None))
        with pytest.raises(ProviderUnavailable):
            asyncio.run(provider.get_character_profile("Stormrage", "Bob"))
        assert asyncio.run(provider.enrich_player(_stub())) == _stub()

    def test_guild_members_by_rank(self) -> None:
        provider = _blizzard(
            {
                "/data/wow/guild/stormrage/eclipsed/roster": {
                    "members": [
                        {"rank": 0, "character": {"name": "Guildmaster", "realm": {"name": "Stormrage"}}},
                        {"rank": 2, "character": {"name": "Ratayu", "level": 80, "realm": {"name": "Stormrage"}}},
                        {"rank": 2, "character": {"name": "Zed", "realm": {"name": "Area 52"}}},
                        {"rank": 4, "character": {"name": "Bob"}},
                    ]
                }
            }
        )

        leads = asyncio.run(provider.get_guild_members_by_rank(2, "Eclipsed", "Stormrage", "us"))

        assert [p.name for p in leads] == ["Ratayu", "Zed"]
        assert leads[0].level == "80"
        assert leads[1].realm == "Area 52"
        assert leads[0].warcraft_logs_url == "https://www.warcraftlogs.com/character/us/stormrage/ratayu"

    def test_council_is_ordered_by_rank_then_name(self) -> None:
        provider = _blizzard(
            {
                "/data/wow/guild/stormrage/eclipsed/roster": {
                    "members": [
                        {"rank": 1, "character": {"name": "zed"}},
                        {"rank": 2, "character": {"name": "Ratayu"}},
                        {"rank": 1, "character": {"name": "Alice"}},
                        {"rank": 0, "character": {"name": "Guildmaster"}},
                        {"rank": 1, "character": {}},
                    ]
                }
            }
        )

        council = asyncio.run(provider.get_guild_council_members("Eclipsed", "Stormrage", "us"))

        assert [(p.rank, p.name) for p in council] == [(0, "Guildmaster"), (1, "Alice"), (1, "zed")]

    def test_missing_specializations_leave_role_unset(self) -> None:
        provider = _blizzard({PROFILE_PATH: {"name": "Bob", "character_class": {"name": "Warrior"}}})

        player = asyncio.run(provider.enrich_player(_stub()))

        assert player.player_class == "Warrior"
        assert player.role is None

    def test_braces_in_url_are_logged_verbatim(self) -> None:
        messages = []
        handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
        provider = BlizzardProvider(
            client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={}))),
            credentials=("id", "secret"),
        )
        try:
            response = asyncio.run(
                provider._make_request("GET", "https://us.api.blizzard.com/data/{odd}", params={"q": "{x}"})
            )
        finally:
            logger.remove(handler_id)

        assert response.status_code == 200
        assert "GET https://us.api.blizzard.com/data/{odd}" in messages

    def test_token_is_cached(self) -> None:
        token_calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/oauth/token"):
                token_calls.append(request)
                return httpx.Response(200, json=TOKEN)
            assert request.headers["Authorization"] == "Bearer tok"
            return httpx.Response(404)

        provider = BlizzardProvider(
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            credentials=("id", "secret"),
        )

        async def lookups():
            await provider.get_character_profile("Stormrage", "a")
            await provider.get_character_profile("Stormrage", "b")

        asyncio.run(lookups())
        assert len(token_calls) == 1


def test_avatar_from_media() -> None:
    media = {"assets": [{"key": "inset", "value": "i"}, {"key": "avatar", "value": "a"}]}
    assert avatar_from_media(media) == "a"
    assert avatar_from_media({"assets": []}) == ""
    assert avatar_from_media(None) == ""


# ---------------------------------------------------------------------------
# Warcraft Logs: pure parsing
# ---------------------------------------------------------------------------

TEAM_PAGE = """
<html><body>
  <div class="difficulty">Heroic</div>
  <a href="/reports/abc123">Latest report</a>
  <span class="boss-kill">Boss 1</span><span class="boss-kill">Boss 2</span>
  <a href="/character/us/area-52/Ratayu">Ratayu</a>
  <a href="https://www.warcraftlogs.com/character/us/area-52/Ratayu">Ratayu again</a>
  <a href="/character/eu/stormrage/Ratayu">Ratayu EU</a>
  <a href="/character/us/stormrage/Bob"></a>
  <a href="/character/us/stormrage/Averyveryverylongname">too long</a>
  <a href="/guild/us/stormrage/eclipsed">guild</a>
</body></html>
"""


class TestParseTeamPage:
    def test_extracts_unique_characters(self) -> None:
        fetched = parse_team_page(TEAM_PAGE)

        assert [(p.character_name, p.realm, p.region) for p in fetched.players] == [
            ("Ratayu", "Area 52", "US"),
            ("Ratayu", "Stormrage", "EU"),
            ("Bob", "Stormrage", "US"),
        ]
        assert fetched.players[2].name == "Bob"
        assert fetched.players[0].warcraft_logs_url == "https://www.warcraftlogs.com/character/us/area-52/Ratayu"

    def test_progress(self) -> None:
        progress = parse_team_page(TEAM_PAGE).progress
        assert progress.highest_difficulty == "Heroic"
        assert progress.bosses_killed == 2
        assert progress.total_bosses == 8

    def test_progress_needs_reports(self) -> None:
        progress = parse_team_page('<div class="difficulty">Mythic</div>').progress
        assert progress.highest_difficulty is None
        assert progress.bosses_killed is None


class TestCharacterUrls:
    def test_parse(self) -> None:
        url = "https://www.warcraftlogs.com/character/us/area-52/Ratayu?zone=38"
        assert parse_character_url(url) == ("US", "Area 52", "Ratayu")
        assert parse_character_url("https://www.warcraftlogs.com/guild/us/x/y") is None

    def test_build(self) -> None:
        assert (
            character_profile_url("United States", "Area 52", "Ratayu")
            == "https://www.warcraftlogs.com/character/us/area-52/ratayu"
        )


@pytest.mark.parametrize(
    "difficulty, name",
    [(1, "LFR"), (3, "Heroic"), (4, "Mythic"), (10, "Mythic+ (Dungeon)"), (23, "Mythic"), (25, "Normal"), (7, "Difficulty 7")],
)
def test_difficulty_name(difficulty, name) -> None:
    assert difficulty_name(difficulty) == name


class TestHighestKill:
    def test_highest_difficulty_then_most_recent(self) -> None:
        reports = [
            {"code": "old", "startTime": 100, "zone": {"name": "Raid"}, "fights": [{"id": 3, "name": "Boss A", "difficulty": 5, "kill": True}]},
            {"code": "heroic", "startTime": 300, "fights": [{"id": 1, "name": "Boss B", "difficulty": 3, "kill": True}]},
            {"code": "mythic1", "startTime": 200, "fights": [{"id": 2, "name": "Boss C", "difficulty": 23, "kill": True}]},
            {"code": "mythic2", "startTime": 250, "fights": [{"id": 9, "name": "Boss D", "difficulty": 4, "kill": True}, {"id": 10, "name": "Wipe", "difficulty": 4, "kill": False}]},
        ]

        kill = highest_kill_from_reports(reports)

        assert kill.name == "Boss D"
        assert kill.difficulty == "Mythic"
        assert kill.fight_url == "https://www.warcraftlogs.com/reports/mythic2#fight=9"

    def test_no_raid_kills(self) -> None:
        reports = [{"code": "x", "fights": [{"id": 1, "name": "Dungeon", "difficulty": 10, "kill": True}]}]
        assert highest_kill_from_reports(reports) is None
        assert highest_kill_from_reports([]) is None


class TestOverallRanking:
    def test_prefers_performance_averages(self) -> None:
        ranking = overall_ranking_from_zone(
            {"bestPerformanceAverage": 87.5, "medianPerformanceAverage": 80, "metric": "hps", "difficulty": 5}
        )
        assert ranking.percentile == 87.5
        assert ranking.metric == "hps"
        assert ranking.difficulty == "Looking For Group"

    def test_falls_back_to_encounters(self) -> None:
        ranking = overall_ranking_from_zone(
            {"rankings": [{"rankPercent": 60, "medianPercent": 50}, {"rankPercent": 40}]}
        )
        assert ranking.percentile == 60
        assert ranking.metric == "dps"

    def test_average_beats_lower_best(self) -> None:
        ranking = overall_ranking_from_zone({"rankings": [{"rankPercent": 50, "medianPercent": 90}]})
        assert ranking.percentile == 70

    def test_nothing_usable(self) -> None:
        assert overall_ranking_from_zone({"rankings": [{"rankPercent": None}]}) is None
        assert overall_ranking_from_zone(None) is None


# ---------------------------------------------------------------------------
# Warcraft Logs: API
# ---------------------------------------------------------------------------


def _graphql(character_for):
    """GraphQL route answering with ``character_for(variables)``."""

    def route(request: httpx.Request) -> httpx.Response:
        variables = json.loads(request.content)["variables"]
        return httpx.Response(200, json={"data": {"characterData": {"character": character_for(variables)}}})

    return route


CHARACTER = {
    "name": "Bob",
    "server": {"name": "Area 52", "region": {"name": "US"}},
    "zoneRankings": {"bestPerformanceAverage": 91.2, "metric": "dps"},
    "recentReports": {
        "data": [{"code": "r1", "startTime": 1, "fights": [{"id": 4, "name": "Boss", "difficulty": 3, "kill": True}]}]
    },
}


class TestWarcraftLogsProvider:
    def test_tries_name_variations(self) -> None:
        seen = []

        def character_for(variables):
            seen.append((variables["characterName"], variables["serverSlug"]))
            return CHARACTER if variables["characterName"] == "bob" else None

        provider = WarcraftLogsProvider(
            client=_client({"/api/v2/client": _graphql(character_for)}), credentials=("id", "secret")
        )
        rankings = asyncio.run(provider.get_character_rankings("Bob", "Area 52", "US"))

        assert seen == [("Bob", "area-52"), ("bob", "area-52")]
        assert rankings.overall_ranking.percentile == 91.2
        assert rankings.highest_boss_kill.difficulty == "Heroic"
        assert rankings.warcraft_logs_url == "https://www.warcraftlogs.com/character/us/area-52/bob"

    def test_enrich_player(self) -> None:
        provider = WarcraftLogsProvider(
            client=_client({"/api/v2/client": _graphql(lambda v: CHARACTER)}), credentials=("id", "secret")
        )
        player = asyncio.run(provider.enrich_player(_stub(realm="Area 52")))

        assert player.warcraft_logs_available is True
        assert player.overall_ranking == 91.2
        assert player.highest_boss_kill == "Boss"
        assert player.highest_boss_kill_difficulty == "Heroic"

    def test_character_without_logs(self) -> None:
        provider = WarcraftLogsProvider(
            client=_client({"/api/v2/client": _graphql(lambda v: None)}), credentials=("id", "secret")
        )
        player = asyncio.run(provider.enrich_player(_stub()))
        assert player.warcraft_logs_available is False
        assert player.overall_ranking is None

    def test_graphql_errors_read_as_no_data(self) -> None:
        route = lambda request: httpx.Response(200, json={"errors": [{"message": "bad"}]})  # noqa: E731
        provider = WarcraftLogsProvider(client=_client({"/api/v2/client": route}), credentials=("id", "secret"))
        assert asyncio.run(provider.get_character_rankings("Bob", "Stormrage")) is None

    def test_challenge_page(self) -> None:
        route = lambda request: httpx.Response(200, text="<title>Just a moment...</title>")  # noqa: E731
        provider = WarcraftLogsProvider(client=_client({"/guild/us/stormrage/eclipsed": route}))
        with pytest.raises(ProviderUnavailable):
            asyncio.run(provider.fetch_team_page("https://www.warcraftlogs.com/guild/us/stormrage/eclipsed"))


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


class FakeProvider:
    """Enricher stand-in that tags players and records call order."""

    has_credentials = True

    def __init__(self, tag):
        self.tag = tag
        self.seen = []
        self.closed = False

    async def enrich_player(self, player):
        self.seen.append(player.name)
        enriched = player.model_copy()
        enriched.race = (enriched.race + self.tag).strip()
        return enriched

    async def close(self):
        self.closed = True


class TestRosterEnricher:
    def test_batches_preserve_order(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "enrich_batch_delay", 0)
        blizzard, logs = FakeProvider("b"), FakeProvider("w")
        enricher = RosterEnricher(blizzard, logs)
        players = [Player(name=f"P{i}") for i in range(7)]

        enriched = asyncio.run(enricher.enrich_roster(players))

        assert [p.name for p in enriched] == [f"P{i}" for i in range(7)]
        assert all(p.race == "bw" for p in enriched)
        assert len(logs.seen) == 7

    def test_without_credentials_returns_input(self) -> None:
        provider = FakeProvider("b")
        provider.has_credentials = False
        players = [Player(name="Bob")]
        assert asyncio.run(RosterEnricher(provider).enrich_roster(players)) == players


def test_roster_source_scrapes_then_enriches() -> None:
    logs = WarcraftLogsProvider(
        client=_client({"/guild/us/stormrage/eclipsed": lambda request: httpx.Response(200, text=TEAM_PAGE)})
    )
    fake = FakeProvider("b")
    source = WarcraftLogsRosterSource(logs, RosterEnricher(fake))

    fetched = asyncio.run(source.fetch_roster("https://www.warcraftlogs.com/guild/us/stormrage/eclipsed"))
    asyncio.run(source.close())

    assert [p.character_name for p in fetched.players] == ["Ratayu", "Ratayu", "Bob"]
    assert all(p.race == "b" for p in fetched.players)
    assert fetched.progress.highest_difficulty == "Heroic"
    assert fake.closed


class TestFetchCharacter:
    CHARACTER_URL = "https://www.warcraftlogs.com/character/us/area-52/Bob"

    def _source(self):
        logs = WarcraftLogsProvider(
            client=_client({"/api/v2/client": _graphql(lambda v: CHARACTER)}), credentials=("id", "secret")
        )
        blizzard = _blizzard(
            {"/profile/wow/character/area-52/bob": {"name": "Bob", "character_class": {"name": "Priest"}}}
        )
        return WarcraftLogsRosterSource(logs, RosterEnricher(blizzard, logs))

    def test_parses_url_and_enriches(self) -> None:
        source = self._source()
        player = asyncio.run(source.fetch_character(self.CHARACTER_URL))
        asyncio.run(source.close())

        assert (player.name, player.character_name, player.realm, player.region) == ("Bob", "Bob", "Area 52", "US")
        assert player.player_class == "Priest"
        assert player.overall_ranking == 91.2
        assert player.warcraft_logs_available is True
        assert player.role is None

    def test_bad_url_raises(self) -> None:
        source = self._source()
        with pytest.raises(ValueError):
            asyncio.run(source.fetch_character("https://www.warcraftlogs.com/guild/us/stormrage/eclipsed"))
