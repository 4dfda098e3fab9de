"""Tests for the JSON team store."""

import json

import pytest

from raid_roster.models.enums import Role
from raid_roster.models.team import TeamCollection
from raid_roster.storage.json_store import StorageError, TeamStore, write_json_atomic


def test_missing_file_is_empty_collection(team_store) -> None:
    assert team_store.load_teams().teams == []


def test_round_trip_preserves_order_and_membership(team_store, make_team) -> None:
    team = make_team(
        leader="Ratayu",
        leader_role=Role.HEALER,
        assists=["Zed", None, "Alice"],
        roster=[("Bob", Role.TANK), "Carl"],
        team_id="t-1",
    )
    team.roster[0].rank = 3

    team_store.persist_teams(TeamCollection(teams=[team]))
    loaded = team_store.load_teams().teams[0]

    assert loaded.raid_leader.leader_role == Role.HEALER
    assert [a.name for a in loaded.raid_assists] == ["Zed", "", "Alice"]
    assert [(p.name, p.role) for p in loaded.roster] == [("Bob", Role.TANK), ("Carl", Role.DPS)]
    # Unknown keys survive a save
    assert loaded.roster[0].rank == 3


def test_saved_file_uses_camel_case(team_store, make_team) -> None:
    team_store.persist_teams(TeamCollection(teams=[make_team(roster=["Bob"], team_id="t-1")]))
    raw = json.loads(team_store.path.read_text(encoding="utf-8"))

    record = raw["teams"][0]
    assert record["teamId"] == "t-1"
    assert record["teamName"] == "Dark Matter"
    assert record["borderColor"] == "#6B7280"
    assert record["roster"][0]["characterName"] == "Bob"
    assert "class" in record["roster"][0]
    assert raw["lastUpdated"]


def test_reads_original_records(tmp_path) -> None:
    path = tmp_path / "teams-editor.json"
    path.write_text(
        json.dumps(
            {
                "teams": [
                    {
                        "teamId": "abc",
                        "teamName": "Dark Matter",
                        "warcraftLogsTeamUrl": "",
                        "raidLeader": {"name": "Ratayu", "class": "Priest", "level": 80, "leaderRole": "Healer"},
                        "raidAssists": [{"name": "", "assistRole": ""}],
                        "roster": [{"name": "Bob", "role": "Tank", "overallRanking": "N/A"}],
                        "progress": {"bossesKilled": None, "totalBosses": 8},
                        "borderColor": "#6B7280",
                        "teamLogo": None,
                        "lastUpdated": "2025-01-01T00:00:00.000Z",
                    }
                ],
                "lastUpdated": None,
            }
        ),
        encoding="utf-8",
    )

    team = TeamStore(path).load_teams().teams[0]
    assert team.raid_leader.player_class == "Priest"
    assert team.raid_leader.level == "80"
    assert team.raid_assists[0].is_placeholder
    assert team.roster[0].role == Role.TANK
    assert team.roster[0].overall_ranking is None


def test_corrupt_file_raises(tmp_path) -> None:
    path = tmp_path / "teams-editor.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError):
        TeamStore(path).load_teams()


def test_failed_write_keeps_existing_file(tmp_path) -> None:
    path = tmp_path / "teams-editor.json"
    path.write_text('{"teams": []}', encoding="utf-8")

    with pytest.raises(StorageError):
        write_json_atomic(path, {"bad": object()})

    assert path.read_text(encoding="utf-8") == '{"teams": []}'
    assert [p.name for p in tmp_path.iterdir()] == ["teams-editor.json"]
