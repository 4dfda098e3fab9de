"""Shared fixtures: player/team factories and a throwaway team store."""

import pytest

from raid_roster.models.enums import Role
from raid_roster.models.player import Player, RaidAssist, RaidLeader
from raid_roster.models.team import Team
from raid_roster.reconciliation.identity import identity_of
from raid_roster.storage.json_store import TeamStore


def _player_fields(name: str, role=None, **fields) -> dict:
    data = {"name": name, "character_name": name, "realm": "Stormrage", "region": "US"}
    if role is not None:
        data["role"] = role
    data.update(fields)
    return data


@pytest.fixture
def make_player():
    def factory(name: str, role=None, **fields) -> Player:
        return Player(**_player_fields(name, role, **fields))

    return factory


@pytest.fixture
def make_team(make_player):
    """Team builder: ``roster`` items may be names or (name, role) pairs."""

    def factory(
        team_name: str = "Dark Matter",
        leader=None,
        leader_role=None,
        assists=(),
        roster=(),
        **fields,
    ) -> Team:
        def build(item):
            if isinstance(item, Player):
                return item
            if isinstance(item, tuple):
                return make_player(*item)
            return make_player(item, Role.DPS)

        return Team(
            team_name=team_name,
            raid_leader=RaidLeader(**_player_fields(leader), leader_role=leader_role) if leader else None,
            raid_assists=[RaidAssist(**_player_fields(a)) if a else RaidAssist() for a in assists],
            roster=[build(item) for item in roster],
            **fields,
        )

    return factory


@pytest.fixture
def team_store(tmp_path):
    return TeamStore(tmp_path / "teams-editor.json")


def identities(players) -> list:
    return [identity_of(p) for p in players]


def assert_partitioned(team: Team) -> None:
    """No identity is held by more than one of leader, assists and roster."""
    leader = {identity_of(team.raid_leader)} if team.raid_leader else set()
    assists = set(identities(a for a in team.raid_assists if not a.is_placeholder))
    roster = set(identities(team.roster))
    assert not leader & assists
    assert not leader & roster
    assert not assists & roster
    assert len(roster) == len(team.roster)
