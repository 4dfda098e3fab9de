# raid_roster/services/team_service.py

from typing import Any, Dict, List, Optional, Union

import httpx
from loguru import logger

from raid_roster.models.enums import Direction
from raid_roster.models.team import Team
from raid_roster.providers.base_provider import ProviderError
from raid_roster.providers.warcraft_logs_provider import RosterFetch
from raid_roster.reconciliation import editing
from raid_roster.reconciliation.errors import NotFoundError, ValidationError
from raid_roster.reconciliation.merge import merge_roster, reconcile_buckets
from raid_roster.reconciliation.session import DraftTeamSession
from raid_roster.storage.json_store import TeamStore
from raid_roster.utils.misc_utils import generate_team_id

# Saved-record keys a caller may set when creating or updating a team
EDITABLE_FIELDS = (
    "teamName",
    "warcraftLogsTeamUrl",
    "raidLeader",
    "raidAssists",
    "roster",
    "progress",
    "borderColor",
    "teamLogo",
)


class TeamService:
    """Create, update, sync and order the saved teams.

    ``roster_source`` is anything with an async ``fetch_roster(url)`` returning
    a ``RosterFetch``; without one, teams are only ever edited by hand.
    """

    def __init__(self, store: Optional[TeamStore] = None, roster_source: Any = None):
        self.store = store or TeamStore()
        self.roster_source = roster_source

    def list_teams(self) -> List[Team]:
        return self.store.load_teams().teams

    def get_team(self, team_id: str) -> Team:
        collection = self.store.load_teams()
        index = collection.index_of(team_id)
        if index < 0:
            raise NotFoundError(f"Team not found: {team_id}")
        return collection.teams[index]

    def find_team(self, team_name: str = "", source_url: str = "") -> Optional[Team]:
        """A saved team with the same name (case-insensitive) or source URL."""
        name = (team_name or "").strip().casefold()
        url = (source_url or "").strip()
        for team in self.list_teams():
            if name and team.team_name.strip().casefold() == name:
                return team
            if url and team.warcraft_logs_team_url == url:
                return team
        return None

    def save_team(self, team: Team) -> str:
        """Persist ``team``; appends a new team, replaces an existing one in place."""
        if not (team.team_name or "").strip():
            raise ValidationError("Missing required field: teamName")

        team = reconcile_buckets(team.model_copy(deep=True))
        if not team.team_id:
            team.team_id = generate_team_id()
        team.touch()

        collection = self.store.load_teams()
        index = collection.index_of(team.team_id)
        if index >= 0:
            collection.teams[index] = team
            logger.info(f"Updated team '{team.team_name}' ({team.team_id})")
        else:
            collection.teams.append(team)
            logger.info(f"Created team '{team.team_name}' ({team.team_id})")
        self.store.persist_teams(collection)
        return team.team_id

    def save_session(self, session: DraftTeamSession) -> str:
        return self.save_team(session.team)

    def delete_team(self, team_id: str) -> None:
        collection = self.store.load_teams()
        index = collection.index_of(team_id)
        if index < 0:
            raise NotFoundError(f"Team not found: {team_id}")
        removed = collection.teams.pop(index)
        self.store.persist_teams(collection)
        logger.info(f"Deleted team '{removed.team_name}' ({team_id})")

    def reorder(self, team_id: str, direction: Union[Direction, str]) -> List[Team]:
        """Swap a team with its neighbour. Moving past either end changes nothing."""
        try:
            direction = Direction(direction)
        except ValueError:
            raise ValidationError(f"Direction must be 'up' or 'down', got '{direction}'")

        collection = self.store.load_teams()
        index = collection.index_of(team_id)
        if index < 0:
            raise NotFoundError(f"Team not found: {team_id}")

        neighbour = index - 1 if direction == Direction.UP else index + 1
        if not 0 <= neighbour < len(collection.teams):
            logger.debug(f"Team {team_id} is already at the {direction.value} boundary")
            return collection.teams

        teams = collection.teams
        teams[index], teams[neighbour] = teams[neighbour], teams[index]
        self.store.persist_teams(collection)
        return teams

    async def _fetch(self, url: str) -> Optional[RosterFetch]:
        """Roster from ``url``, or None when the source is missing or failing."""
        if self.roster_source is None:
            logger.warning(f"No roster source configured, not fetching {url}")
            return None
        try:
            return await self.roster_source.fetch_roster(url)
        except (ProviderError, httpx.HTTPError) as e:
            logger.error(f"Error fetching roster from {url}: {e}")
            return None

    async def create_team(self, data: Dict[str, Any]) -> Team:
        """Create a team from a saved-record shaped dict.

        When no roster is supplied but a Warcraft Logs URL is, the roster is
        fetched from the URL; a failed fetch leaves it empty.
        """
        if not (data.get("teamName") or "").strip():
            raise ValidationError("Missing required field: teamName")
        url = editing.validate_source_url(data.get("warcraftLogsTeamUrl"))
        editing.validate_team_logo(data.get("teamLogo"))

        record = {k: data[k] for k in EDITABLE_FIELDS if data.get(k) is not None}
        record["warcraftLogsTeamUrl"] = url
        if "borderColor" in record:
            record["borderColor"] = editing.validate_border_color(record["borderColor"])
        team = Team.model_validate(record)

        if not team.roster and url:
            logger.info("No roster provided, fetching from Warcraft Logs URL...")
            fetched = await self._fetch(url)
            if fetched is not None:
                team = merge_roster(team, fetched.players)
                team.progress = fetched.progress

        team_id = self.save_team(team)
        return self.get_team(team_id)

    async def update_team(self, team_id: str, data: Dict[str, Any]) -> Team:
        """Apply a partial update. Keys absent from ``data`` keep their saved values.

        If no roster is supplied and the source URL changed, the roster is
        re-fetched from the new URL and merged into the saved one.
        """
        existing = self.get_team(team_id)
        if "teamName" in data and not (data["teamName"] or "").strip():
            raise ValidationError("Missing required field: teamName")
        if "teamLogo" in data:
            editing.validate_team_logo(data["teamLogo"])
        if "borderColor" in data:
            data = {**data, "borderColor": editing.validate_border_color(data["borderColor"])}

        record = existing.to_record()
        for key in EDITABLE_FIELDS:
            if key not in data:
                continue
            # A missing leader in the payload never clears the saved one
            if key == "raidLeader" and not data[key]:
                continue
            record[key] = data[key]
        url = editing.validate_source_url(record.get("warcraftLogsTeamUrl"))
        record["warcraftLogsTeamUrl"] = url
        team = Team.model_validate(record)

        if data.get("roster") is None and url and url != existing.warcraft_logs_team_url:
            logger.info("Source URL changed, re-fetching roster...")
            fetched = await self._fetch(url)
            if fetched is not None:
                team = merge_roster(team, fetched.players)
                team.progress = fetched.progress

        self.save_team(team)
        return self.get_team(team_id)

    async def preview_team(
        self, team_name: str, source_url: Optional[str] = None
    ) -> DraftTeamSession:
        """A draft for editing before save.

        Starts from the saved team with the same name or URL when there is
        one, and merges a fresh fetch into it when a URL is given.
        """
        url = editing.validate_source_url(source_url)
        base = self.find_team(team_name, url)
        if base is None:
            base = Team(team_name=team_name or "")
        elif (team_name or "").strip().casefold() not in ("", base.team_name.strip().casefold()):
            # Matched by URL under another name
            base = editing.rename_team(base, team_name)
        if url:
            base = editing.set_source_url(base, url)

        session = DraftTeamSession.start(base)
        if not url:
            return session

        fetched = await self._fetch(url)
        if fetched is None:
            session.warnings.append(f"Could not fetch roster from {url}; showing saved data")
            return session

        session = session.merge(fetched.players)
        session.team.progress = fetched.progress
        return session

    async def add_player_from_url(self, team_id: str, character_url: str) -> Team:
        """Look up one character by its Warcraft Logs profile URL and add it to the roster."""
        existing = self.get_team(team_id)
        if self.roster_source is None:
            raise ValidationError("No roster source configured to look up characters")
        try:
            player = await self.roster_source.fetch_character(character_url)
        except ValueError as e:
            raise ValidationError(str(e))

        team = editing.add_player(existing, player)
        self.save_team(team)
        return self.get_team(team_id)

    async def sync_team(self, team_id: str) -> Team:
        """Re-fetch the roster from the team's stored URL, merge it and save."""
        existing = self.get_team(team_id)
        if not existing.warcraft_logs_team_url:
            raise ValidationError(f"Team '{existing.team_name}' has no Warcraft Logs URL")

        fetched = await self._fetch(existing.warcraft_logs_team_url)
        if fetched is None:
            return existing

        team = merge_roster(existing, fetched.players)
        team.progress = fetched.progress
        if team.model_dump(exclude={"last_updated"}) == existing.model_dump(exclude={"last_updated"}):
            logger.info(f"Team '{existing.team_name}' is already up to date")
            return existing
        self.save_team(team)
        return self.get_team(team_id)
