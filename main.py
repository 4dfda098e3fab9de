import sys
import argparse
import asyncio
from typing import List, Optional

# --- Settings/Logging ---
from raid_roster.logging.setup import setup_logging
from raid_roster.config.settings import settings

setup_logging()

from loguru import logger

# --- End Settings/Logging ---

from raid_roster.models.enums import Direction, FilterCriterion
from raid_roster.models.player import Player
from raid_roster.models.team import Team
from raid_roster.providers.base_provider import ProviderError
from raid_roster.providers.blizzard_provider import BlizzardProvider
from raid_roster.providers.enrichment import RosterEnricher, WarcraftLogsRosterSource
from raid_roster.providers.warcraft_logs_provider import WarcraftLogsProvider
from raid_roster.reconciliation.classifier import compose
from raid_roster.reconciliation.errors import RosterError
from raid_roster.services.community_service import CommunityService
from raid_roster.services.council_service import CouncilService
from raid_roster.services.team_service import TeamService
from raid_roster.storage.json_store import StorageError

from rich import print
from rich.panel import Panel
from rich.table import Table


def _ranking_text(player: Player) -> str:
    if player.overall_ranking is None:
        return "-"
    return f"{player.overall_ranking:.1f} ({player.overall_ranking_metric or 'dps'})"


def _kill_text(player: Player) -> str:
    if not player.highest_boss_kill:
        return "-"
    return f"{player.highest_boss_kill} ({player.highest_boss_kill_difficulty or '?'})"


def player_table(title: str, players: List[Player]) -> Table:
    table = Table(title=title, title_justify="left")
    table.add_column("Name", style="bold")
    table.add_column("Class")
    table.add_column("Realm")
    table.add_column("Ranking", justify="right")
    table.add_column("Highest Kill")
    for player in players:
        table.add_row(
            player.display_name,
            player.player_class or "-",
            player.realm or "-",
            _ranking_text(player),
            _kill_text(player),
        )
    return table


def print_team(team: Team, warnings: Optional[List[str]] = None) -> None:
    composition = compose(team)
    leader = composition.team_lead
    leader_text = "[red]unset[/red]"
    if leader is not None:
        role = leader.leader_role.value if leader.leader_role else "no role"
        leader_text = f"{leader.display_name} ({role})"

    progress = team.progress
    header = (
        f"[bold]{team.team_name}[/bold]  id={team.team_id or 'unsaved'}\n"
        f"Source: {team.warcraft_logs_team_url or '-'}\n"
        f"Raid Leader: {leader_text}\n"
        f"Progress: {progress.bosses_killed if progress.bosses_killed is not None else '?'}"
        f"/{progress.total_bosses} {progress.highest_difficulty or ''}"
    )
    print(Panel(header, border_style=team.border_color))

    if composition.raid_assists:
        assists = Table(title="Raid Assists", title_justify="left")
        assists.add_column("Slot", justify="right")
        assists.add_column("Name", style="bold")
        assists.add_column("Role")
        for i, assist in enumerate(team.raid_assists):
            if assist.is_placeholder:
                continue
            assists.add_row(
                str(i), assist.display_name, assist.assist_role.value if assist.assist_role else "-"
            )
        print(assists)

    for title, players in (
        ("Tanks", composition.tanks),
        ("Healers", composition.healers),
        ("DPS", composition.dps),
    ):
        if players:
            print(player_table(f"{title} ({len(players)})", players))

    for warning in warnings or []:
        print(f"[yellow]Warning:[/yellow] {warning}")


def print_team_list(teams: List[Team]) -> None:
    table = Table(title="Teams", title_justify="left")
    table.add_column("#", justify="right")
    table.add_column("Team", style="bold")
    table.add_column("Leader")
    table.add_column("Members", justify="right")
    table.add_column("ID")
    for i, team in enumerate(teams, start=1):
        leader = team.raid_leader.display_name if team.raid_leader else "-"
        table.add_row(str(i), team.team_name, leader, str(len(team.members())), team.team_id or "")
    print(table)


async def run_teams(args: argparse.Namespace) -> None:
    source = None
    if args.action in ("create", "sync", "preview", "add-player"):
        source = WarcraftLogsRosterSource()
    service = TeamService(roster_source=source)
    try:
        if args.action == "list":
            print_team_list(service.list_teams())
        elif args.action == "show":
            print_team(service.get_team(args.team_id))
        elif args.action == "create":
            data = {"teamName": args.name, "warcraftLogsTeamUrl": args.url}
            if args.border_color:
                data["borderColor"] = args.border_color
            team = await service.create_team(data)
            logger.success(f"Team '{team.team_name}' created")
            print_team(team)
        elif args.action == "delete":
            service.delete_team(args.team_id)
            logger.success(f"Team {args.team_id} deleted")
        elif args.action == "reorder":
            print_team_list(service.reorder(args.team_id, Direction(args.direction)))
        elif args.action == "sync":
            print_team(await service.sync_team(args.team_id))
        elif args.action == "add-player":
            team = await service.add_player_from_url(args.team_id, args.url)
            logger.success(f"Added character from {args.url} to '{team.team_name}'")
            print_team(team)
        elif args.action == "preview":
            session = await service.preview_team(args.name, args.url)
            if args.leader:
                session = session.set_leader(args.leader)
            print_team(session.team, session.warnings)
            if args.save:
                team_id = service.save_session(session)
                logger.success(f"Draft saved as team {team_id}")
    finally:
        if source is not None:
            await source.close()


async def run_community(args: argparse.Namespace) -> None:
    if args.action == "sync":
        blizzard = BlizzardProvider()
        enricher = RosterEnricher(blizzard, WarcraftLogsProvider())
        service = CommunityService(blizzard=blizzard, enricher=enricher)
        try:
            snapshot = await service.sync()
        finally:
            await enricher.close()
        print(player_table(f"Team Leads ({len(snapshot.team_leads)})", snapshot.team_leads))
    else:
        service = CommunityService()
        members = service.members(args.filter)
        print(player_table(f"Team Leads [{args.filter}] ({len(members)})", members))


async def run_council(args: argparse.Namespace) -> None:
    if args.action == "sync":
        blizzard = BlizzardProvider()
        enricher = RosterEnricher(blizzard, WarcraftLogsProvider())
        service = CouncilService(blizzard=blizzard, enricher=enricher)
        try:
            snapshot = await service.sync()
        finally:
            await enricher.close()
        print(player_table(f"Council ({len(snapshot.council)})", snapshot.council))
    else:
        members = CouncilService().members(args.filter)
        print(player_table(f"Council [{args.filter}] ({len(members)})", members))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Guild raid team roster manager")
    groups = parser.add_subparsers(dest="group", required=True)

    teams = groups.add_parser("teams", help="Manage saved raid teams")
    actions = teams.add_subparsers(dest="action", required=True)
    actions.add_parser("list", help="List saved teams in display order")

    show = actions.add_parser("show", help="Show a team's composition")
    show.add_argument("team_id")

    create = actions.add_parser("create", help="Create a team, fetching its roster from a URL")
    create.add_argument("name")
    create.add_argument("--url", default="", help="Warcraft Logs team or guild URL")
    create.add_argument("--border-color", default=None)

    delete = actions.add_parser("delete", help="Delete a team")
    delete.add_argument("team_id")

    reorder = actions.add_parser("reorder", help="Move a team up or down")
    reorder.add_argument("team_id")
    reorder.add_argument("direction", choices=[d.value for d in Direction])

    sync = actions.add_parser("sync", help="Re-fetch a team's roster and merge it")
    sync.add_argument("team_id")

    add_player = actions.add_parser("add-player", help="Add a character by its Warcraft Logs URL")
    add_player.add_argument("team_id")
    add_player.add_argument("--url", required=True, help="Warcraft Logs character URL")

    preview = actions.add_parser("preview", help="Build a draft team without saving")
    preview.add_argument("name")
    preview.add_argument("--url", default=None)
    preview.add_argument("--leader", default=None, help="Character to set as raid leader")
    preview.add_argument("--save", action="store_true", help="Save the draft")

    community = groups.add_parser("community", help="Guild team leads")
    community_actions = community.add_subparsers(dest="action", required=True)
    community_actions.add_parser("sync", help="Fetch and enrich the guild's team leads")
    listing = community_actions.add_parser("list", help="List team leads")
    listing.add_argument(
        "--filter", default=FilterCriterion.ALL.value, choices=[c.value for c in FilterCriterion]
    )

    council = groups.add_parser("council", help="Guild Master and officers")
    council_actions = council.add_subparsers(dest="action", required=True)
    council_actions.add_parser("sync", help="Fetch and enrich the guild council")
    council_listing = council_actions.add_parser("list", help="List council members")
    council_listing.add_argument(
        "--filter", default=FilterCriterion.ALL.value, choices=[c.value for c in FilterCriterion]
    )
    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    args = build_parser().parse_args(argv)
    logger.debug(f"Data directory: {settings.data_dir}")
    try:
        if args.group == "teams":
            await run_teams(args)
        elif args.group == "community":
            await run_community(args)
        else:
            await run_council(args)
    except RosterError as e:
        logger.error(str(e))
        return 1
    except ProviderError as e:
        logger.error(f"Provider error: {e}")
        return 1
    except StorageError as e:
        logger.critical(f"Storage error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Execution interrupted by user (KeyboardInterrupt).")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Unhandled exception in main execution: {e}")
        sys.exit(1)
