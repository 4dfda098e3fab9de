"""Draft editing sessions.

A ``DraftTeamSession`` is a value: every edit returns a new session wrapping
a new team, so several drafts can be edited side by side. Edits arrive either
as method calls or as the JSON-friendly ``ManualEdit`` commands below.
"""

from typing import Annotated, Iterable, List, Literal, Optional, Union

from loguru import logger
from pydantic import BaseModel, Field, TypeAdapter

from raid_roster.models.enums import Role
from raid_roster.models.player import Player
from raid_roster.models.team import Team
from . import editing
from .classifier import TeamComposition, compose
from .errors import DuplicatePlayerError
from .merge import merge_roster


class SetLeader(BaseModel):
    op: Literal["set_leader"] = "set_leader"
    identity: Optional[str] = None
    player: Optional[Player] = None


class SetLeaderRole(BaseModel):
    op: Literal["set_leader_role"] = "set_leader_role"
    role: Optional[str] = None


class AddAssist(BaseModel):
    op: Literal["add_assist"] = "add_assist"


class SetAssistAtIndex(BaseModel):
    op: Literal["set_assist"] = "set_assist"
    index: int
    identity: Optional[str] = None


class SetAssistRoleAtIndex(BaseModel):
    op: Literal["set_assist_role"] = "set_assist_role"
    index: int
    role: Optional[str] = None


class SetPlayerRole(BaseModel):
    op: Literal["set_player_role"] = "set_player_role"
    identity: str
    role: str


class RemovePlayer(BaseModel):
    op: Literal["remove_player"] = "remove_player"
    identity: str


class AddPlayer(BaseModel):
    op: Literal["add_player"] = "add_player"
    player: Player


class RenameTeam(BaseModel):
    op: Literal["rename"] = "rename"
    team_name: str


class SetBorderColor(BaseModel):
    op: Literal["set_border_color"] = "set_border_color"
    color: str


class SetTeamLogo(BaseModel):
    op: Literal["set_team_logo"] = "set_team_logo"
    logo: Optional[str] = None


ManualEdit = Annotated[
    Union[
        SetLeader,
        SetLeaderRole,
        AddAssist,
        SetAssistAtIndex,
        SetAssistRoleAtIndex,
        SetPlayerRole,
        RemovePlayer,
        AddPlayer,
        RenameTeam,
        SetBorderColor,
        SetTeamLogo,
    ],
    Field(discriminator="op"),
]

manual_edit_adapter: TypeAdapter = TypeAdapter(ManualEdit)


def parse_edit(data: Union[dict, BaseModel]) -> BaseModel:
    if isinstance(data, BaseModel):
        return data
    return manual_edit_adapter.validate_python(data)


def apply_manual_edit(team: Team, edit: Union[dict, BaseModel]) -> Team:
    """Apply one edit command to ``team`` and return the edited copy."""
    edit = parse_edit(edit)

    if isinstance(edit, SetLeader):
        return editing.set_leader(team, edit.player or edit.identity)
    if isinstance(edit, SetLeaderRole):
        return editing.set_leader_role(team, edit.role)
    if isinstance(edit, AddAssist):
        return editing.add_assist(team)
    if isinstance(edit, SetAssistAtIndex):
        return editing.set_assist_at_index(team, edit.index, edit.identity)
    if isinstance(edit, SetAssistRoleAtIndex):
        return editing.set_assist_role_at_index(team, edit.index, edit.role)
    if isinstance(edit, SetPlayerRole):
        return editing.set_player_role(team, edit.identity, edit.role)
    if isinstance(edit, RemovePlayer):
        return editing.remove_player(team, edit.identity)
    if isinstance(edit, AddPlayer):
        return editing.add_player(team, edit.player)
    if isinstance(edit, RenameTeam):
        return editing.rename_team(team, edit.team_name)
    if isinstance(edit, SetBorderColor):
        return editing.set_border_color(team, edit.color)
    if isinstance(edit, SetTeamLogo):
        return editing.set_team_logo(team, edit.logo)
    raise TypeError(f"Unsupported edit: {type(edit).__name__}")


class DraftTeamSession(BaseModel):
    """An unsaved team under edit, plus what the UI should tell the officer."""

    team: Team
    warnings: List[str] = Field(default_factory=list)
    leader_unset: bool = False

    @classmethod
    def start(cls, team: Optional[Team] = None, team_name: str = "") -> "DraftTeamSession":
        if team is None:
            team = Team(team_name=team_name)
        return cls(team=team.model_copy(deep=True))

    def _next(self, team: Team, leader_unset: Optional[bool] = None) -> "DraftTeamSession":
        if leader_unset is None:
            leader_unset = self.leader_unset and team.raid_leader is None
        return DraftTeamSession(
            team=team, warnings=list(self.warnings), leader_unset=leader_unset
        )

    def apply(self, edit: Union[dict, BaseModel]) -> "DraftTeamSession":
        edit = parse_edit(edit)
        had_leader = self.team.raid_leader is not None
        try:
            team = apply_manual_edit(self.team, edit)
        except DuplicatePlayerError as e:
            logger.warning(f"Ignoring edit '{edit.op}': {e}")
            session = self._next(self.team)
            session.warnings.append(str(e))
            return session

        lost_leader = had_leader and team.raid_leader is None
        if lost_leader:
            logger.warning(f"Team '{team.team_name}' has no raid leader after '{edit.op}'")
        return self._next(team, leader_unset=lost_leader or None)

    def apply_all(self, edits: Iterable[Union[dict, BaseModel]]) -> "DraftTeamSession":
        session = self
        for edit in edits:
            session = session.apply(edit)
        return session

    def merge(self, fresh_players: Iterable[Player]) -> "DraftTeamSession":
        return self._next(merge_roster(self.team, fresh_players))

    # Convenience wrappers mirroring the editor's controls

    def set_leader(self, ref: Union[Player, str, None]) -> "DraftTeamSession":
        if isinstance(ref, Player):
            return self.apply(SetLeader(player=ref))
        return self.apply(SetLeader(identity=ref))

    def set_leader_role(self, role: Union[Role, str, None]) -> "DraftTeamSession":
        return self.apply(SetLeaderRole(role=_role_text(role)))

    def add_assist(self) -> "DraftTeamSession":
        return self.apply(AddAssist())

    def set_assist(self, index: int, identity: Optional[str]) -> "DraftTeamSession":
        return self.apply(SetAssistAtIndex(index=index, identity=identity))

    def set_assist_role(self, index: int, role: Union[Role, str, None]) -> "DraftTeamSession":
        return self.apply(SetAssistRoleAtIndex(index=index, role=_role_text(role)))

    def set_player_role(self, identity: str, role: Union[Role, str]) -> "DraftTeamSession":
        return self.apply(SetPlayerRole(identity=identity, role=_role_text(role)))

    def remove_player(self, identity: str) -> "DraftTeamSession":
        return self.apply(RemovePlayer(identity=identity))

    def add_player(self, player: Player) -> "DraftTeamSession":
        return self.apply(AddPlayer(player=player))

    def composition(self) -> TeamComposition:
        return compose(self.team)


def _role_text(role: Union[Role, str, None]) -> Optional[str]:
    if isinstance(role, Role):
        return role.value
    return role
