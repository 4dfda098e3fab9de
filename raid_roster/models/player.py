from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .enums import Role, SLOT_ROLES


class Player(BaseModel):
    """A guild member as reported by any provider or entered by hand."""

    # Unknown provider keys are kept so saved records round-trip untouched
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    name: str = ""
    character_name: Optional[str] = None
    player_class: str = Field("", alias="class")
    race: str = ""
    level: str = ""
    realm: str = ""
    region: str = ""
    avatar: str = ""
    role: Optional[Role] = None

    # Warcraft Logs metadata
    overall_ranking: Optional[float] = None
    overall_ranking_metric: Optional[str] = None
    highest_boss_kill: Optional[str] = None
    highest_boss_kill_difficulty: Optional[str] = None
    warcraft_logs_url: Optional[str] = None
    warcraft_logs_available: Optional[bool] = None

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value: Any) -> Optional[Role]:
        return Role.parse(value)

    @field_validator("level", mode="before")
    @classmethod
    def _level_as_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    @field_validator("name", "race", "realm", "region", "avatar", "player_class", mode="before")
    @classmethod
    def _none_as_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("overall_ranking", mode="before")
    @classmethod
    def _ranking_or_none(cls, value: Any) -> Optional[float]:
        # Scraped pages hand back "96.4", "N/A" or nothing at all
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @property
    def display_name(self) -> str:
        return self.name or self.character_name or ""

    def to_record(self) -> dict[str, Any]:
        """Serialize with the camelCase keys used by the saved JSON."""
        return self.model_dump(by_alias=True, mode="json")


def _slot_role(value: Any) -> Optional[Role]:
    role = Role.parse(value)
    if role is not None and role not in SLOT_ROLES:
        raise ValueError(f"Slot role must be one of Tank, Healer, DPS; got {value!r}")
    return role


class RaidLeader(Player):
    """The team's raid leader and the role they play in the raid."""

    leader_role: Optional[Role] = None

    @field_validator("leader_role", mode="before")
    @classmethod
    def _parse_leader_role(cls, value: Any) -> Optional[Role]:
        return _slot_role(value)


class RaidAssist(Player):
    """An assist slot. A slot without any name is an unfilled placeholder."""

    assist_role: Optional[Role] = None

    @field_validator("assist_role", mode="before")
    @classmethod
    def _parse_assist_role(cls, value: Any) -> Optional[Role]:
        return _slot_role(value)

    @property
    def is_placeholder(self) -> bool:
        return not (self.name or "").strip() and not (self.character_name or "").strip()
