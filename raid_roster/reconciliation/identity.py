"""Player identity resolution.

Sources disagree on which of ``name``/``characterName`` holds the canonical
character name (Blizzard profiles, Warcraft Logs link text, hand-entered
players), so matching compares both fields of both players. Realm and region
are not part of the key: same-named characters on different realms collide.
"""

from typing import Iterable, Optional, Set, Tuple

from raid_roster.models.player import Player


def normalize_name(value: Optional[str]) -> str:
    return (value or "").lower().strip()


def identity_of(player: Optional[Player]) -> str:
    """Stable join key: characterName, falling back to name only when it is None."""
    if player is None:
        return ""
    source = player.character_name if player.character_name is not None else player.name
    return normalize_name(source)


def names_of(player: Optional[Player]) -> Set[str]:
    if player is None:
        return set()
    return {
        n
        for n in (normalize_name(player.character_name), normalize_name(player.name))
        if n
    }


def players_match(a: Optional[Player], b: Optional[Player]) -> bool:
    """True iff any name field of ``a`` equals any name field of ``b``."""
    return bool(names_of(a) & names_of(b))


def matches_identity(player: Optional[Player], key: str) -> bool:
    key = normalize_name(key)
    return bool(key) and key in names_of(player)


def find_matching(players: Iterable[Player], target: Player) -> Optional[Player]:
    for candidate in players:
        if players_match(candidate, target):
            return candidate
    return None


def character_key(player: Player) -> Tuple[str, str, str]:
    """Strict (region, realm, name) key for sources that supply all three."""
    return (
        normalize_name(player.region),
        normalize_name(player.realm).replace(" ", "-"),
        identity_of(player),
    )
