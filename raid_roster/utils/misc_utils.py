# raid_roster/utils/misc_utils.py
import re
import uuid


def generate_team_id() -> str:
    """Opaque, unique team identifier."""
    return str(uuid.uuid4())


def realm_slug(realm: str) -> str:
    """'Area 52' -> 'area-52', the form used in Blizzard and Warcraft Logs URLs."""
    return re.sub(r"\s+", "-", (realm or "").strip().lower())


def realm_display_name(slug: str) -> str:
    """'area-52' -> 'Area 52'."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), (slug or "").replace("-", " "))
