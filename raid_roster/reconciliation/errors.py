class RosterError(Exception):
    """Base exception for team and roster operations."""

    pass


class ValidationError(RosterError):
    """A required field is missing or a value is malformed."""

    pass


class NotFoundError(RosterError):
    """The requested team does not exist."""

    pass


class PlayerNotFoundError(NotFoundError):
    """No player with the given identity is on the team."""

    pass


class DuplicatePlayerError(RosterError):
    """The player's identity is already present on the team."""

    pass


class EditError(RosterError):
    """An edit does not apply to the team's current state (bad slot, no leader)."""

    pass
