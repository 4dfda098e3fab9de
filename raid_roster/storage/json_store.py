# raid_roster/storage/json_store.py
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from raid_roster.config.settings import settings
from raid_roster.models.team import TeamCollection, utc_now

M = TypeVar("M", bound=BaseModel)


class StorageError(Exception):
    """Raised when a data file cannot be read or written."""

    pass


def read_json(path: Path) -> Optional[Dict[str, Any]]:
    """Reads a JSON document, or None if the file does not exist yet."""
    if not path.exists():
        logger.debug(f"No data file at {path}")
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to read {path}: {e}")
        raise StorageError(f"Could not read {path}") from e


def write_json_atomic(path: Path, data: Dict[str, Any]) -> None:
    """Writes the whole document to a temp file, then swaps it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except (OSError, TypeError) as e:
        logger.error(f"Failed to write {path}: {e}")
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise StorageError(f"Could not write {path}") from e
    logger.debug(f"Wrote {path}")


def load_model(path: Path, model: Type[M]) -> Optional[M]:
    data = read_json(path)
    if data is None:
        return None
    try:
        return model.model_validate(data)
    except ModelValidationError as e:
        logger.error(f"{path} does not match {model.__name__}: {e}")
        raise StorageError(f"Malformed data in {path}") from e


class TeamStore:
    """Whole-collection persistence for saved teams."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else settings.teams_path

    def load_teams(self) -> TeamCollection:
        collection = load_model(self.path, TeamCollection)
        if collection is None:
            return TeamCollection()
        logger.debug(f"Loaded {len(collection.teams)} team(s) from {self.path}")
        return collection

    def persist_teams(self, collection: TeamCollection) -> None:
        collection.last_updated = utc_now()
        write_json_atomic(
            self.path, collection.model_dump(by_alias=True, mode="json")
        )
        logger.info(f"Saved {len(collection.teams)} team(s) to {self.path}")
