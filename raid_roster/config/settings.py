import logging
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # Storage
    data_dir: Path = Field(
        Path("data"), description="Directory holding the JSON data files."
    )
    teams_file: str = Field(
        "teams-editor.json", description="File name of the saved team collection."
    )
    community_file: str = Field(
        "community.json", description="File name of the community snapshot."
    )
    council_file: str = Field(
        "council.json", description="File name of the council snapshot."
    )

    # Blizzard API Credentials
    blizzard_client_id: Optional[str] = Field(
        None, description="OAuth client id for the Blizzard Game Data API."
    )
    blizzard_client_secret: Optional[str] = Field(
        None, description="OAuth client secret for the Blizzard Game Data API."
    )
    blizzard_region: str = Field("us", description="Blizzard API region.")

    # Warcraft Logs API Credentials
    warcraft_logs_client_id: Optional[str] = Field(
        None, description="OAuth client id for the Warcraft Logs v2 API."
    )
    warcraft_logs_client_secret: Optional[str] = Field(
        None, description="OAuth client secret for the Warcraft Logs v2 API."
    )

    # Guild
    guild_name: str = Field("Eclipsed", description="Guild used for team leads.")
    guild_realm: str = Field("Stormrage", description="Realm of the guild.")
    guild_region: str = Field("us", description="Region of the guild.")
    team_lead_rank: int = Field(
        2, ge=0, description="Guild rank index holding the Team Leads."
    )
    council_ranks: List[int] = Field(
        [0, 1], description="Guild rank indexes making up the council (Guild Master, Officers)."
    )

    # Sync Settings
    enrich_batch_size: int = Field(
        5, ge=1, description="Players enriched concurrently per batch."
    )
    enrich_batch_delay: float = Field(
        0.1, ge=0, description="Seconds to wait between enrichment batches."
    )
    request_timeout: float = Field(
        30.0, gt=0, description="HTTP timeout for provider requests, in seconds."
    )

    # Team Defaults
    default_border_color: str = Field(
        "#6B7280", description="Border color given to new teams."
    )
    team_logo_max_bytes: int = Field(
        200_000, gt=0, description="Maximum size of a stored base64 team logo."
    )

    # Logging Configuration
    log_level: str = Field(
        "INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @property
    def teams_path(self) -> Path:
        return self.data_dir / self.teams_file

    @property
    def community_path(self) -> Path:
        return self.data_dir / self.community_file

    @property
    def council_path(self) -> Path:
        return self.data_dir / self.council_file


def load_settings() -> AppSettings:
    """Loads and validates application settings."""
    try:
        settings = AppSettings()
        log_level_upper = settings.log_level.upper()
        # Validate log_level even if loaded from .env
        if log_level_upper not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            logging.warning(
                f"Invalid LOG_LEVEL '{settings.log_level}' found in .env or default. Using INFO."
            )
            settings.log_level = "INFO"
        else:
            settings.log_level = log_level_upper
        return settings
    except Exception as e:
        logging.exception(f"Error loading application settings: {e}")
        raise SystemExit("Failed to load application settings. Exiting.")


settings: AppSettings = load_settings()
