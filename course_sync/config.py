"""
Application Configuration

Uses Pydantic Settings for type-safe configuration.
All values can be overridden with COURSE_SYNC_* environment variables.
"""

from typing import Annotated, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Comma-separated in the environment, not JSON
DomainList = Annotated[list[str], NoDecode]


class Settings(BaseSettings):
    """Application settings with validation."""

    # === Core ===
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # === Local state ===
    database_url: str = Field(
        default="sqlite:///./course_sync.db",
        description="Database holding the encrypted session, history and settings"
    )
    encryption_key: Optional[str] = Field(
        default=None,
        description="Base64 AES-256 key; generated and stored locally when unset"
    )
    sync_history_limit: int = Field(default=50, ge=1)

    # === Garmin Connect ===
    garmin_connect_url: str = Field(default="https://connect.garmin.com")
    garmin_course_api_url: str = Field(
        default="https://connect.garmin.com/gc-api/course-service/course"
    )
    garmin_sso_domain: str = Field(default="sso.garmin.com")
    garmin_cookie_domain: str = Field(default=".garmin.com")
    garmin_logout_domains: DomainList = Field(
        default_factory=lambda: [".garmin.com", "connect.garmin.com", "sso.garmin.com"]
    )
    profile_image_domains: DomainList = Field(
        default_factory=lambda: ["garmin.com", "amazonaws.com"]
    )

    cookie_file: str = Field(
        default="cookies.txt",
        description="Netscape cookie file exported from the browser"
    )

    # === Login polling ===
    login_poll_interval_seconds: float = Field(default=2.0, gt=0)
    login_timeout_seconds: float = Field(default=300.0, gt=0)
    session_lifetime_days: int = Field(default=365, ge=1)

    # === Mapy.cz ===
    mapy_domains: DomainList = Field(default_factory=lambda: ["mapy.cz", "mapy.com"])
    mapy_export_url: str = Field(default="https://mapy.com/api/tplannerexport")
    mapy_folder_export_url: str = Field(
        default="https://mapy.com/api/mapybox-export/v1/folder/gpx"
    )
    mapy_export_lang: str = Field(default="en,cs")

    # === HTTP ===
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    segment_export_timeout_seconds: float = Field(default=15.0, gt=0)
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        )
    )

    @field_validator("garmin_logout_domains", "profile_image_domains", "mapy_domains", mode="before")
    @classmethod
    def parse_domain_list(cls, v):
        """Parse domain lists from comma-separated string."""
        if isinstance(v, str):
            return [domain.strip() for domain in v.split(",") if domain.strip()]
        return v

    model_config = SettingsConfigDict(
        env_prefix="COURSE_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
