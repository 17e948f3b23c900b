from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from croniter import croniter
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from nownext.utils.logging_helpers import sanitize_url_for_logging
from nownext.utils.timezone import TimestampPolicy


logger = logging.getLogger(__name__)


class CustomSettings(BaseSettings):
    """Application settings loaded from environment variables.

    Validates configuration at startup to catch misconfiguration early.
    """

    epg_source_url: str | None = None
    epg_cache_expiry_sec: float = 3600  # Freshness window
    epg_fetch_timeout_sec: float = 20
    epg_fetch_max_retries: int = 3
    epg_fetch_backoff_factor: float = 2.0
    epg_parse_timeout_sec: int = 60  # XML parsing timeout, 0 disables timeout
    epg_refresh_cron: str = "5 * * * *"  # Keep the cache warm; empty disables
    epg_refresh_misfire_grace_sec: int = 300
    epg_honor_utc_offset: bool = False
    epg_timezone: str | None = None  # IANA name; unset means system local time
    epg_sort_programs: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("epg_source_url", mode="before")
    @classmethod
    def parse_source_url(cls, value):
        """Treat blank values as unset."""
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    @field_validator("epg_source_url", mode="after")
    @classmethod
    def validate_source_url(cls, value):
        """Validate EPG source URL is HTTP/HTTPS."""
        if value and not value.lower().startswith(("http://", "https://")):
            raise ValueError(f"EPG source URL must be HTTP/HTTPS: {sanitize_url_for_logging(value)}")
        return value

    @field_validator("epg_cache_expiry_sec", "epg_fetch_timeout_sec")
    @classmethod
    def validate_positive_floats(cls, value: float, info) -> float:
        """Ensure durations are positive."""
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value

    @field_validator("epg_fetch_max_retries")
    @classmethod
    def validate_max_retries(cls, value: int) -> int:
        """At least one attempt is always made."""
        if value < 1:
            raise ValueError("epg_fetch_max_retries must be >= 1")
        return value

    @field_validator("epg_fetch_backoff_factor")
    @classmethod
    def validate_backoff_factor(cls, value: float) -> float:
        if value < 0:
            raise ValueError("epg_fetch_backoff_factor must be >= 0")
        return value

    @field_validator("epg_parse_timeout_sec", "epg_refresh_misfire_grace_sec")
    @classmethod
    def validate_non_negative_ints(cls, value: int, info) -> int:
        """Validate timeouts and grace periods (seconds)."""
        if value < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return value

    @field_validator("epg_refresh_cron")
    @classmethod
    def validate_cron_expression(cls, value: str) -> str:
        """Validate cron expression is valid."""
        value = value.strip()
        if not value:
            return value
        try:
            croniter(value)
            return value
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Invalid cron expression '{value}': {exc}") from exc

    @field_validator("epg_timezone")
    @classmethod
    def validate_timezone(cls, value: str | None) -> str | None:
        """Validate timezone string"""
        if not value or value == "UTC":
            return value or None
        try:
            ZoneInfo(value)
            return value
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Invalid timezone: {value}. Must be a valid IANA timezone (e.g., 'Asia/Seoul') or 'UTC'")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalized = value.upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if normalized not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return normalized

    @model_validator(mode="after")
    def validate_epg_configuration(self):
        """Validate cross-field configuration."""
        if not self.epg_source_url:
            logger.warning(
                "No EPG source configured - schedule queries will report no data"
            )
        return self

    @property
    def timestamp_policy(self) -> TimestampPolicy:
        return TimestampPolicy(
            honor_utc_offset=self.epg_honor_utc_offset,
            timezone_name=self.epg_timezone
        )

    def __init__(self, **data):
        """Initialize settings and log configuration."""
        super().__init__(**data)

        logger.info("Configuration loaded:")
        logger.info(
            "  EPG Source: %s",
            sanitize_url_for_logging(self.epg_source_url) if self.epg_source_url else "not configured",
        )
        logger.info("  Cache Expiry: %ss", self.epg_cache_expiry_sec)
        logger.info(
            "  Fetch: timeout=%ss retries=%s backoff=%.1f",
            self.epg_fetch_timeout_sec,
            self.epg_fetch_max_retries,
            self.epg_fetch_backoff_factor,
        )
        logger.info(
            "  Parse Timeout: %s seconds",
            self.epg_parse_timeout_sec or "disabled",
        )
        logger.info("  Refresh Schedule: %s", self.epg_refresh_cron or "disabled")
        logger.info("  Honor UTC Offsets: %s", self.epg_honor_utc_offset)
        logger.info("  Schedule Timezone: %s", self.epg_timezone or "system local")
        logger.info("  Sort Programs: %s", self.epg_sort_programs)


settings = CustomSettings()


def setup_logging() -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
