"""
Structured logging helpers for consistent log formatting.
"""
import logging
from datetime import datetime, timezone

from nownext.models import ScheduleData


def sanitize_url_for_logging(url: str) -> str:
    """Remove credentials from URL for safe logging."""
    if not url or "://" not in url:
        return url
    try:
        protocol, rest = url.split("://", 1)
        if "@" in rest.split("/", 1)[0]:
            rest = rest.split("@", 1)[1]
            return f"{protocol}://***:***@{rest}"
        return url
    except (ValueError, IndexError):
        return url


def log_fetch_start(logger: logging.Logger, url: str) -> None:
    """Log schedule refresh start."""
    logger.info(
        f"EPG refresh started at {datetime.now(timezone.utc).isoformat()}: {sanitize_url_for_logging(url)}"
    )


def log_fetch_end(logger: logging.Logger, url: str) -> None:
    """Log schedule refresh end."""
    logger.info(
        f"EPG refresh completed at {datetime.now(timezone.utc).isoformat()}: {sanitize_url_for_logging(url)}"
    )


def log_schedule_summary(logger: logging.Logger, data: ScheduleData) -> None:
    """
    Log schedule snapshot summary.

    Args:
        logger: Logger instance
        data: Snapshot that was just cached
    """
    channel_ids = {program.channel for program in data.programs}
    unknown = channel_ids - set(data.channels)
    logger.info(
        f"Schedule summary - Channels: {len(data.channels)}, Programs: {len(data.programs)}, "
        f"Programme channels without <channel> entry: {len(unknown)}"
    )
