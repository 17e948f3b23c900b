"""
Date and Time utilities

This module handles XMLTV timestamp decoding and the time zone used to compare
program boundaries with a reference instant. Decoding happens at query time only;
the parser keeps the raw document strings.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from functools import cached_property
from zoneinfo import ZoneInfo
import logging

logger = logging.getLogger(__name__)

XMLTV_TIME_FORMAT = "%Y%m%d%H%M%S"
XMLTV_TIME_LENGTH = 14


class DateFormatError(ValueError):
    """Raised when date format is invalid"""
    pass


def _normalize_iso8601_string(date_str: str) -> str:
    """Normalize ISO8601 string by replacing 'Z' with '+00:00'"""
    return date_str.replace('Z', '+00:00') if date_str.endswith('Z') else date_str


def parse_iso8601(date_str: str) -> datetime:
    """
    Parse an ISO8601 date string supplied by an API caller

    Naive values are returned unchanged; TimestampPolicy.normalize() reads them
    in the schedule time zone.

    Raises:
        DateFormatError: If the date string format is invalid
    """
    try:
        return datetime.fromisoformat(_normalize_iso8601_string(date_str))
    except (ValueError, AttributeError) as e:
        raise DateFormatError(f"Invalid ISO8601 datetime format: '{date_str}'") from e


def _parse_utc_offset(suffix: str) -> tzinfo | None:
    """Parse an XMLTV offset suffix like '+0200', '-0530' or 'Z'"""
    suffix = suffix.strip()
    if suffix in ("Z", "UTC", "GMT"):
        return timezone.utc
    if len(suffix) != 5 or suffix[0] not in "+-" or not suffix[1:].isdigit():
        return None

    sign = 1 if suffix[0] == '+' else -1
    hours = int(suffix[1:3])
    minutes = int(suffix[3:5])
    if hours > 23 or minutes > 59:
        return None
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


@dataclass(frozen=True)
class TimestampPolicy:
    """
    How XMLTV timestamps are turned into instants

    By default only the first 14 characters are read and interpreted as wall-clock
    time in ``timezone_name`` (system local time when unset); any offset suffix is
    ignored. With ``honor_utc_offset`` a valid ``±HHMM``/``Z`` suffix is applied
    instead, and only suffix-less values fall back to ``timezone_name``.
    """
    honor_utc_offset: bool = False
    timezone_name: str | None = None

    @cached_property
    def zone(self) -> tzinfo | None:
        if not self.timezone_name:
            return None
        if self.timezone_name.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.timezone_name)

    def localize(self, naive: datetime) -> datetime:
        """Attach the policy zone to a naive wall-clock value"""
        if self.zone is None:
            # astimezone() on a naive value uses the system local zone, DST included
            return naive.astimezone()
        return naive.replace(tzinfo=self.zone)

    def decode(self, raw: str | None) -> datetime | None:
        """
        Decode an XMLTV timestamp like '20260110200000 +0900'

        Returns:
            Timezone-aware datetime, or None when the value is undecodable
        """
        if not raw:
            return None

        head = raw[:XMLTV_TIME_LENGTH]
        if len(head) != XMLTV_TIME_LENGTH or not head.isdigit():
            return None

        try:
            naive = datetime.strptime(head, XMLTV_TIME_FORMAT)
        except ValueError:
            return None

        if self.honor_utc_offset:
            offset = _parse_utc_offset(raw[XMLTV_TIME_LENGTH:])
            if offset is not None:
                return naive.replace(tzinfo=offset)

        try:
            return self.localize(naive)
        except (OverflowError, OSError):
            return None

    def normalize(self, now: datetime | None) -> datetime:
        """Return an aware reference instant; naive values are read in the policy zone"""
        if now is None:
            return datetime.now(timezone.utc)
        if now.tzinfo is None:
            return self.localize(now)
        return now


DEFAULT_POLICY = TimestampPolicy()


__all__ = [
    "DEFAULT_POLICY",
    "DateFormatError",
    "TimestampPolicy",
    "parse_iso8601",
]
