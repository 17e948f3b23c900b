"""
Schedule Cache Service

Fetch -> parse -> cache-with-expiry for one XMLTV source, with single-flight
refresh. Results are delivered on the caller's event loop: get_schedule() is a
coroutine, and request_schedule() invokes its callback via loop.call_soon on the
loop it was called from.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

import httpx

from nownext.exceptions import FetchError, ScheduleError
from nownext.models import ScheduleData
from nownext.services.fetch_coordinator import FetchCoordinator
from nownext.services.xmltv_parser_service import parse_xmltv_async
from nownext.utils.downloads import download_document
from nownext.utils.logging_helpers import (
    log_fetch_end,
    log_fetch_start,
    log_schedule_summary,
    sanitize_url_for_logging,
)
from nownext.utils.timezone import DEFAULT_POLICY, TimestampPolicy


logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_SECONDS = 3600.0


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Cached snapshot and when it was fetched; replaced as a unit"""
    source_url: str
    data: ScheduleData
    fetched_at: datetime
    fetched_monotonic: float


class ScheduleCache:
    """
    In-memory cache of one parsed XMLTV schedule.

    - Entries younger than ``expiry_seconds`` are served without network access.
    - Only one fetch + parse runs at a time; concurrent callers share it.
    - Failures are not cached: the previous entry stays untouched.
    """

    def __init__(
        self,
        source_url: str | None = None,
        *,
        expiry_seconds: float = DEFAULT_EXPIRY_SECONDS,
        fetch_timeout: float = 20.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
        parse_timeout_seconds: float | None = 60,
        sort_programs: bool = False,
        policy: TimestampPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.source_url = source_url
        self.expiry_seconds = expiry_seconds
        self.fetch_timeout = fetch_timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.parse_timeout_seconds = parse_timeout_seconds
        self.sort_programs = sort_programs
        self.policy = policy or DEFAULT_POLICY
        self._transport = transport
        self._clock = clock
        self._coordinator = FetchCoordinator()
        self._entry: CacheEntry | None = None

    @property
    def cached(self) -> CacheEntry | None:
        return self._entry

    @property
    def is_fetching(self) -> bool:
        return self._coordinator.is_fetching()

    def invalidate(self) -> None:
        """Drop the cached entry so the next call goes to the network"""
        self._entry = None

    def _fresh_entry(self, url: str) -> CacheEntry | None:
        entry = self._entry
        if entry is None or entry.source_url != url:
            return None
        if self._clock() - entry.fetched_monotonic >= self.expiry_seconds:
            return None
        return entry

    async def get_schedule(self, source_url: str | None = None) -> ScheduleData:
        """
        Get the schedule, fetching it when the cache is empty or stale

        Args:
            source_url: XMLTV URL; defaults to the URL the cache was built with

        Returns:
            Complete parsed ScheduleData

        Raises:
            FetchError: If the document cannot be downloaded
            ParseError: If the document cannot be parsed
        """
        url = source_url or self.source_url
        if not url:
            raise FetchError("No EPG source URL configured")

        entry = self._fresh_entry(url)
        if entry is not None:
            logger.debug("Serving cached schedule for %s", sanitize_url_for_logging(url))
            return entry.data

        return await self._coordinator.execute(url, lambda: self._refresh(url))

    async def refresh(self, source_url: str | None = None) -> ScheduleData:
        """
        Fetch the schedule even if the cached entry is still fresh

        Shares the single in-flight fetch with get_schedule(); a failure leaves
        the cached entry untouched.

        Raises:
            FetchError: If the document cannot be downloaded
            ParseError: If the document cannot be parsed
        """
        url = source_url or self.source_url
        if not url:
            raise FetchError("No EPG source URL configured")

        return await self._coordinator.execute(url, lambda: self._refresh(url, force=True))

    async def _refresh(self, url: str, *, force: bool = False) -> ScheduleData:
        # A fetch that finished while this one was queued may already cover the URL
        entry = None if force else self._fresh_entry(url)
        if entry is not None:
            return entry.data

        log_fetch_start(logger, url)
        try:
            content = await download_document(
                url,
                timeout=self.fetch_timeout,
                max_retries=self.max_retries,
                backoff_factor=self.backoff_factor,
                transport=self._transport
            )
            data = await parse_xmltv_async(content, parse_timeout_seconds=self.parse_timeout_seconds)
        except ScheduleError as exc:
            logger.error(
                "EPG refresh failed for %s: %s (keeping previous cache: %s)",
                sanitize_url_for_logging(url),
                exc,
                "yes" if self._entry is not None else "none",
            )
            raise

        if self.sort_programs:
            data = data.sorted_by_start(self.policy.decode)

        self._entry = CacheEntry(
            source_url=url,
            data=data,
            fetched_at=datetime.now(timezone.utc),
            fetched_monotonic=self._clock()
        )
        log_schedule_summary(logger, data)
        log_fetch_end(logger, url)
        return data

    def request_schedule(
        self,
        callback: Callable[[ScheduleData | None], None],
        source_url: str | None = None
    ) -> asyncio.Task:
        """
        Callback form of get_schedule()

        Must be called from a running event loop. The callback runs on that loop
        with the schedule, or with None when the fetch or parse failed.
        """
        loop = asyncio.get_running_loop()

        async def deliver() -> None:
            try:
                data = await self.get_schedule(source_url)
            except ScheduleError:
                data = None
            except Exception as e:
                logger.error(f"Unexpected error loading schedule: {e}", exc_info=True)
                data = None
            loop.call_soon(callback, data)

        return loop.create_task(deliver())
