"""
Schedule Query Service

Resolves the program airing now and the one airing next for a channel.
All functions are pure reads of a ScheduleData snapshot; a missing program is
returned as None, never raised.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable
import logging

from nownext.models import Program, ScheduleData
from nownext.utils.timezone import DEFAULT_POLICY, TimestampPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GuideEntry:
    """Caller-side channel: EPG id to look up plus an optional fallback name"""
    channel_id: str
    name: str | None = None


@dataclass(frozen=True, slots=True)
class NowNext:
    """Current and next program for a channel, as plain data"""
    channel_id: str
    channel_name: str
    current: Program | None = None
    current_start: datetime | None = None
    current_stop: datetime | None = None
    next: Program | None = None
    next_start: datetime | None = None
    progress: float | None = None


def resolve_channel_id(tvg_id: str | None, fallback_id: str) -> str:
    """Pick the EPG id of a playlist channel, falling back to its generic id"""
    if tvg_id and tvg_id.strip():
        return tvg_id.strip()
    return fallback_id


def current_program(
    data: ScheduleData,
    channel_id: str,
    now: datetime | None = None,
    *,
    policy: TimestampPolicy = DEFAULT_POLICY
) -> Program | None:
    """
    Get the program airing at ``now`` on a channel

    Start is inclusive, stop is exclusive. The first match in document order
    wins; programs with undecodable timestamps are skipped.
    """
    reference = policy.normalize(now)

    for program in data.programs_for_channel(channel_id):
        start = policy.decode(program.start)
        stop = policy.decode(program.stop)
        if start is None or stop is None:
            continue
        if start <= reference < stop:
            return program

    return None


def next_program(
    data: ScheduleData,
    channel_id: str,
    now: datetime | None = None,
    *,
    policy: TimestampPolicy = DEFAULT_POLICY
) -> Program | None:
    """
    Get the first program in document order that starts after ``now``

    Relies on the document listing each channel chronologically; nothing is re-sorted here.
    """
    reference = policy.normalize(now)

    for program in data.programs_for_channel(channel_id):
        start = policy.decode(program.start)
        if start is not None and start > reference:
            return program

    return None


def _progress(start: datetime, stop: datetime, now: datetime) -> float:
    """Elapsed fraction of a program, clamped to [0, 1]"""
    duration = (stop - start).total_seconds()
    if duration <= 0:
        return 0.0
    elapsed = (now - start).total_seconds()
    return max(0.0, min(1.0, elapsed / duration))


def now_next(
    data: ScheduleData,
    channel_id: str,
    now: datetime | None = None,
    *,
    channel_name: str | None = None,
    policy: TimestampPolicy = DEFAULT_POLICY
) -> NowNext:
    """
    Build the now/next summary for one channel

    Args:
        data: Schedule snapshot
        channel_id: XMLTV channel id
        now: Reference instant (defaults to the current time)
        channel_name: Name to show when the schedule has no such channel
        policy: Timestamp decoding policy

    Returns:
        NowNext with decoded instants and elapsed progress of the current program
    """
    reference = policy.normalize(now)

    channel = data.channels.get(channel_id)
    if channel is not None:
        name = channel.primary_name
    else:
        name = channel_name or channel_id

    current = current_program(data, channel_id, reference, policy=policy)
    upcoming = next_program(data, channel_id, reference, policy=policy)

    current_start = current_stop = None
    progress = None
    if current is not None:
        current_start = policy.decode(current.start)
        current_stop = policy.decode(current.stop)
        progress = _progress(current_start, current_stop, reference)

    return NowNext(
        channel_id=channel_id,
        channel_name=name,
        current=current,
        current_start=current_start,
        current_stop=current_stop,
        next=upcoming,
        next_start=policy.decode(upcoming.start) if upcoming is not None else None,
        progress=progress
    )


def build_guide(
    data: ScheduleData,
    entries: Iterable[GuideEntry],
    now: datetime | None = None,
    *,
    policy: TimestampPolicy = DEFAULT_POLICY
) -> list[NowNext]:
    """Now/next rows for a channel list, in the order given"""
    reference = policy.normalize(now)
    rows = [
        now_next(data, entry.channel_id, reference, channel_name=entry.name, policy=policy)
        for entry in entries
    ]
    logger.debug(
        "Built guide for %s channels at %s (%s with a current program)",
        len(rows),
        reference.isoformat(),
        sum(1 for row in rows if row.current is not None),
    )
    return rows
