"""
Schedule document model

Immutable value types produced by the XMLTV parser and read by the query service.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Callable, Iterable, Mapping


@dataclass(frozen=True, slots=True)
class Channel:
    """XMLTV channel with its display names in document order"""
    id: str
    display_names: tuple[str, ...] = ()

    @property
    def primary_name(self) -> str:
        return self.display_names[0] if self.display_names else self.id


@dataclass(frozen=True, slots=True)
class Program:
    """XMLTV programme; start/stop keep the raw document text"""
    channel: str
    start: str
    stop: str
    title: str
    description: str | None = None
    categories: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if self.categories is not None:
            # Empty collection means "absent"
            normalized = tuple(self.categories) or None
            object.__setattr__(self, "categories", normalized)


@dataclass(frozen=True, slots=True)
class ScheduleData:
    """
    Parsed schedule snapshot

    Channels are keyed by XMLTV id. Programs stay in document order and are
    never re-sorted unless sorted_by_start() is called explicitly.
    """
    channels: Mapping[str, Channel] = field(default_factory=dict)
    programs: tuple[Program, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "channels", MappingProxyType(dict(self.channels)))
        object.__setattr__(self, "programs", tuple(self.programs))

    def programs_for_channel(self, channel_id: str) -> list[Program]:
        return [program for program in self.programs if program.channel == channel_id]

    def __getitem__(self, channel_id: str) -> list[Program]:
        return self.programs_for_channel(channel_id)

    def sorted_by_start(self, decode: Callable[[str], datetime | None]) -> ScheduleData:
        """
        Return a copy with each channel's programs ordered by decoded start

        The sort is stable. Programs whose start cannot be decoded keep their
        relative order and go after the decodable ones.
        """
        def sort_key(indexed: tuple[int, Program]) -> tuple:
            index, program = indexed
            start = decode(program.start)
            if start is None:
                return (program.channel, 1, 0.0, index)
            return (program.channel, 0, start.timestamp(), index)

        ordered = [program for _, program in sorted(enumerate(self.programs), key=sort_key)]
        return ScheduleData(channels=self.channels, programs=_interleave_like(self.programs, ordered))


def _interleave_like(original: Iterable[Program], ordered: list[Program]) -> tuple[Program, ...]:
    """Put sorted per-channel programs back into the slots each channel used originally"""
    per_channel: dict[str, list[Program]] = {}
    for program in ordered:
        per_channel.setdefault(program.channel, []).append(program)

    cursors = {channel_id: iter(programs) for channel_id, programs in per_channel.items()}
    return tuple(next(cursors[program.channel]) for program in original)


__all__ = ["Channel", "Program", "ScheduleData"]
