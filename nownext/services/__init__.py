"""
Services package for the now/next service

This package contains the parser, query, cache and scheduler components.
"""
from nownext.services.schedule_cache_service import CacheEntry, ScheduleCache
from nownext.services.schedule_query_service import (
    GuideEntry,
    NowNext,
    build_guide,
    current_program,
    next_program,
    now_next,
    resolve_channel_id,
)
from nownext.services.scheduler_service import ScheduleRefresher
from nownext.services.xmltv_parser_service import parse_xmltv_async, parse_xmltv_bytes

__all__ = [
    'CacheEntry',
    'GuideEntry',
    'NowNext',
    'ScheduleCache',
    'ScheduleRefresher',
    'build_guide',
    'current_program',
    'next_program',
    'now_next',
    'parse_xmltv_async',
    'parse_xmltv_bytes',
    'resolve_channel_id',
]
