from datetime import datetime
from typing import Annotated
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from nownext.schemas import (
    ChannelResponse,
    GuideRequest,
    GuideResponse,
    NowNextResponse,
)
from nownext.services import (
    GuideEntry,
    ScheduleCache,
    ScheduleRefresher,
    build_guide,
    now_next,
    resolve_channel_id,
)
from nownext.utils.timezone import DateFormatError, parse_iso8601


logger = logging.getLogger(__name__)

main_router = APIRouter()


def get_schedule_cache(request: Request) -> ScheduleCache:
    """Schedule cache owned by the application"""
    return request.app.state.schedule_cache


def get_refresher(request: Request) -> ScheduleRefresher | None:
    return getattr(request.app.state, "refresher", None)


def _reference_time(at: str | None) -> datetime | None:
    if at is None:
        return None
    try:
        return parse_iso8601(at)
    except DateFormatError as e:
        raise HTTPException(status_code=422, detail=str(e))


@main_router.get("/")
async def root(refresher: Annotated[ScheduleRefresher | None, Depends(get_refresher)]) -> dict:
    """Root endpoint with service information"""
    next_run = refresher.get_next_run_time() if refresher else None

    return {
        "service": "XMLTV Now/Next",
        "version": "0.1.0",
        "next_scheduled_refresh": next_run.isoformat() if next_run else None,
        "endpoints": {
            "channels": "/channels - Channels in the cached schedule",
            "now_next": "/channels/{channel_id}/now-next - Current and next program",
            "guide": "/guide - Now/next for a channel list (POST)",
            "health": "/health - Health check"
        }
    }


@main_router.get("/health")
async def health_check(
    cache: Annotated[ScheduleCache, Depends(get_schedule_cache)],
    refresher: Annotated[ScheduleRefresher | None, Depends(get_refresher)]
) -> dict:
    """Health check endpoint"""
    entry = cache.cached
    next_run = refresher.get_next_run_time() if refresher else None
    return {
        "status": "ok",
        "fetching": cache.is_fetching,
        "last_fetched": entry.fetched_at.isoformat() if entry else None,
        "channels": len(entry.data.channels) if entry else 0,
        "programs": len(entry.data.programs) if entry else 0,
        "next_refresh": next_run.isoformat() if next_run else None
    }


@main_router.get("/channels", response_model=list[ChannelResponse])
async def list_channels(
    cache: Annotated[ScheduleCache, Depends(get_schedule_cache)]
) -> list[ChannelResponse]:
    """Channels in the current schedule, in document order"""
    data = await cache.get_schedule()
    return [
        ChannelResponse(
            xmltv_id=channel.id,
            display_name=channel.primary_name,
            display_names=list(channel.display_names)
        )
        for channel in data.channels.values()
    ]


@main_router.get("/channels/{channel_id}/now-next", response_model=NowNextResponse)
async def get_now_next(
    channel_id: str,
    cache: Annotated[ScheduleCache, Depends(get_schedule_cache)],
    at: Annotated[str | None, Query(description="ISO8601 reference instant")] = None,
    name: Annotated[str | None, Query(description="Fallback channel name")] = None
) -> NowNextResponse:
    """Current and next program for one channel"""
    reference = _reference_time(at)
    data = await cache.get_schedule()
    row = now_next(data, channel_id, reference, channel_name=name, policy=cache.policy)
    return NowNextResponse.from_now_next(row)


@main_router.post("/guide", response_model=GuideResponse)
async def get_guide(
    request: GuideRequest,
    cache: Annotated[ScheduleCache, Depends(get_schedule_cache)]
) -> GuideResponse:
    """
    Now/next rows for a channel list

    Each channel is looked up by its XMLTV id, falling back to its generic id.
    """
    reference = cache.policy.normalize(_reference_time(request.at))
    data = await cache.get_schedule()

    entries = [
        GuideEntry(channel_id=resolve_channel_id(channel.xmltv_id, channel.id), name=channel.name)
        for channel in request.channels
    ]
    rows = build_guide(data, entries, reference, policy=cache.policy)
    logger.info(f"Guide request: {len(rows)} channels at {reference.isoformat()}")

    return GuideResponse(
        timestamp=reference,
        channels_requested=len(rows),
        channels_with_current=sum(1 for row in rows if row.current is not None),
        rows=[NowNextResponse.from_now_next(row) for row in rows]
    )
