from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from nownext.models import Program
from nownext.services.schedule_query_service import NowNext
from nownext.utils.timezone import parse_iso8601, DateFormatError


class ChannelResponse(BaseModel):
    """Channel data model"""
    xmltv_id: str = Field(..., description="Unique XMLTV channel ID")
    display_name: str = Field(..., description="Primary display name of the channel")
    display_names: list[str] = Field(default_factory=list, description="All display names in document order")


class ProgramResponse(BaseModel):
    """Single program data"""
    channel: str
    title: str
    description: str | None = None
    categories: list[str] | None = None
    start_raw: str = Field(..., description="Start timestamp as written in the XMLTV document")
    stop_raw: str = Field(..., description="Stop timestamp as written in the XMLTV document")

    @classmethod
    def from_program(cls, program: Program | None) -> "ProgramResponse | None":
        if program is None:
            return None
        return cls(
            channel=program.channel,
            title=program.title,
            description=program.description,
            categories=list(program.categories) if program.categories else None,
            start_raw=program.start,
            stop_raw=program.stop
        )


class NowNextResponse(BaseModel):
    """Current and next program for one channel"""
    channel_id: str
    channel_name: str
    current: ProgramResponse | None = None
    current_start: datetime | None = None
    current_stop: datetime | None = None
    next: ProgramResponse | None = None
    next_start: datetime | None = None
    progress: float | None = Field(None, description="Elapsed fraction of the current program, 0..1")

    @classmethod
    def from_now_next(cls, row: NowNext) -> "NowNextResponse":
        return cls(
            channel_id=row.channel_id,
            channel_name=row.channel_name,
            current=ProgramResponse.from_program(row.current),
            current_start=row.current_start,
            current_stop=row.current_stop,
            next=ProgramResponse.from_program(row.next),
            next_start=row.next_start,
            progress=row.progress
        )


class GuideChannelRequest(BaseModel):
    """Playlist channel to show in the guide"""
    id: str = Field(..., min_length=1, description="Generic channel ID, used when xmltv_id is absent")
    xmltv_id: str | None = Field(None, description="Channel XMLTV ID (tvg-id)")
    name: str | None = Field(None, description="Name shown when the schedule has no such channel")


class GuideRequest(BaseModel):
    """Guide request for a channel list"""
    channels: list[GuideChannelRequest] = Field(..., min_length=1, description="List of channels")
    at: str | None = Field(None, description="ISO8601 reference instant (defaults to now)")

    @field_validator('at')
    @classmethod
    def validate_date_format(cls, v: str | None) -> str | None:
        """Validate ISO8601 datetime format using centralized parser"""
        if v is None:
            return v
        try:
            parse_iso8601(v)
            return v
        except DateFormatError:
            raise ValueError(f"Invalid datetime format: {v}. Must be valid ISO8601 format (e.g., '2026-01-10T20:00:00+09:00')")


class GuideResponse(BaseModel):
    """Guide rows in request order"""
    timestamp: datetime
    channels_requested: int
    channels_with_current: int
    rows: list[NowNextResponse]


class ErrorDetail(BaseModel):
    """Standard error detail"""
    code: str = Field(..., description="Error code (e.g., 'FETCH_FAILED', 'PARSE_FAILED')")
    message: str = Field(..., description="Human-readable error message")
    context: dict | None = Field(None, description="Additional context about the error")


class StandardErrorResponse(BaseModel):
    """Standardized error response for all endpoints"""
    status: str = Field("error", description="Status indicator")
    timestamp: str = Field(..., description="ISO8601 timestamp of error")
    error: ErrorDetail = Field(..., description="Error details")
