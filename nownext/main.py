from contextlib import asynccontextmanager
import asyncio
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from nownext.config import CustomSettings, settings, setup_logging
from nownext.exceptions import FetchError, ParseError, ScheduleError
from nownext.routers import main_router
from nownext.schemas import ErrorDetail, StandardErrorResponse
from nownext.services import ScheduleCache, ScheduleRefresher


setup_logging()
logger = logging.getLogger(__name__)


def build_schedule_cache(config: CustomSettings) -> ScheduleCache:
    """Construct the schedule cache from settings"""
    return ScheduleCache(
        config.epg_source_url,
        expiry_seconds=config.epg_cache_expiry_sec,
        fetch_timeout=config.epg_fetch_timeout_sec,
        max_retries=config.epg_fetch_max_retries,
        backoff_factor=config.epg_fetch_backoff_factor,
        parse_timeout_seconds=config.epg_parse_timeout_sec,
        sort_programs=config.epg_sort_programs,
        policy=config.timestamp_policy
    )


async def _warm_cache(cache: ScheduleCache) -> None:
    """Initial load at startup; failures are logged and left to the next request"""
    try:
        await cache.refresh()
    except ScheduleError as e:
        logger.error(f"Initial EPG load failed: {e}")
    except Exception as e:
        logger.error(f"Exception in initial EPG load: {e}", exc_info=True)


def create_app(
    cache: ScheduleCache | None = None,
    config: CustomSettings = settings,
    *,
    start_scheduler: bool = True,
    warm_cache: bool = True
) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        cache: Pre-built cache (tests inject one with a mock transport)
        config: Settings used when building the cache and scheduler
        start_scheduler: Start the background refresh job in the lifespan
        warm_cache: Load the schedule in the background at startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown events"""
        logger.info("Starting XMLTV Now/Next service...")

        schedule_cache = cache or build_schedule_cache(config)
        app.state.schedule_cache = schedule_cache
        app.state.refresher = None

        if start_scheduler and config.epg_refresh_cron and schedule_cache.source_url:
            refresher = ScheduleRefresher(
                schedule_cache,
                config.epg_refresh_cron,
                config.epg_refresh_misfire_grace_sec
            )
            try:
                refresher.start()
            except Exception as e:
                logger.error(f"Failed to start scheduler: {e}", exc_info=True)
                raise
            app.state.refresher = refresher

        app.state.warmup = None
        if warm_cache and schedule_cache.source_url:
            app.state.warmup = asyncio.create_task(_warm_cache(schedule_cache))

        logger.info("XMLTV Now/Next service started")

        yield

        logger.info("Shutting down XMLTV Now/Next service...")
        if app.state.warmup is not None and not app.state.warmup.done():
            app.state.warmup.cancel()
        if app.state.refresher is not None:
            try:
                app.state.refresher.shutdown()
            except Exception as e:
                logger.error(f"Error during scheduler shutdown: {e}", exc_info=True)
        logger.info("XMLTV Now/Next service stopped")

    app = FastAPI(
        title="XMLTV Now/Next",
        version="0.1.0",
        lifespan=lifespan
    )

    app.include_router(main_router)

    @app.exception_handler(ScheduleError)
    async def schedule_exception_handler(request: Request, exc: ScheduleError):
        """No schedule data available: fetch or parse failed"""
        if isinstance(exc, FetchError):
            code = "FETCH_FAILED"
        elif isinstance(exc, ParseError):
            code = "PARSE_FAILED"
        else:
            code = "SCHEDULE_UNAVAILABLE"
        logger.warning(f"{request.method} {request.url.path}: no schedule data ({code}): {exc}")

        body = StandardErrorResponse(
            timestamp=datetime.now(timezone.utc).isoformat(),
            error=ErrorDetail(code=code, message=str(exc))
        )
        return JSONResponse(status_code=503, content=body.model_dump())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Log validation errors with details"""
        logger.error(f"Validation error for {request.method} {request.url.path}")
        logger.error(f"Validation details: {exc.errors()}")

        # Create a properly serializable error response
        errors = []
        for error in exc.errors():
            error_dict = {
                "type": error.get("type"),
                "loc": error.get("loc"),
                "msg": error.get("msg"),
                "input": str(error.get("input", ""))[:100]
            }
            errors.append(error_dict)

        return JSONResponse(
            status_code=422,
            content={
                "detail": errors
            }
        )

    return app


app = create_app()
