# app/core/lifespan.py
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from app.db import mongo, redis as r
from app.core.config import get_settings
from app.domain.repositories.event_repo import EventRepo
from app.domain.services.event_log_svc import EventLogger

logger = logging.getLogger(__name__)


async def _drain_loop(event_logger: EventLogger, interval_s: int) -> None:
    """Periodically replay recommendation events whose first write failed."""
    while True:
        try:
            await event_logger.drain_pending()
        except Exception as e:
            logger.warning("event drain round failed: %s", e)
        await asyncio.sleep(interval_s)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # --- Startup ---
    # Mongo is required
    try:
        await mongo.connect()
    except Exception as e:
        logger.error("❌ Mongo connection failed: %s", e)
        raise

    # Redis is optional
    await r.connect()

    event_logger = EventLogger(
        event_repo=EventRepo(mongo.get_db()),
        redis=r.get_redis(),
        retry_key=settings.events_retry_key,
    )
    app.state.event_logger = event_logger
    drain_task = asyncio.create_task(_drain_loop(event_logger, settings.events_retry_interval_s))

    # Application runs
    yield

    # --- Shutdown ---
    drain_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await drain_task
    await event_logger.aclose()

    try:
        await r.disconnect()
    except Exception as e:
        logger.warning("Redis disconnect failed: %s", e)

    await mongo.disconnect()
    logger.info("🔌 Mongo disconnected")
