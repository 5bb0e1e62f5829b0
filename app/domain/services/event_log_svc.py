import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Set

from redis.asyncio import Redis

from app.core.errors import EventNotFoundError
from app.domain.models.event import ClickAttribution, RecommendationEvent
from app.utils.locks import RedisLock

logger = logging.getLogger(__name__)


class EventLogger:
    """
    Persists served recommendation sets and attributes clicks to them.

    Writes run as tracked background tasks so the response never waits on the
    event store. A failed insert is queued on a Redis list and re-inserted by
    `drain_pending`; inserts are keyed on event_id, so a replay never duplicates.
    """

    def __init__(
        self,
        *,
        event_repo,
        redis: Optional[Redis] = None,
        retry_key: str = "reco:events:pending",
        lock_ttl: int = 30,
    ):
        self.event_repo = event_repo
        self.redis = redis
        self.retry_key = retry_key
        self.lock_ttl = lock_ttl
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------ served

    def log_served(self, event: RecommendationEvent) -> asyncio.Task:
        """Fire-and-forget: schedule the insert and return immediately."""
        task = asyncio.create_task(self._persist(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _persist(self, event: RecommendationEvent) -> None:
        try:
            inserted = await self.event_repo.insert(event)
            logger.debug("event stored event_id=%s new=%s", event.event_id, inserted)
        except Exception as e:
            logger.warning("event insert failed event_id=%s err=%s", event.event_id, e)
            await self._enqueue(event)

    async def _enqueue(self, event: RecommendationEvent) -> None:
        payload = event.model_dump_json()
        if self.redis is None:
            logger.error("event dropped (no retry queue) payload=%s", payload)
            return
        try:
            await self.redis.rpush(self.retry_key, payload)
            logger.info("event queued for retry event_id=%s", event.event_id)
        except Exception as e:
            logger.error("event dropped (retry queue unavailable) err=%s payload=%s", e, payload)

    async def drain_pending(self, max_items: int = 500) -> int:
        """
        Re-insert queued events. Stops at the first failure (the event goes back
        to the head of the queue). Returns the number of events stored.
        """
        if self.redis is None:
            return 0
        lock = RedisLock(self.redis, f"{self.retry_key}:drain", ttl=self.lock_ttl)
        if not await lock.acquire():
            logger.debug("event drain skipped: another worker holds the lock")
            return 0

        stored = 0
        try:
            for _ in range(max_items):
                raw = await self.redis.lpop(self.retry_key)
                if raw is None:
                    break
                try:
                    event = RecommendationEvent.model_validate_json(raw)
                except ValueError as e:
                    logger.error("event drain discarded unreadable payload err=%s payload=%s", e, raw)
                    continue
                try:
                    await self.event_repo.insert(event)
                except Exception as e:
                    logger.warning("event drain insert failed event_id=%s err=%s", event.event_id, e)
                    await self.redis.lpush(self.retry_key, raw)
                    break
                stored += 1
        finally:
            await lock.release()

        if stored:
            logger.info("event drain stored=%s", stored)
        return stored

    async def aclose(self) -> None:
        """Wait for in-flight writes (shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------ clicks

    async def log_click(
        self,
        *,
        user_id: str,
        clicked_product_id: str,
        experiment: str,
        event_id: Optional[str] = None,
    ) -> ClickAttribution:
        """
        Attach a click to a served recommendation (first click wins).

        Targets `event_id` when given, otherwise the user's most recent event for
        `experiment`. Repeating the same click is a no-op; a click on another
        product never replaces an existing attribution.

        The most recent event is picked whether or not it was already clicked: a
        later click on a clicked set is ignored and never falls through to an
        older unclicked set.
        """
        if event_id:
            event = await self.event_repo.get(event_id)
            if event is None or event.user_id != user_id:
                raise EventNotFoundError(user_id, event_id)
        else:
            event = await self.event_repo.find_latest(user_id, experiment)
            if event is None:
                raise EventNotFoundError(user_id)

        if event.clicked_product_id is None:
            updated = await self.event_repo.attach_click(
                event.event_id, clicked_product_id, datetime.now(timezone.utc)
            )
            if updated is not None:
                logger.info(
                    "click attributed event_id=%s user_id=%s product_id=%s",
                    event.event_id, user_id, clicked_product_id,
                )
                return ClickAttribution(event_id=event.event_id, attributed=True, clicked_product_id=clicked_product_id)
            # Lost the race to a concurrent click: report what was stored
            event = await self.event_repo.get(event.event_id)
            if event is None:
                raise EventNotFoundError(user_id, event_id)

        same = event.clicked_product_id == clicked_product_id
        if not same:
            logger.info(
                "click ignored (already attributed) event_id=%s existing=%s new=%s",
                event.event_id, event.clicked_product_id, clicked_product_id,
            )
        return ClickAttribution(event_id=event.event_id, attributed=same, clicked_product_id=event.clicked_product_id)
