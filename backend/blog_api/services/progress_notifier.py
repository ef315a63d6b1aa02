"""Publish import progress on per-job Redis channels for SSE listeners."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from datetime import timedelta

from pydantic import ValidationError
from redis import Redis
from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

from blog_api.api.schemas.import_job import ProgressEvent

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "imports:progress:"
SNAPSHOT_PREFIX = "imports:progress:snapshot:"
SNAPSHOT_TTL = timedelta(hours=24)


def channel_for(job_id: str) -> str:
    return f"{CHANNEL_PREFIX}{job_id}"


def snapshot_key(job_id: str) -> str:
    return f"{SNAPSHOT_PREFIX}{job_id}"


def _decode(raw: bytes | str | None) -> ProgressEvent | None:
    if not raw:
        return None
    try:
        return ProgressEvent.model_validate_json(raw)
    except ValidationError:
        logger.warning(f"Discarding malformed progress payload: {raw!r}")
        return None


class ProgressNotifier:
    """Fire-and-forget progress pushes; Redis outages never fail an import."""

    def __init__(self, redis_client: Redis):
        self._redis = redis_client

    def notify(self, event: ProgressEvent) -> None:
        payload = event.model_dump_json()
        try:
            self._redis.set(
                snapshot_key(event.job_id),
                payload,
                ex=int(SNAPSHOT_TTL.total_seconds()),
            )
            self._redis.publish(channel_for(event.job_id), payload)
        except RedisError as e:
            logger.warning(f"Failed to push progress for import job {event.job_id}: {e}")

    def latest(self, job_id: str) -> ProgressEvent | None:
        """Return the last pushed event, if it is still cached."""
        try:
            raw = self._redis.get(snapshot_key(job_id))
        except RedisError as e:
            logger.warning(f"Failed to read progress snapshot for import job {job_id}: {e}")
            return None
        return _decode(raw)


class ProgressSubscriber:
    """Async listener for one job's channel, used by the streaming endpoint."""

    def __init__(self, redis_client: AsyncRedis, poll_timeout: float = 5.0):
        self._redis = redis_client
        self._poll_timeout = poll_timeout

    async def listen(self, job_id: str) -> AsyncIterator[ProgressEvent]:
        """Yield the cached snapshot, then live events until a terminal status.

        Subscribes before reading the snapshot so an event published in
        between is not lost; duplicates of the snapshot are skipped.
        """
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel_for(job_id))
        try:
            last = _decode(await self._redis.get(snapshot_key(job_id)))
            if last is not None:
                yield last
                if last.status.is_terminal:
                    return

            while True:
                message = await pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=self._poll_timeout
                )
                if message is None:
                    continue
                event = _decode(message.get("data"))
                if event is None or event == last:
                    continue
                last = event
                yield event
                if event.status.is_terminal:
                    return
        finally:
            await pubsub.unsubscribe(channel_for(job_id))
            await pubsub.aclose()

    async def aclose(self) -> None:
        await self._redis.aclose()
