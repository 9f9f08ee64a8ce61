"""PointValueConsumer: drains the point value stream into the AlarmNotifier.

Reads the Redis Stream POINT_VALUES_STREAM through consumer group
POINT_VALUES_GROUP. Entries are processed one at a time in stream order and
acknowledged (XACK) only after their transaction committed. The consumer group
is (re)created inside the retry loop, so a Redis outage at startup or a
deleted group only delays processing. On a store error
the batch stops, the failed entry stays pending and the consumer re-reads its
own pending entries ("0") before asking for new ones (">").
"""
import asyncio
import logging

from redis.asyncio import Redis
from redis.exceptions import ResponseError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.exceptions import AlarmStoreError, PointValueError
from services.alarm_notifier import AlarmNotifier, PointValueEvent

logger = logging.getLogger("scada.point_value_consumer")


def _decode(value):
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


class PointValueConsumer:

    def __init__(
        self,
        redis: Redis,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: AlarmNotifier | None = None,
        *,
        stream: str = "points:values",
        group: str = "plc_alarms",
        consumer: str = "alarm-notifier-1",
        batch_size: int = 50,
        block_ms: int = 5000,
        retry_delay: float = 2.0,
    ):
        self.redis = redis
        self.session_factory = session_factory
        self.notifier = notifier or AlarmNotifier()
        self.stream = stream
        self.group = group
        self.consumer = consumer
        self.batch_size = batch_size
        self.block_ms = block_ms
        self.retry_delay = retry_delay
        self._running = False

    async def start(self) -> None:
        self._running = True
        logger.info(
            "PointValueConsumer started (stream=%s group=%s consumer=%s)",
            self.stream, self.group, self.consumer,
        )
        await self._consume()

    async def stop(self) -> None:
        self._running = False
        logger.info("PointValueConsumer stopped")

    # ------------------------------------------------------------------
    async def _ensure_group(self) -> None:
        try:
            await self.redis.xgroup_create(self.stream, self.group, id="0", mkstream=True)
            logger.info("Created consumer group '%s' on '%s'", self.group, self.stream)
        except ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise
            logger.debug("Consumer group '%s' already exists", self.group)

    async def _consume(self) -> None:
        group_ready = False
        # Own pending entries first: anything delivered but never acked
        backlog = True
        while self._running:
            try:
                if not group_ready:
                    await self._ensure_group()
                    group_ready = True
                entries = await self._read(backlog)
                if backlog and not entries:
                    backlog = False
                    continue
                await self.process_entries(entries)
            except asyncio.CancelledError:
                break
            except AlarmStoreError as exc:
                logger.error(
                    "PointValueConsumer store error: %s %s, retry in %.1fs",
                    exc.message, exc.detail or "", self.retry_delay,
                )
                backlog = True
                await asyncio.sleep(self.retry_delay)
            except Exception as exc:
                # Connection loss or a deleted stream/group (NOGROUP): recreate on retry
                logger.error(
                    "PointValueConsumer stream error: %s, retry in %.1fs",
                    exc, self.retry_delay,
                )
                group_ready = False
                backlog = True
                await asyncio.sleep(self.retry_delay)

    async def _read(self, backlog: bool) -> list:
        if backlog:
            resp = await self.redis.xreadgroup(
                self.group, self.consumer, {self.stream: "0"}, count=self.batch_size,
            )
        else:
            resp = await self.redis.xreadgroup(
                self.group, self.consumer, {self.stream: ">"},
                count=self.batch_size, block=self.block_ms,
            )
        if not resp:
            return []
        _stream, entries = resp[0]
        return entries

    async def process_entries(self, entries: list) -> int:
        """Handle entries in order; stops at the first store error. Returns acked count."""
        done = 0
        for entry_id, fields in entries:
            await self.handle(entry_id, fields)
            done += 1
        return done

    async def handle(self, entry_id, fields) -> None:
        if not fields:
            # Entry trimmed from the stream while pending
            await self.redis.xack(self.stream, self.group, entry_id)
            return

        decoded = {_decode(k): _decode(v) for k, v in fields.items()}
        try:
            event = PointValueEvent.from_fields(decoded)
        except PointValueError:
            logger.warning("Malformed point value entry %s dropped: %r", _decode(entry_id), decoded)
            await self.redis.xack(self.stream, self.group, entry_id)
            return

        async with self.session_factory() as session:
            try:
                await self.notifier.notify(session, event)
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                raise AlarmStoreError(
                    "Failed to commit alarm transition",
                    detail={"point_id": event.point_id, "ts": event.ts},
                ) from exc
            except AlarmStoreError:
                await session.rollback()
                raise

        await self.redis.xack(self.stream, self.group, entry_id)
