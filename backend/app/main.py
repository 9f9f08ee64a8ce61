import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis

from config import settings
from core.exceptions import register_exception_handlers
from models import async_session, engine
from api.alarms import router as alarms_router, notifier
from services.point_value_consumer import PointValueConsumer

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("scada.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("PLC alarm backend starting... DEBUG=%s", settings.DEBUG)

    redis = None
    consumer = None
    consumer_task = None
    if settings.CONSUMER_ENABLED:
        redis = Redis.from_url(settings.REDIS_URL, decode_responses=False)
        app.state.redis = redis
        logger.info("Redis connected: %s", settings.REDIS_URL)

        consumer = PointValueConsumer(
            redis, async_session, notifier,
            stream=settings.POINT_VALUES_STREAM,
            group=settings.POINT_VALUES_GROUP,
            consumer=settings.POINT_VALUES_CONSUMER,
            batch_size=settings.CONSUMER_BATCH_SIZE,
            block_ms=settings.CONSUMER_BLOCK_MS,
            retry_delay=settings.CONSUMER_RETRY_DELAY,
        )
        app.state.point_value_consumer = consumer
        consumer_task = asyncio.create_task(consumer.start())
    else:
        logger.info("Point value consumer DISABLED (CONSUMER_ENABLED=false)")

    yield

    # Shutdown
    logger.info("PLC alarm backend shutting down...")
    if consumer:
        await consumer.stop()
    if consumer_task:
        consumer_task.cancel()
        try:
            await consumer_task
        except asyncio.CancelledError:
            pass
        except Exception as exc:
            logger.error("Point value consumer exited with error: %s", exc)
    if redis:
        await redis.close()
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(
    title="SCADA PLC Alarms API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(alarms_router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": "0.1.0"}
