from contextlib import asynccontextmanager

import redis.asyncio as redis
import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from monkmode.config import settings
from monkmode.database import engine
from monkmode.middleware.error_handler import register_error_handlers
from monkmode.middleware.rate_limit import RateLimitMiddleware
from monkmode.realtime.connection_manager import ConnectionManager
from monkmode.routers.friendships import router as friendships_router
from monkmode.routers.notifications import router as notifications_router
from monkmode.services.notification_service import HubNotificationSink

# Initialize Sentry
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=0.2 if settings.ENVIRONMENT == "production" else 1.0,
        send_default_pii=False,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: verify DB connection and connect Redis
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))

    app.state.redis = redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    await app.state.redis.ping()

    yield

    # Shutdown
    await app.state.notifier.drain()
    await app.state.redis.close()
    await engine.dispose()


app = FastAPI(
    title="Monk Mode API",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.connection_manager = ConnectionManager()
app.state.notifier = HubNotificationSink(app.state.connection_manager)

app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(friendships_router)
app.include_router(notifications_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
