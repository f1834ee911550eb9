from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from telecare.core.config import settings
from telecare.core.exceptions import register_exception_handlers
from telecare.api.v1.api import api_router
from telecare.infrastructure.database import init_db, close_db
from telecare.infrastructure.redis import init_redis_services, close_redis_services, redis_manager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    if settings.REDIS_ENABLED:
        try:
            await init_redis_services(settings.REDIS_URL)
        except Exception as e:
            logger.warning(f"Redis unavailable, booking slot locks disabled: {e}")
    yield
    if redis_manager.is_connected:
        await close_redis_services()
    await close_db()


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Set all CORS enabled origins
if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

register_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health")
async def health_check():
    if not redis_manager.is_connected:
        redis_status = "disabled"
    elif await redis_manager.is_healthy():
        redis_status = "connected"
    else:
        redis_status = "unreachable"
    return {"status": "ok", "redis": redis_status}
