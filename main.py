import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import admin_router, settings_router, suggest_router
from config.settings import get_settings
from core.clients.redis import check_redis_connection, close_redis, get_redis
from core.clients.supabase import check_database_connection
from core.error_handlers import register_exception_handlers
from services.suggestion_orchestrator import create_orchestrator
from services.suggestion_queue import SuggestionQueue
from services.suggestion_worker import SuggestionWorker

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    worker_task = None
    worker = None

    if settings.suggestion_mode == "queued" and settings.start_worker:
        redis = get_redis()
        worker = SuggestionWorker(SuggestionQueue(redis), create_orchestrator(redis))
        worker_task = asyncio.create_task(worker.run())
        logger.info("In-process suggestion worker started")

    logger.info(f"Application startup complete (mode={settings.suggestion_mode})")
    yield

    if worker is not None:
        worker.stop()
        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            pass
    await close_redis()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(title="Marketplace Reply Suggestions", lifespan=lifespan)

    logger.info(f"Configured CORS for origins: {settings.cors_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
    )

    register_exception_handlers(app)

    app.include_router(suggest_router.router)
    app.include_router(settings_router.router)
    app.include_router(admin_router.router)

    @app.get("/")
    def read_root():
        return {"message": "Marketplace reply suggestion API", "mode": settings.suggestion_mode}

    @app.get("/health")
    async def health_check():
        database_ok = check_database_connection()
        redis_ok = await check_redis_connection()
        return {
            "status": "ok" if database_ok and redis_ok else "degraded",
            "database": database_ok,
            "redis": redis_ok,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
