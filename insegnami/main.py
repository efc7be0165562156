from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import time

from .core.cache import CacheManager
from .core.config import settings
from .core.database import Database
from .core.error_handlers import register_exception_handlers
from .core.logging import setup_logging
from .core.queue import JobQueue
from .routers import (
    attendance, auth, classes, dashboard, health, lessons, messages,
    notices, notifications, payments, students, teachers, users
)
from .worker import celery_app

logger = logging.getLogger(__name__)

ROUTERS = (
    health, auth, users, students, teachers, classes, lessons,
    attendance, payments, notices, notifications, messages, dashboard,
)

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"Starting InsegnaMi API {settings.app_version} ({settings.environment})")

    app.state.db = Database.from_settings(settings)
    app.state.cache = CacheManager.from_url(settings.redis_url)
    app.state.queue = JobQueue(celery_app)
    logger.info("Database, cache and job queue initialized")

    yield

    logger.info("Shutting down InsegnaMi API")
    await app.state.cache.close()
    app.state.queue.close()
    await app.state.db.dispose()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(
        title="InsegnaMi API - Multi-tenant School Management",
        description="Students, teachers, classes, lessons, attendance, payments and communications per school",
        version=settings.app_version,
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        logger.info(f"{request.method} {request.url.path} - {response.status_code} - {process_time:.3f}s")
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=3600,
    )

    register_exception_handlers(app)

    for module in ROUTERS:
        app.include_router(module.router)

    @app.get("/")
    async def root():
        return {
            "message": "InsegnaMi API",
            "version": settings.app_version,
            "status": "active",
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("insegnami.main:app", host="0.0.0.0", port=8000, reload=True)
