from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from droptracker.api import ecredits, flights, health, notifications, tasks, users
from droptracker.config import get_settings
from droptracker.database import init_db
from droptracker.scheduler import start_scheduler, stop_scheduler

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting Droptracker")

    logger.info("Creating tables if needed")
    init_db()

    if settings.scheduler_enabled:
        try:
            start_scheduler()
            logger.info("✅ APScheduler started")
        except Exception as e:
            logger.error(f"❌ Scheduler startup failed: {e}")
    else:
        logger.info("Scheduler disabled; batch passes run only via /tasks")

    yield

    logger.info("🛑 Shutting down Droptracker")
    try:
        stop_scheduler()
    except Exception as e:
        logger.error(f"❌ Shutdown error: {e}")


app = FastAPI(
    title="Droptracker",
    description="Flight fare-drop tracker with automatic ecredit requests",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["health"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(flights.router, prefix="/api/flights", tags=["flights"])
app.include_router(ecredits.router, prefix="/api/ecredits", tags=["ecredits"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])
app.include_router(tasks.router, prefix="/tasks", tags=["tasks"])


@app.get("/ping")
async def ping():
    """Simple ping endpoint for health checks."""
    return {"status": "ok"}
