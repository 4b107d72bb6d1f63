import logging
import subprocess
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.attendance import router as attendance_router
from app.core.config import settings
from app.db.session import get_db

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

_BACKEND_DIR = Path(__file__).resolve().parent.parent


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run Alembic migrations on startup."""
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        logger.info("Running Alembic migrations...")
        try:
            result = subprocess.run(
                ["alembic", "upgrade", "head"],
                capture_output=True,
                text=True,
                cwd=_BACKEND_DIR,
            )
            if result.returncode != 0:
                logger.error("Alembic migration failed:\n%s", result.stderr)
            else:
                logger.info("Migrations applied successfully:\n%s", result.stdout)
        except Exception as exc:
            logger.exception("Failed to run migrations: %s", exc)

    logger.info("Attendance evaluator ready (local timezone: %s)", settings.LOCAL_TIMEZONE)

    yield

    logger.info("Shutting down SADA attendance backend.")


app = FastAPI(
    title="SADA Attendance API",
    description="Evaluates employee punches against assigned work schedules and records attendance incidents.",
    version="0.3.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(attendance_router, prefix="/api/attendance", tags=["Attendance"])


@app.get("/health", tags=["System"])
async def health_check() -> dict:
    return {"status": "ok", "service": "SADA backend"}


@app.get("/db-health", tags=["System"])
async def db_health_check(db: AsyncSession = Depends(get_db)) -> dict:
    result = await db.execute(text("SELECT NOW() AS now, current_database() AS db"))
    row = result.mappings().one()
    return {"status": "ok", "now": row["now"].isoformat(), "db": row["db"]}
