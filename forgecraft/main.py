"""
ForgeCraft API - AI Code Generation for Minecraft Plugins and Discord Bots
FastAPI Backend Entry Point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from forgecraft.core.config import settings
from forgecraft.core.database import SessionLocal, init_db
from forgecraft.core.redis import get_redis_manager, redis_health_check
from forgecraft.api import files, generate, jobs, tokens
from forgecraft.services.generation import GenerationOrchestrator

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info(f"Starting {settings.APP_NAME}...")
    init_db()
    logger.info("Database tables created")

    db = SessionLocal()
    try:
        GenerationOrchestrator(db).recover_stalled_jobs(settings.STALLED_JOB_MAX_AGE_MINUTES)
    finally:
        db.close()

    yield
    logger.info(f"Shutting down {settings.APP_NAME}...")
    get_redis_manager().close()


app = FastAPI(
    title=settings.APP_NAME,
    description="Turns natural-language prompts into Minecraft plugin and Discord bot projects",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(generate.router, prefix="/api/v1", tags=["Generation"])
app.include_router(jobs.router, prefix="/api/v1", tags=["Jobs"])
app.include_router(files.router, prefix="/api/v1", tags=["Files"])
app.include_router(tokens.router, prefix="/api/v1/tokens", tags=["Tokens"])


@app.get("/api/v1/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint for monitoring.
    Reports database and Redis status; generation needs both.
    """
    status = {
        "status": "healthy",
        "version": API_VERSION,
        "services": {},
    }

    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        status["services"]["database"] = "ok"
    except Exception as e:
        status["services"]["database"] = f"error: {e}"
        status["status"] = "degraded"
    finally:
        db.close()

    redis_status = redis_health_check()
    if redis_status.get("connected"):
        status["services"]["redis"] = "ok"
        status["services"]["redis_version"] = redis_status.get("redis_version")
    else:
        status["services"]["redis"] = f"error: {redis_status.get('error', 'not connected')}"
        status["status"] = "degraded"

    return status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": "ForgeCraft API - AI code generation",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
