"""FastAPI application entry point — wires the lifecycle core together.

Usage:
    python -m skillswap.main

Serves the health check. Lifecycle operations are called in-process through
``skillswap.sessions.service.session_service``.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from skillswap import __version__
from skillswap.config import settings
from skillswap.db.engine import db_lifespan
from skillswap.events import start_event_system, stop_event_system, subscribe, unsubscribe
from skillswap.security.audit import audit_on_event

# ── Logging setup ────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    stream=sys.stdout,
)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = logging.getLogger(__name__)

# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    logger.info("Starting SkillSwap (env=%s)", settings.environment)

    # 1. Database
    async with db_lifespan():
        logger.info("Database initialized")

        # 2. Event system
        await start_event_system()

        # 3. Audit logging, always active (global subscriber)
        subscribe(audit_on_event)
        logger.info("Audit logging subscriber registered")

        try:
            yield
        finally:
            logger.info("Shutting down SkillSwap...")
            await stop_event_system()
            unsubscribe(audit_on_event)

    logger.info("SkillSwap shutdown complete")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="SkillSwap API",
    description="Peer tutoring session lifecycle",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "environment": settings.environment,
        "version": __version__,
    }


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "skillswap.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
