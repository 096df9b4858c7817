"""
FastAPI application for tutor-core.

Provides REST API for:
- Mastery updates and BKT parameter fitting
- Skill recommendations
- Micro-assessment triggering
- Socratic dialogue sessions
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from config import get_settings
from tutorcore.core.errors import InvalidStateTransition
from tutorcore.core.logging import configure_logging
from tutorcore.db.database import check_connection, init_db

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    configure_logging(settings.log_level, settings.log_file)
    logger.info("Starting tutor-core service...")
    init_db()
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    # Shutdown
    logger.info("Shutting down tutor-core service...")


app = FastAPI(
    title="Tutor Core",
    description="""
    Adaptive tutoring engine.

    ## Features

    - **Mastery Tracking**: Bayesian Knowledge Tracing with SM-2 review scheduling
    - **Recommendations**: Ranked next skills with scaffold level and "why this skill" explanations
    - **Parameter Fitting**: Per-skill EM fitting of BKT parameters
    - **Micro-Assessments**: Short probes that refresh stale learner-profile evidence
    - **Socratic Dialogue**: Guided questioning with discovery detection
    """,
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidStateTransition)
async def invalid_state_handler(request: Request, exc: InvalidStateTransition) -> JSONResponse:
    logger.warning(str(exc))
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "entity": exc.entity, "status": exc.status},
    )


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "tutor-core",
        "version": "0.1.0",
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check with a live database probe."""
    db = check_connection()

    result = {
        "status": "healthy" if db["connected"] else "unhealthy",
        "timestamp": datetime.now().isoformat(),
        "components": {
            "database": "ok" if db["connected"] else "error",
            "llm": "configured" if settings.has_llm_configured() else "not_configured",
        },
        "config": {
            "mastery_threshold": settings.mastery_threshold,
            "bkt_defaults": settings.get_bkt_defaults(),
        },
    }

    if not db["connected"]:
        result["errors"] = {"database": db.get("error")}

    return result


# ========================================
# Import and mount routers
# ========================================

from tutorcore.api.routers import tutoring_router  # noqa: E402

app.include_router(tutoring_router.router, prefix="/api/tutor", tags=["Tutoring"])
