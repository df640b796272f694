"""
FastAPI application for the spaced-review API.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .review_routes import router as review_router
from src.auth.routes import router as auth_router
from src.scheduling.config import load_scheduling_config
from src.scheduling.locks import LearnerLocks
from src.settings import LOG_LEVEL


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Set up per-process scheduling state on startup; clear on shutdown."""
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.state.scheduling_config = load_scheduling_config()
    app.state.learner_locks = LearnerLocks()
    logger.info("Review API started (timezone=%s)", app.state.scheduling_config.timezone)
    yield
    app.state.learner_locks = LearnerLocks()


app = FastAPI(
    title="Spaced Review API",
    description="Spaced-repetition scheduling for vocabulary cards",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
app.include_router(auth_router)
app.include_router(review_router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
