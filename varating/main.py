"""
FastAPI application bootstrap with: \n
- Lifespan hook logging startup and optionally creating missing tables \n
- CORS configured for the web frontends \n
- One router per area (billing, tokens, documents, RAG agent, ...) \n

Environment contract (from `settings`): \n
- ALLOWED_ORIGINS: allowed CORS origins. \n
- DB_CREATE_TABLES: create missing tables on startup. \n
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# entities register their tables on the shared metadata
import varating.database.entities  # noqa: F401
from varating.api.routers import (
    account,
    billing,
    calculator,
    chat,
    documents,
    email,
    rag_agent,
    tokens,
    upload_sessions,
    va,
    webhook,
)
from varating.database.config.config import settings
from varating.database.config.connection_engine import connection_engine, metadata

logger = logging.getLogger("uvicorn")
"""Logger instance for capturing and emitting Uvicorn server logs."""


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    App lifespan manager.

    Notes
    -----
    - On startup: creates missing tables when ``DB_CREATE_TABLES`` is set.
    - On shutdown: disposes the engine's connection pool.
    """
    logger.info(f"Starting VA Rating Assistant API (backend={connection_engine.url.get_backend_name()})")
    if settings.DB_CREATE_TABLES:
        metadata.create_all(connection_engine)
        logger.info("Database tables created")
    try:
        yield
    finally:
        connection_engine.dispose()
        logger.info("App shutting down")


app = FastAPI(title="VA Rating Assistant API", lifespan=lifespan)
"""Instantiates the FastAPI application object with its lifespan handler."""

# -----------------------
# CORS configuration
# -----------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    max_age=86400,
)

# -----------------------
# API routes
# -----------------------
for module in (account, billing, calculator, chat, documents, email, rag_agent, tokens, upload_sessions, va, webhook):
    app.include_router(module.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
