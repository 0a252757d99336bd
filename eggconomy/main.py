"""
FastAPI application bootstrap with: \n
- Lifespan-managed setup of the record stores (optional table creation) \n
- CORS configured for the frontend \n
- Request validation errors answered with 400 \n
- Logging routed through uvicorn's handlers \n

Environment contract (from `settings`): \n
- DB_CREATE_TABLES: if true and the primary store is configured, create missing tables at startup. \n
- FRONTEND_URL: allowed CORS origin. \n
- LOG_LEVEL: level for the `eggconomy` loggers. \n
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from eggconomy.api.fast_api import router
from eggconomy.database.config.config import settings
from eggconomy.database.config.connection_engine import metadata
from eggconomy.database.core.policy import get_policy

logger = logging.getLogger("uvicorn")
"""Logger instance for capturing and emitting Uvicorn server logs."""


def setup_logging(level: str = settings.LOG_LEVEL) -> None:
    """Send the `eggconomy` loggers through uvicorn's handlers at `level`."""
    app_logger = logging.getLogger("eggconomy")
    app_logger.setLevel(level.upper())
    if logger.handlers and not app_logger.handlers:
        for handler in logger.handlers:
            app_logger.addHandler(handler)
        app_logger.propagate = False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    App lifespan manager.

    Notes
    ------------
    - On startup (before yielding):
        * Configure logging and build the degradation policy.
        * If DB_CREATE_TABLES and the primary store is configured, create the
          missing tables.
    - On shutdown (after yielding):
        * Dispose the primary store's connection pool.
    """
    setup_logging()
    policy = get_policy()
    app.state.policy = policy

    if policy.primary is not None and settings.DB_CREATE_TABLES:
        print("⚙️  Creating missing tables in the primary store...")
        async with policy.primary.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        print("✅ Tables ready.")
    elif policy.primary is None:
        print("⏭️  Primary store not configured; serving from the fallback store.")

    try:
        yield
    finally:
        if policy.primary is not None:
            await policy.primary.engine.dispose()
        print("🛑 App shutting down.")


app = FastAPI(lifespan=lifespan)
"""Instatiates a FastAPI application object
    The lifespan=lifespan argument registers a custom startup/shutdown lifecycle manager that:\n
        - On startup: builds the record stores and optionally creates tables.\n
        - On shutdown: disposes the primary store's connection pool. \n
"""


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a 400, with the first problem as the message."""
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    # ctx may hold the raw exception, which is not JSON serializable
    problems = [{"loc": list(error.get("loc", ())), "msg": error.get("msg", "")} for error in errors]
    return JSONResponse(status_code=400, content={"detail": message, "errors": problems})


# -----------------------
# CORS configuration
# -----------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------
# API routes
# -----------------------
app.include_router(router, prefix="/api")
