"""
Backend entry point for the course assessment service.

Architecture:
- One Python process, one asyncio event loop
- FastAPI serves the quiz, progress and certificate APIs
- PostgreSQL holds all shared state; handlers are stateless

We use FastAPI's lifespan to manage startup/shutdown, which gives us
uvicorn's signal handling and --reload for free.

Run with: python main.py [--port PORT]
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Set up import paths before any local imports
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

# Load .env.local first (if exists), then .env as fallback
# .env.local is gitignored and used for local dev overrides
load_dotenv(project_root / ".env.local")  # Local overrides (gitignored)
load_dotenv()  # Fallback to .env

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from academy.config import (
    check_required_env_vars,
    get_allowed_origins,
    get_api_port,
    get_log_level,
    get_sentry_dsn,
    is_production,
)
from academy.database import close_engine

# Import routes using full paths (web_api is not a package on sys.path)
from web_api.routes.attempts import router as attempts_router
from web_api.routes.certificates import router as certificates_router
from web_api.routes.progress import router as progress_router

logging.basicConfig(
    level=get_log_level(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

if get_sentry_dsn():
    sentry_sdk.init(
        dsn=get_sentry_dsn(),
        environment="production" if is_production() else "development",
        traces_sample_rate=0.1,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Reports missing configuration on startup and closes the database
    pool on shutdown.
    """
    ok, messages = check_required_env_vars()
    for message in messages:
        if ok:
            logger.warning("Config: %s", message)
        else:
            logger.error("Config: %s", message)
    if not ok:
        raise RuntimeError("Missing required environment variables")

    yield

    logger.info("Shutting down, closing database connections")
    await close_engine()


# Create FastAPI app with lifespan
app = FastAPI(
    title="Course Assessment API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(attempts_router)
app.include_router(progress_router)
app.include_router(certificates_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Course Assessment Server")
    parser.add_argument(
        "--port",
        type=int,
        default=get_api_port(),
        help="Port to run the server on (default: API_PORT or 8000)",
    )
    args = parser.parse_args()

    # Pass app object directly (not string) to avoid module reimport issues
    # Note: --reload requires string import; use `uvicorn main:app --reload` if needed
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=args.port,
    )
