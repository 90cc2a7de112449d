"""FastAPI application exposing read-only pool queries and swap quotes."""

import logging
import os

import structlog
import uvicorn
from fastapi import FastAPI

from bpool.api.endpoints import router

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("BPOOL_HOST", "0.0.0.0")
PORT = int(os.environ.get("BPOOL_PORT", "8000"))
DEBUG = os.environ.get("BPOOL_DEBUG", "false").lower() in ("true", "1", "yes")
LOG_LEVEL = os.environ.get("BPOOL_LOG_LEVEL", "INFO").upper()

app = FastAPI(
    title="Weighted Pool API",
    description="Query state, spot prices and swap quotes of weighted pools",
    version="0.1.0",
)

app.include_router(router)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Configure structlog with a level filter and console output."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level, logging.INFO)
        ),
    )


def run() -> None:
    """Run the pool API server.

    Configuration via environment variables:
    - BPOOL_HOST: Host to bind to (default: 0.0.0.0)
    - BPOOL_PORT: Port to bind to (default: 8000)
    - BPOOL_DEBUG: Enable debug/reload mode (default: false)
    - BPOOL_LOG_LEVEL: Minimum log level (default: INFO)
    """
    configure_logging()
    uvicorn.run(
        "bpool.api.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
    )


if __name__ == "__main__":
    run()
