"""FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.responses import Response

from fleet.config import settings
from fleet.control_client import ContainerControlClient
from fleet.logging_config import setup_logging
from fleet.metrics import get_metrics
from fleet.routers import orchestrator
from fleet.version import __version__, get_commit

# Configure logging at module load
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own one pooled control client for the lifetime of the process."""
    app.state.control_client = ContainerControlClient()
    logger.info(f"Orchestrator {__version__} using control API at {settings.hub_url}")
    try:
        yield
    finally:
        await app.state.control_client.aclose()
        logger.info("Orchestrator shutting down")


app = FastAPI(
    title="Fleet Orchestrator",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(orchestrator.router)


@app.get("/health")
def health():
    """Basic health check."""
    return {
        "status": "ok",
        "version": __version__,
        "commit": get_commit(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    payload, content_type = get_metrics()
    return Response(content=payload, media_type=content_type)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fleet.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )
