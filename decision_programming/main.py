from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from decision_programming import __version__
from decision_programming.config import CORS_ORIGINS, ENVIRONMENT, PathConfig, SolverConfig

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


class _HealthCheckFilter(logging.Filter):
    """Suppress successful health-check entries from uvicorn access log.

    Only hides 200 responses so failed health checks remain visible.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        # uvicorn access log args: (client_addr, method, path, http_version, status_code)
        args = record.args
        if not isinstance(args, tuple) or len(args) < 5:
            return True
        path, status = args[2], args[4]
        return not (isinstance(path, str) and path.endswith("/health") and status == 200)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the effective configuration on startup."""
    logging.getLogger("uvicorn.access").addFilter(_HealthCheckFilter())
    logger.info(
        "Starting Decision Programming service (%s): max %d paths, solver time limit %.0fs",
        ENVIRONMENT,
        PathConfig.PATH_COUNT_BLOCKING_THRESHOLD,
        SolverConfig.TIME_LIMIT_SECONDS,
    )
    yield
    logger.info("Decision Programming service stopped")


app = FastAPI(title="Decision Programming", version=__version__, lifespan=lifespan)


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers (imported after app initialization to avoid circular imports)
from decision_programming.routes.diagrams import router as diagrams_router  # noqa: E402

app.include_router(diagrams_router)


@app.get("/api/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}
