import logging
import os
import time
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load order (later files override earlier): project .env, then .env.local
project_root = Path(__file__).parent.parent
env_file = project_root / ".env"
env_local = project_root / ".env.local"

if env_file.exists():
    load_dotenv(env_file, override=True)

if env_local.exists():
    load_dotenv(env_local, override=True)

from .api.circles import router as circles_router
from .api.health import create_health_router
from .api.wills import router as wills_router
from .core.container import ServiceContainer
from .lifecycle import lifespan
from .middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers
from .middleware.request_id import RequestIdMiddleware
from .utils.logging import setup_logging
from .version import __version__

logger = logging.getLogger(__name__)


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """Build the FastAPI application.

    A pre-built container (tests, scripts) is used as-is; otherwise the
    lifespan initializes the database and builds one.
    """
    app = FastAPI(
        title="Will Engine",
        description="Will lifecycle, check-in and review-gate service",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.started_at = time.monotonic()
    if container is not None:
        app.state.container = container

    cors_origins = os.getenv(
        "CORS_ORIGINS", "http://localhost:3000,http://localhost:8000"
    ).split(",")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ErrorHandlerMiddleware)
    # Added last so it wraps everything and the id is set before any logging
    app.add_middleware(RequestIdMiddleware)
    register_exception_handlers(app)

    @app.get("/")
    async def root() -> Dict[str, str]:
        return {"message": "Will Engine API", "version": __version__, "status": "running"}

    app.include_router(create_health_router())
    app.include_router(wills_router)
    app.include_router(circles_router)
    return app


def _create_default_app() -> FastAPI:
    setup_logging(log_level=os.getenv("LOG_LEVEL", "INFO"), log_to_file=True)
    return create_app()


app = _create_default_app()


if __name__ == "__main__":
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("will_engine.main:app", host=host, port=port, log_level="info")
