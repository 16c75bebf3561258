"""
Standalone FastAPI app wiring for catgraph.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

import core.config as config
from core.db import DB, init_db
from core.services.container import Services, build_services
from app.middleware import configure_middleware
from app.responses import request_validation_handler
from app.routes.cats import router as cats_router
from app.routes.collections import router as collections_router
from app.routes.health import router as health_router
from app.routes.root import router as root_router
from app.routes.users import router as users_router


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Build the FastAPI app.

    When ``services`` is supplied (tests), startup skips database
    initialization and serves the given service graph.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize on startup, cleanup on shutdown."""
        if services is None:
            init_db()
            app.state.services = build_services(DB.SessionLocal)
        else:
            app.state.services = services
        config.logger.info("catgraph started")
        try:
            yield
        finally:
            if services is None and DB.engine:
                DB.engine.dispose()

    app = FastAPI(title="catgraph", redirect_slashes=False, lifespan=lifespan)
    app.state.services = services
    configure_middleware(app)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(health_router)
    app.include_router(root_router)
    app.include_router(users_router)
    app.include_router(cats_router)
    app.include_router(collections_router)
    return app


# =============================================================================
# ASGI Application (module-level for production deployment)
# =============================================================================

app = create_app()
