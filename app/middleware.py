"""
Middleware configuration for the standalone FastAPI app.
"""

from __future__ import annotations

import os

from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware


def configure_middleware(app) -> None:
    """Configure host allowlist and CORS middleware for the FastAPI app."""
    # Optional host allowlist for production deployments
    trusted_hosts_env = os.environ.get("TRUSTED_HOSTS", "")
    trusted_hosts = [host.strip() for host in trusted_hosts_env.split(",") if host.strip()]
    if trusted_hosts:
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=trusted_hosts,
        )

    cors_allowed_env = os.environ.get("CORS_ALLOWED_ORIGINS", "")
    if cors_allowed_env.strip():
        allow_origins = [origin.strip() for origin in cors_allowed_env.split(",") if origin.strip()]
    else:
        allow_origins = [
            os.environ.get("FRONTEND_URL", "http://localhost:3000"),
            "http://localhost:3000",
        ]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
