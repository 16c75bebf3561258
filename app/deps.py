"""
Dependency helpers for the standalone FastAPI app.
"""

from __future__ import annotations

from fastapi import Request

from core.services.container import Services


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialized - app.state.services is None")
    return services
