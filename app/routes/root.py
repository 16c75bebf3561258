"""
Root endpoint with service metadata.
"""

from __future__ import annotations

from fastapi import APIRouter

import core.config as config


router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": "catgraph",
        "version": "0.1.0",
        "description": "Social graph and feed backend for cat photos",
        "database_backend": config.DB_BACKEND_EFFECTIVE,
        "endpoints": {
            "health": "/health",
            "users": "/users",
            "cats": "/cats",
            "comments": "/cats/comments",
            "collections": "/collections",
        },
    }
