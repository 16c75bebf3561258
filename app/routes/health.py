"""
Health endpoint.
"""

from __future__ import annotations

import os

from fastapi import APIRouter, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

import core.config as config
from core.db import DB, _get_schema_revisions


router = APIRouter()


def _check_db_health() -> dict:
    if DB.engine is None:
        return {"ok": False, "error": "db_not_initialized"}

    try:
        with DB.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        return {"ok": False, "error": exc.__class__.__name__}

    current_rev, head_rev = _get_schema_revisions(DB.engine)
    schema_ok = head_rev is None or current_rev == head_rev
    return {
        "ok": schema_ok,
        "backend": config.DB_BACKEND_EFFECTIVE,
        "schema_revision": current_rev,
        "schema_expected": head_rev,
        "schema_up_to_date": schema_ok,
    }


@router.get("/health")
async def health():
    """Health check endpoint."""
    db_health = _check_db_health()
    if not db_health.get("ok"):
        raise HTTPException(status_code=503, detail={"database": db_health})

    return {
        "status": "healthy",
        "service": "catgraph",
        "version": "0.1.0",
        "instance_id": os.environ.get("CATGRAPH_INSTANCE_ID", "catgraph-1"),
        "database": db_health,
    }
