"""
Query-string helpers shared by the listing endpoints.
"""

from __future__ import annotations

from typing import Optional


def page_kwargs(limit: Optional[int], cursor: Optional[str]) -> dict:
    """Forward only the paging parameters the caller actually sent."""
    kwargs = {}
    if limit is not None:
        kwargs["limit"] = limit
    if cursor:
        kwargs["cursor"] = cursor
    return kwargs
