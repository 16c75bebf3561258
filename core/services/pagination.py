"""
Opaque keyset cursors and the limit + 1 page fetch.

Listings are ordered by ``(sort_key DESC, tie_break_id DESC)``. A cursor
records the sort key and tie-break id of the last row handed out, and the
next page continues strictly below it in that composite order:

    sort_key < k  OR  (sort_key == k AND tie_break_id < id)

Callers must treat cursors as opaque strings and pass them back unchanged.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy import and_, or_

from core.config import MAX_PAGE_LIMIT
from core.errors import ValidationIssue
from core.validators import validate_limit


_DUAL_KEYS = frozenset({"ts", "id"})
_SINGLE_KEYS = frozenset({"ts"})


@dataclass(frozen=True)
class CursorKey:
    sort_key: datetime
    tie_break_id: Optional[str] = None


@dataclass
class Page:
    rows: list = field(default_factory=list)
    next_cursor: Optional[str] = None


def _invalid_cursor() -> ValidationIssue:
    return ValidationIssue("Invalid cursor", field="cursor", error_type="invalid_cursor")


class PaginationCodec:
    def encode(self, sort_key: datetime, tie_break_id: Any) -> str:
        return self._dump({"ts": sort_key.isoformat(), "id": str(tie_break_id)})

    def decode(self, cursor: Optional[str]) -> Optional[CursorKey]:
        payload = self._load(cursor)
        if payload is None:
            return None
        if set(payload) != _DUAL_KEYS:
            raise _invalid_cursor()
        tie_break_id = payload["id"]
        if not isinstance(tie_break_id, str) or not tie_break_id:
            raise _invalid_cursor()
        return CursorKey(sort_key=self._parse_timestamp(payload["ts"]), tie_break_id=tie_break_id)

    def encode_single(self, sort_key: datetime) -> str:
        return self._dump({"ts": sort_key.isoformat()})

    def decode_single(self, cursor: Optional[str]) -> Optional[CursorKey]:
        payload = self._load(cursor)
        if payload is None:
            return None
        if set(payload) != _SINGLE_KEYS:
            raise _invalid_cursor()
        return CursorKey(sort_key=self._parse_timestamp(payload["ts"]))

    def paginate(
        self,
        query,
        *,
        sort_column,
        id_column,
        limit: int,
        cursor: Optional[str] = None,
        key_of: Optional[Callable[[Any], tuple]] = None,
    ) -> Page:
        """
        Fetch one page of ``query`` ordered by the composite key.

        ``key_of`` extracts ``(sort_key, tie_break_id)`` from a result row;
        by default the column names are read as attributes of the row.
        """
        validate_limit(limit, "limit", MAX_PAGE_LIMIT)
        key = self.decode(cursor)
        if key is not None:
            query = query.filter(
                or_(
                    sort_column < key.sort_key,
                    and_(sort_column == key.sort_key, id_column < key.tie_break_id),
                )
            )
        rows = query.order_by(sort_column.desc(), id_column.desc()).limit(limit + 1).all()
        if len(rows) <= limit:
            return Page(rows=list(rows), next_cursor=None)

        rows = list(rows[:limit])
        extract = key_of or (lambda row: (getattr(row, sort_column.key), getattr(row, id_column.key)))
        sort_value, id_value = extract(rows[-1])
        return Page(rows=rows, next_cursor=self.encode(sort_value, id_value))

    def paginate_single(
        self,
        query,
        *,
        sort_column,
        limit: int,
        cursor: Optional[str] = None,
    ) -> Page:
        """Single-key variant; rows sharing the boundary timestamp may be skipped."""
        validate_limit(limit, "limit", MAX_PAGE_LIMIT)
        key = self.decode_single(cursor)
        if key is not None:
            query = query.filter(sort_column < key.sort_key)
        rows = query.order_by(sort_column.desc()).limit(limit + 1).all()
        if len(rows) <= limit:
            return Page(rows=list(rows), next_cursor=None)

        rows = list(rows[:limit])
        return Page(rows=rows, next_cursor=self.encode_single(getattr(rows[-1], sort_column.key)))

    @staticmethod
    def _dump(payload: dict) -> str:
        raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    @staticmethod
    def _load(cursor: Optional[str]) -> Optional[dict]:
        if cursor is None or cursor == "":
            return None
        if not isinstance(cursor, str):
            raise _invalid_cursor()
        padded = cursor + "=" * (-len(cursor) % 4)
        try:
            raw = base64.urlsafe_b64decode(padded.encode("ascii"))
            payload = json.loads(raw.decode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise _invalid_cursor() from exc
        if not isinstance(payload, dict):
            raise _invalid_cursor()
        return payload

    @staticmethod
    def _parse_timestamp(value: Any) -> datetime:
        if not isinstance(value, str):
            raise _invalid_cursor()
        try:
            return datetime.fromisoformat(value)
        except ValueError as exc:
            raise _invalid_cursor() from exc
