"""
Comment services.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import delete

from core.errors import NotFound
from core.models import Cat, Comment, utcnow
from core.services.credentials import CredentialStore
from core.services.guard import AuthorizationGuard
from core.services.shared import (
    DEFAULT_PAGE_LIMIT,
    MAX_COMMENT_LENGTH,
    SessionFactory,
    _validate_required_text,
    _validate_session_token,
    _validate_uuid,
    atomic,
    reading,
    service_tool,
)
from core.services.social_graph import SocialGraphRepository, serialize_comment


class CommentService:
    def __init__(
        self,
        session_factory: SessionFactory,
        credentials: CredentialStore,
        guard: AuthorizationGuard,
        repository: SocialGraphRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._credentials = credentials
        self._guard = guard
        self._repository = repository
        self._clock = clock

    @service_tool
    def create_comment(self, session_token: str, cat_id: str, comment: str) -> dict:
        _validate_session_token(session_token)
        _validate_uuid(cat_id, "cat_id")
        _validate_required_text(comment, "comment", MAX_COMMENT_LENGTH)

        db = self._session_factory()
        try:
            author = self._credentials.resolve(db, session_token)
            username = author.username
            with reading(db, operation="load cat"):
                if db.query(Cat.id).filter(Cat.id == cat_id).first() is None:
                    raise NotFound("Cat not found", field="cat_id")

            comment_id = str(uuid.uuid4())
            with atomic(db, operation="create comment"):
                db.add(
                    Comment(
                        comment_id=comment_id,
                        cat_id=cat_id,
                        username=username,
                        comment=comment.strip(),
                        comment_at=self._clock(),
                    )
                )
            row = db.get(Comment, comment_id)
            profile = self._repository.fetch_profiles(db, [username], username)[username]
            return {"status": "created", "comment": serialize_comment(row, profile, username)}
        finally:
            db.close()

    @service_tool
    def list_comments(
        self,
        cat_id: str,
        session_token: Optional[str] = None,
        limit: int = DEFAULT_PAGE_LIMIT,
        cursor: Optional[str] = None,
    ) -> dict:
        """List comments on a cat, newest first."""
        _validate_uuid(cat_id, "cat_id")
        db = self._session_factory()
        try:
            viewer = self._repository.viewer(db, session_token)
            result = self._repository.list_comments(
                db, cat_id, limit=limit, cursor=cursor, viewer_username=viewer
            )
            return {"status": "ok", "cat_id": cat_id, **result}
        finally:
            db.close()

    @service_tool
    def delete_comment(self, session_token: str, comment_id: str) -> dict:
        """Delete one of the caller's own comments."""
        _validate_session_token(session_token)
        _validate_uuid(comment_id, "comment_id")
        db = self._session_factory()
        try:
            identity = self._credentials.resolve(db, session_token)
            with reading(db, operation="load comment"):
                row = db.get(Comment, comment_id)
            if row is None:
                raise NotFound("Comment not found", field="comment_id")
            self._guard.require_owner(identity, row, message="Cannot delete another user's comment")
            with atomic(db, operation="delete comment"):
                db.execute(
                    delete(Comment.__table__).where(Comment.__table__.c.comment_id == comment_id)
                )
            return {"status": "deleted", "comment_id": comment_id}
        finally:
            db.close()
