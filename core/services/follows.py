"""
Follow graph services.
"""

from __future__ import annotations

from typing import Optional

from core.errors import NotFound, ValidationIssue
from core.models import User
from core.services.consistency import ConsistencyEngine
from core.services.credentials import CredentialStore
from core.services.shared import (
    FOLLOW_PAGE_LIMIT,
    SessionFactory,
    _validate_session_token,
    _validate_username,
    reading,
    service_tool,
)
from core.services.social_graph import SocialGraphRepository

FOLLOW_ACTIONS = ("follow", "unfollow")


class FollowService:
    def __init__(
        self,
        session_factory: SessionFactory,
        credentials: CredentialStore,
        engine: ConsistencyEngine,
        repository: SocialGraphRepository,
    ):
        self._session_factory = session_factory
        self._credentials = credentials
        self._engine = engine
        self._repository = repository

    @service_tool
    def follow_user(self, session_token: str, target_username: str, action: str = "follow") -> dict:
        """
        Follow or unfollow ``target_username``.

        Repeating the same action is a no-op that still reports success.
        """
        _validate_session_token(session_token)
        _validate_username(target_username, "target_username")
        if action not in FOLLOW_ACTIONS:
            raise ValidationIssue(
                "action must be 'follow' or 'unfollow'",
                field="action",
                error_type="invalid_choice",
            )

        db = self._session_factory()
        try:
            if action == "follow":
                counts = self._engine.follow_user(db, session_token, target_username)
            else:
                counts = self._engine.unfollow_user(db, session_token, target_username)
            return {
                "status": "followed" if action == "follow" else "unfollowed",
                "changed": counts.changed,
                "target_username": counts.followee_username,
                "follower_count": counts.follower_count,
                "following_count": counts.following_count,
            }
        finally:
            db.close()

    @service_tool
    def list_followers(
        self,
        session_token: Optional[str] = None,
        username: Optional[str] = None,
        limit: int = FOLLOW_PAGE_LIMIT,
        cursor: Optional[str] = None,
    ) -> dict:
        """List who follows ``username`` (the caller when omitted), newest first."""
        db = self._session_factory()
        try:
            subject, viewer = self._subject(db, session_token, username)
            result = self._repository.list_followers(
                db, subject, limit=limit, cursor=cursor, viewer_username=viewer
            )
            return {"status": "ok", "username": subject, **result}
        finally:
            db.close()

    @service_tool
    def list_following(
        self,
        session_token: Optional[str] = None,
        username: Optional[str] = None,
        limit: int = FOLLOW_PAGE_LIMIT,
        cursor: Optional[str] = None,
    ) -> dict:
        """List who ``username`` (the caller when omitted) follows, newest first."""
        db = self._session_factory()
        try:
            subject, viewer = self._subject(db, session_token, username)
            result = self._repository.list_following(
                db, subject, limit=limit, cursor=cursor, viewer_username=viewer
            )
            return {"status": "ok", "username": subject, **result}
        finally:
            db.close()

    def _subject(self, db, session_token: Optional[str], username: Optional[str]):
        if not username:
            _validate_session_token(session_token)
            identity = self._credentials.resolve(db, session_token)
            return identity.username, identity.username

        _validate_username(username)
        viewer = self._repository.viewer(db, session_token)
        with reading(db, operation="load user"):
            exists = db.query(User.username).filter(User.username == username).first()
        if not exists:
            raise NotFound("User not found", field="username")
        return username, viewer
