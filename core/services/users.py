"""
Account services: registration, login, profiles, avatars and credentials.
"""

from __future__ import annotations

import hmac
from typing import Optional

from sqlalchemy import or_, update

from core.errors import AuthError, Conflict, ServiceError, ValidationIssue
from core.images import ImageStore, avatar_image_key, validate_content_type, validate_image
from core.models import User
from core.services.credentials import CredentialStore
from core.services.shared import (
    MAX_BIO_LENGTH,
    MAX_LOCATION_LENGTH,
    SessionFactory,
    _clean_optional_text,
    _validate_email,
    _validate_optional_text,
    _validate_password_hash,
    _validate_session_token,
    _validate_username,
    atomic,
    logger,
    reading,
    service_tool,
)
from core.services.social_graph import SocialGraphRepository


class UserService:
    def __init__(
        self,
        session_factory: SessionFactory,
        credentials: CredentialStore,
        repository: SocialGraphRepository,
        image_store: ImageStore,
    ):
        self._session_factory = session_factory
        self._credentials = credentials
        self._repository = repository
        self._image_store = image_store

    @service_tool
    def check_username(self, username: str) -> dict:
        """Report whether ``username`` is valid and still free."""
        _validate_username(username)
        db = self._session_factory()
        try:
            with reading(db, operation="check username"):
                taken = db.query(User.username).filter(User.username == username).first() is not None
            return {"status": "ok", "username": username, "available": not taken}
        finally:
            db.close()

    @service_tool
    def register(self, username: str, password_hash: str, email: str) -> dict:
        """
        Create an account and log it in.

        Returns:
            The new session token and the user's private profile
        """
        _validate_username(username)
        _validate_password_hash(password_hash)
        _validate_email(email)
        email = email.strip().lower()

        db = self._session_factory()
        try:
            with reading(db, operation="check existing user"):
                existing = (
                    db.query(User.username, User.email)
                    .filter(or_(User.username == username, User.email == email))
                    .first()
                )
            if existing is not None:
                field = "username" if existing.username == username else "email"
                raise Conflict("Username or email already taken", field=field)

            with atomic(db, operation="register user", conflict_message="Username or email already taken"):
                user = User(
                    username=username,
                    email=email,
                    password_hash=password_hash.lower(),
                    post_count=0,
                    follower_count=0,
                    following_count=0,
                )
                db.add(user)
                db.flush()
                token = self._credentials.issue(db, username)

            logger.info("user_registered", extra={"username": username})
            return {
                "status": "registered",
                "session_token": token,
                "profile": self._repository.own_profile(db, db.get(User, username)),
            }
        finally:
            db.close()

    @service_tool
    def login(self, email: str, password_hash: str) -> dict:
        """Log in with an email (or username) and rotate the session token."""
        if not email or not isinstance(email, str):
            raise ValidationIssue("Missing email", field="email", error_type="required")
        _validate_password_hash(password_hash)
        identifier = email.strip()

        db = self._session_factory()
        try:
            with reading(db, operation="load user"):
                user = (
                    db.query(User)
                    .filter(or_(User.email == identifier.lower(), User.username == identifier))
                    .first()
                )
            if user is None or not hmac.compare_digest(user.password_hash, password_hash.lower()):
                raise AuthError("Invalid credentials", field="email")

            username = user.username
            with atomic(db, operation="log in"):
                token = self._credentials.issue(db, username)

            logger.info("user_logged_in", extra={"username": username})
            return {
                "status": "logged_in",
                "session_token": token,
                "profile": self._repository.own_profile(db, db.get(User, username)),
            }
        finally:
            db.close()

    @service_tool
    def get_profile(self, session_token: Optional[str] = None, target_username: Optional[str] = None) -> dict:
        """
        Load a profile.

        Without ``target_username`` the caller's private profile is returned
        and a session is required. With it, the target's public profile is
        returned, flagged with ``is_followed`` when the caller is logged in.
        """
        db = self._session_factory()
        try:
            if not target_username:
                _validate_session_token(session_token)
                user = self._credentials.resolve(db, session_token)
                return {"status": "ok", "profile": self._repository.own_profile(db, user)}

            viewer = self._repository.viewer(db, session_token)
            if viewer == target_username:
                user = db.get(User, viewer)
                return {"status": "ok", "profile": self._repository.own_profile(db, user)}
            return {
                "status": "ok",
                "profile": self._repository.guest_profile(db, target_username, viewer),
            }
        finally:
            db.close()

    @service_tool
    def update_profile(
        self,
        session_token: str,
        bio: Optional[str] = None,
        location: Optional[str] = None,
    ) -> dict:
        """Update free-text profile fields. Counters are never editable here."""
        _validate_session_token(session_token)
        _validate_optional_text(bio, "bio", MAX_BIO_LENGTH)
        _validate_optional_text(location, "location", MAX_LOCATION_LENGTH)
        values = {}
        if bio is not None:
            values["bio"] = _clean_optional_text(bio)
        if location is not None:
            values["location"] = _clean_optional_text(location)
        if not values:
            raise ValidationIssue("Nothing to update", field="bio", error_type="required")

        db = self._session_factory()
        try:
            user = self._credentials.resolve(db, session_token)
            username = user.username
            with atomic(db, operation="update profile"):
                db.execute(
                    update(User.__table__)
                    .where(User.__table__.c.username == username)
                    .values(**values)
                )
            db.expire_all()
            return {"status": "updated", "profile": self._repository.own_profile(db, db.get(User, username))}
        finally:
            db.close()

    @service_tool
    def change_password(self, session_token: str, current_password_hash: str, new_password_hash: str) -> dict:
        """Replace the password hash and rotate the session token."""
        _validate_session_token(session_token)
        _validate_password_hash(current_password_hash, "current_password_hash")
        _validate_password_hash(new_password_hash, "new_password_hash")

        db = self._session_factory()
        try:
            user = self._credentials.resolve(db, session_token)
            if not hmac.compare_digest(user.password_hash, current_password_hash.lower()):
                raise AuthError("Current password is incorrect", field="current_password_hash")
            username = user.username
            with atomic(db, operation="change password"):
                db.execute(
                    update(User.__table__)
                    .where(User.__table__.c.username == username)
                    .values(password_hash=new_password_hash.lower())
                )
                token = self._credentials.issue(db, username)
            logger.info("password_changed", extra={"username": username})
            return {"status": "updated", "session_token": token}
        finally:
            db.close()

    @service_tool
    def change_avatar(self, session_token: str, image: bytes, content_type: str = "image/jpeg") -> dict:
        """
        Store a new avatar image and point the profile at it.

        The image is written first; if the profile update fails the new object
        is removed again. A previous avatar under a different key is deleted
        once the update has committed.
        """
        _validate_session_token(session_token)
        validate_content_type(content_type)
        validate_image(image)

        db = self._session_factory()
        try:
            user = self._credentials.resolve(db, session_token)
            username = user.username
            previous_path = user.avatar_path
            avatar_path = self._image_store.put(avatar_image_key(username, content_type), image, content_type)
            try:
                with atomic(db, operation="change avatar"):
                    db.execute(
                        update(User.__table__)
                        .where(User.__table__.c.username == username)
                        .values(avatar_path=avatar_path)
                    )
            except ServiceError:
                self._image_store.delete(avatar_path)
                raise
            if previous_path and previous_path != avatar_path:
                self._image_store.delete(previous_path)

            logger.info("avatar_changed", extra={"username": username})
            db.expire_all()
            return {
                "status": "updated",
                "avatar_path": avatar_path,
                "profile": self._repository.own_profile(db, db.get(User, username)),
            }
        finally:
            db.close()
