"""
Cat post services: creation, listings, tag search and likes.
"""

from __future__ import annotations

import uuid
from typing import List, Optional, Union

from core.errors import ServiceError, ValidationIssue
from core.images import ImageStore, cat_image_key, validate_content_type, validate_image
from core.services.consistency import ConsistencyEngine
from core.services.credentials import CredentialStore
from core.services.shared import (
    DEFAULT_PAGE_LIMIT,
    MAX_CAT_NAME_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    SessionFactory,
    _clean_optional_text,
    _normalize_tags,
    _validate_coordinate,
    _validate_optional_text,
    _validate_required_text,
    _validate_session_token,
    _validate_username,
    _validate_uuid,
    service_tool,
)
from core.services.social_graph import SocialGraphRepository

LIKE_ACTIONS = ("like", "unlike")
TAG_SEARCH_MODES = ("any", "all")


class CatService:
    def __init__(
        self,
        session_factory: SessionFactory,
        credentials: CredentialStore,
        engine: ConsistencyEngine,
        repository: SocialGraphRepository,
        image_store: ImageStore,
    ):
        self._session_factory = session_factory
        self._credentials = credentials
        self._engine = engine
        self._repository = repository
        self._image_store = image_store

    @service_tool
    def create_cat(
        self,
        session_token: str,
        name: str,
        image: bytes,
        content_type: str = "image/jpeg",
        tags: Optional[Union[str, List[str]]] = None,
        description: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> dict:
        """
        Post a new cat.

        The image is written to the image store first; if the database insert
        then fails the stored image is removed again.

        Returns:
            The created cat, decorated like a listing entry
        """
        _validate_session_token(session_token)
        _validate_required_text(name, "name", MAX_CAT_NAME_LENGTH)
        _validate_optional_text(description, "description", MAX_DESCRIPTION_LENGTH)
        clean_tags = _normalize_tags(tags)
        _validate_coordinate(latitude, "latitude", 90)
        _validate_coordinate(longitude, "longitude", 180)
        validate_content_type(content_type)
        validate_image(image)

        db = self._session_factory()
        try:
            owner = self._credentials.resolve(db, session_token)
            owner_username = owner.username
            cat_id = str(uuid.uuid4())
            image_path = self._image_store.put(cat_image_key(cat_id, content_type), image, content_type)
            try:
                cat = self._engine.create_cat(
                    db,
                    session_token,
                    cat_id=cat_id,
                    name=name.strip(),
                    image_path=image_path,
                    tags=clean_tags,
                    description=_clean_optional_text(description),
                    latitude=latitude,
                    longitude=longitude,
                )
            except ServiceError:
                self._image_store.delete(image_path)
                raise
            return {
                "status": "created",
                "cat": self._repository.decorate_cats(db, [cat], owner_username)[0],
            }
        finally:
            db.close()

    @service_tool
    def list_cats(
        self,
        limit: int = DEFAULT_PAGE_LIMIT,
        cursor: Optional[str] = None,
        username: Optional[str] = None,
        session_token: Optional[str] = None,
    ) -> dict:
        """List cats newest first, optionally only those posted by ``username``."""
        if username is not None:
            _validate_username(username)
        db = self._session_factory()
        try:
            result = self._repository.list_cats(
                db,
                limit=limit,
                cursor=cursor,
                username=username,
                session_token=session_token,
            )
            return {"status": "ok", **result}
        finally:
            db.close()

    @service_tool
    def search_cats(
        self,
        tags: Union[str, List[str]],
        mode: str = "any",
        limit: int = DEFAULT_PAGE_LIMIT,
        cursor: Optional[str] = None,
        session_token: Optional[str] = None,
    ) -> dict:
        """
        Search cats by tag, newest first.

        Args:
            tags: Comma separated string or list; normalized like posted tags
            mode: "any" for cats with at least one tag, "all" for every tag
        """
        clean_tags = _normalize_tags(tags)
        if not clean_tags:
            raise ValidationIssue("At least one tag is required", field="tags", error_type="required")
        if mode not in TAG_SEARCH_MODES:
            raise ValidationIssue("mode must be 'any' or 'all'", field="mode", error_type="invalid_choice")

        db = self._session_factory()
        try:
            result = self._repository.search_cats_by_tags(
                db,
                clean_tags,
                mode=mode,
                limit=limit,
                cursor=cursor,
                session_token=session_token,
            )
            return {"status": "ok", "tags": clean_tags, "mode": mode, **result}
        finally:
            db.close()

    @service_tool
    def get_cat(self, cat_id: str, session_token: Optional[str] = None) -> dict:
        _validate_uuid(cat_id, "cat_id")
        db = self._session_factory()
        try:
            return {"status": "ok", "cat": self._repository.get_cat(db, cat_id, session_token)}
        finally:
            db.close()

    @service_tool
    def like_cat(self, session_token: str, cat_id: str, action: str = "like") -> dict:
        """Like or unlike a cat; repeating the same action changes nothing."""
        _validate_session_token(session_token)
        _validate_uuid(cat_id, "cat_id")
        if action not in LIKE_ACTIONS:
            raise ValidationIssue("action must be 'like' or 'unlike'", field="action", error_type="invalid_choice")

        db = self._session_factory()
        try:
            if action == "like":
                result = self._engine.like_cat(db, session_token, cat_id)
            else:
                result = self._engine.unlike_cat(db, session_token, cat_id)
            return {
                "status": "liked" if result.liked else "unliked",
                "changed": result.changed,
                "cat_id": result.cat_id,
                "likes": result.likes,
                "liked": result.liked,
            }
        finally:
            db.close()
