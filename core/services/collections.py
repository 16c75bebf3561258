"""
Collection services: owner-curated, named sets of cats.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import delete, update

from core.errors import NotFound, ValidationIssue
from core.models import Collection, CollectionCat, utcnow
from core.services.consistency import ConsistencyEngine
from core.services.credentials import CredentialStore
from core.services.guard import AuthorizationGuard
from core.services.shared import (
    COLLECTION_PAGE_LIMIT,
    MAX_COLLECTION_NAME_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    SessionFactory,
    _clean_optional_text,
    _validate_optional_text,
    _validate_required_text,
    _validate_session_token,
    _validate_username,
    _validate_uuid,
    atomic,
    logger,
    service_tool,
)
from core.services.social_graph import SocialGraphRepository, serialize_collection

DUPLICATE_NAME_MESSAGE = "A collection with this name already exists"


class CollectionService:
    def __init__(
        self,
        session_factory: SessionFactory,
        credentials: CredentialStore,
        guard: AuthorizationGuard,
        engine: ConsistencyEngine,
        repository: SocialGraphRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._credentials = credentials
        self._guard = guard
        self._engine = engine
        self._repository = repository
        self._clock = clock

    @service_tool
    def create_collection(
        self,
        session_token: str,
        name: str,
        description: Optional[str] = None,
        is_public: bool = True,
    ) -> dict:
        _validate_session_token(session_token)
        _validate_required_text(name, "name", MAX_COLLECTION_NAME_LENGTH)
        _validate_optional_text(description, "description", MAX_DESCRIPTION_LENGTH)
        if not isinstance(is_public, bool):
            raise ValidationIssue("is_public must be a boolean", field="is_public", error_type="invalid_type")

        db = self._session_factory()
        try:
            owner = self._credentials.resolve(db, session_token)
            owner_username = owner.username
            now = self._clock()
            collection_id = str(uuid.uuid4())
            with atomic(db, operation="create collection", conflict_message=DUPLICATE_NAME_MESSAGE):
                db.add(
                    Collection(
                        id=collection_id,
                        owner_username=owner_username,
                        name=name.strip(),
                        description=_clean_optional_text(description),
                        is_public=is_public,
                        cat_count=0,
                        created_at=now,
                        updated_at=now,
                    )
                )
            logger.info("collection_created", extra={"collection_id": collection_id, "owner": owner_username})
            return {"status": "created", "collection": self._serialize(db, collection_id, owner_username)}
        finally:
            db.close()

    @service_tool
    def list_collections(
        self,
        session_token: Optional[str] = None,
        username: Optional[str] = None,
        limit: int = COLLECTION_PAGE_LIMIT,
        cursor: Optional[str] = None,
    ) -> dict:
        """List collections of ``username``, or of the caller when omitted."""
        db = self._session_factory()
        try:
            if username:
                _validate_username(username)
                viewer = self._repository.viewer(db, session_token)
                owner_username = username
            else:
                _validate_session_token(session_token)
                viewer = owner_username = self._credentials.resolve(db, session_token).username
            result = self._repository.list_collections(
                db, owner_username, limit=limit, cursor=cursor, viewer_username=viewer
            )
            return {"status": "ok", "username": owner_username, **result}
        finally:
            db.close()

    @service_tool
    def get_collection(
        self,
        collection_id: str,
        session_token: Optional[str] = None,
        limit: int = COLLECTION_PAGE_LIMIT,
        cursor: Optional[str] = None,
    ) -> dict:
        """Return a collection and one page of its cats, most recently added first."""
        _validate_uuid(collection_id, "collection_id")
        db = self._session_factory()
        try:
            viewer = self._repository.viewer(db, session_token)
            result = self._repository.get_collection(
                db, collection_id, limit=limit, cursor=cursor, viewer_username=viewer
            )
            return {"status": "ok", **result}
        finally:
            db.close()

    @service_tool
    def update_collection(
        self,
        session_token: str,
        collection_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        is_public: Optional[bool] = None,
    ) -> dict:
        _validate_session_token(session_token)
        _validate_uuid(collection_id, "collection_id")
        values = {}
        if name is not None:
            _validate_required_text(name, "name", MAX_COLLECTION_NAME_LENGTH)
            values["name"] = name.strip()
        if description is not None:
            _validate_optional_text(description, "description", MAX_DESCRIPTION_LENGTH)
            values["description"] = _clean_optional_text(description)
        if is_public is not None:
            if not isinstance(is_public, bool):
                raise ValidationIssue("is_public must be a boolean", field="is_public", error_type="invalid_type")
            values["is_public"] = is_public
        if not values:
            raise ValidationIssue("Nothing to update", field="name", error_type="required")

        db = self._session_factory()
        try:
            owner_username = self._require_owned(db, session_token, collection_id)
            values["updated_at"] = self._clock()
            with atomic(db, operation="update collection", conflict_message=DUPLICATE_NAME_MESSAGE):
                db.execute(
                    update(Collection.__table__)
                    .where(Collection.__table__.c.id == collection_id)
                    .values(**values)
                )
            db.expire_all()
            return {"status": "updated", "collection": self._serialize(db, collection_id, owner_username)}
        finally:
            db.close()

    @service_tool
    def delete_collection(self, session_token: str, collection_id: str) -> dict:
        """Delete a collection together with its membership rows."""
        _validate_session_token(session_token)
        _validate_uuid(collection_id, "collection_id")
        db = self._session_factory()
        try:
            owner_username = self._require_owned(db, session_token, collection_id)
            with atomic(db, operation="delete collection"):
                db.execute(
                    delete(CollectionCat.__table__).where(
                        CollectionCat.__table__.c.collection_id == collection_id
                    )
                )
                deleted = db.execute(
                    delete(Collection.__table__).where(Collection.__table__.c.id == collection_id)
                ).rowcount
                if deleted == 0:
                    raise NotFound("Collection not found", field="collection_id")
            logger.info("collection_deleted", extra={"collection_id": collection_id, "owner": owner_username})
            return {"status": "deleted", "collection_id": collection_id}
        finally:
            db.close()

    @service_tool
    def add_cat_to_collection(self, session_token: str, collection_id: str, cat_id: str) -> dict:
        _validate_session_token(session_token)
        _validate_uuid(collection_id, "collection_id")
        _validate_uuid(cat_id, "cat_id")
        db = self._session_factory()
        try:
            result = self._engine.add_cat_to_collection(db, session_token, collection_id, cat_id)
            return {
                "status": "added",
                "changed": result.changed,
                "collection_id": result.collection_id,
                "cat_id": result.cat_id,
                "cat_count": result.cat_count,
            }
        finally:
            db.close()

    @service_tool
    def remove_cat_from_collection(self, session_token: str, collection_id: str, cat_id: str) -> dict:
        _validate_session_token(session_token)
        _validate_uuid(collection_id, "collection_id")
        _validate_uuid(cat_id, "cat_id")
        db = self._session_factory()
        try:
            result = self._engine.remove_cat_from_collection(db, session_token, collection_id, cat_id)
            return {
                "status": "removed",
                "changed": result.changed,
                "collection_id": result.collection_id,
                "cat_id": result.cat_id,
                "cat_count": result.cat_count,
            }
        finally:
            db.close()

    def _require_owned(self, db, session_token: str, collection_id: str) -> str:
        identity = self._credentials.resolve(db, session_token)
        collection = db.get(Collection, collection_id)
        if collection is None:
            raise NotFound("Collection not found", field="collection_id")
        self._guard.require_owner(identity, collection)
        return identity.username

    def _serialize(self, db, collection_id: str, owner_username: str) -> dict:
        collection = db.get(Collection, collection_id)
        owner = self._repository.fetch_profiles(db, [owner_username], owner_username)[owner_username]
        return serialize_collection(collection, owner)
