import os
import uuid

os.environ.setdefault("DB_BACKEND", "sqlite")

import pytest
from sqlalchemy import event

from core.errors import StorageFailure
from core.models import Cat, User
from core.services.social_graph import fallback_profile


def test_create_cat_increments_post_count_once(services, register, post_cat, load, image_store):
    token = register("alice")
    cat = post_cat(
        token,
        "Whiskers",
        tags="Tabby, orange ,tabby",
        description="  Sleepy  ",
        latitude=38.7,
        longitude=-9.1,
    )

    assert cat["name"] == "Whiskers"
    assert cat["tags"] == ["tabby", "orange"]
    assert cat["description"] == "Sleepy"
    assert cat["location"] == {"latitude": 38.7, "longitude": -9.1}
    assert cat["likes"] == 0
    assert cat["poster"]["username"] == "alice"
    assert cat["poster"]["post_count"] == 1
    assert cat["image_path"] == f"cats/{cat['id']}.png"
    assert cat["image_path"] in image_store.objects
    assert load(User, "alice").post_count == 1

    post_cat(token, "Second")
    assert load(User, "alice").post_count == 2


def test_create_cat_validation(services, register, count_rows):
    token = register("alice")
    image = b"\x89PNG"

    assert services.cats.create_cat(token, "", image)["error_type"] == "validation_error"
    assert services.cats.create_cat(token, "Tom", b"")["error_type"] == "validation_error"
    assert services.cats.create_cat(token, "Tom", image, content_type="text/plain")["field"] == "content_type"
    assert services.cats.create_cat(token, "Tom", image, latitude=91.0)["field"] == "latitude"
    assert services.cats.create_cat(token, "Tom", image, tags=[f"t{i}" for i in range(11)])["field"] == "tags"
    assert services.cats.create_cat("f" * 64, "Tom", image)["error_type"] == "auth_error"
    assert count_rows(Cat) == 0


def test_failed_insert_removes_stored_image(services, register, image_store, monkeypatch):
    token = register("alice")

    def broken_create(*args, **kwargs):
        raise StorageFailure("Failed to create cat")

    monkeypatch.setattr(services.engine, "create_cat", broken_create)
    result = services.cats.create_cat(token, "Tom", b"\x89PNG", content_type="image/png")

    assert result["error_type"] == "storage_failure"
    assert result["retryable"] is True
    assert image_store.objects == {}


def test_get_cat(services, register, post_cat):
    token = register("alice")
    cat = post_cat(token)
    assert services.cats.get_cat(cat["id"])["cat"]["id"] == cat["id"]
    assert services.cats.get_cat(str(uuid.uuid4()))["error_type"] == "not_found"
    assert services.cats.get_cat("nope")["error_type"] == "validation_error"


def test_profiles_fall_back_for_missing_users(services, session_factory, register):
    register("alice")
    db = session_factory()
    try:
        profiles = services.repository.fetch_profiles(db, ["alice", "ghosty"])
    finally:
        db.close()

    assert profiles["ghosty"] == fallback_profile("ghosty")
    assert profiles["ghosty"]["follower_count"] == 0
    assert profiles["ghosty"]["is_followed"] is None
    assert profiles["alice"]["username"] == "alice"


def test_poster_metadata_is_batched(services, session_factory, engine, register, post_cat):
    tokens = [register(name) for name in ("alice", "bobcat", "carol")]
    for token in tokens:
        post_cat(token)
        post_cat(token)
    viewer = tokens[0]
    services.follows.follow_user(viewer, "bobcat")

    db = session_factory()
    try:
        cats = db.query(Cat).all()
        statements = []

        def _record(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement)

        event.listen(engine, "before_cursor_execute", _record)
        try:
            decorated = services.repository.decorate_cats(db, cats, "alice")
        finally:
            event.remove(engine, "before_cursor_execute", _record)
    finally:
        db.close()

    # one users query, one follows query, one likes query
    assert len(statements) == 3
    posters = {item["poster"]["username"]: item["poster"]["is_followed"] for item in decorated}
    assert posters == {"alice": False, "bobcat": True, "carol": False}


@pytest.mark.parametrize("missing_token", [None, ""])
def test_anonymous_listing_has_no_follow_flags(services, register, post_cat, missing_token):
    post_cat(register("alice"))
    page = services.cats.list_cats(session_token=missing_token)
    assert page["cats"][0]["poster"]["is_followed"] is None
