import os
from datetime import timezone

os.environ.setdefault("DB_BACKEND", "sqlite")


def test_core_imports():
    import app.main  # noqa: F401
    import core.models  # noqa: F401
    import core.services.container  # noqa: F401


def test_core_smoke_lifecycle(services, register):
    alice = register("alice")
    bobcat = register("bobcat")

    posted = services.cats.create_cat(alice, "Smoke", b"\xff\xd8\xff\xe0", tags=["smoke"])
    assert posted["status"] == "created"
    cat_id = posted["cat"]["id"]

    assert services.follows.follow_user(bobcat, "alice")["follower_count"] == 1
    assert services.cats.like_cat(bobcat, cat_id)["likes"] == 1
    assert services.comments.create_comment(bobcat, cat_id, "Nice")["status"] == "created"

    collection = services.collections.create_collection(bobcat, "Smoke set")["collection"]
    added = services.collections.add_cat_to_collection(bobcat, collection["id"], cat_id)
    assert added["cat_count"] == 1

    profile = services.users.get_profile(bobcat, "alice")
    assert profile["status"] == "ok"
    assert profile["profile"]["follower_count"] == 1
    assert profile["profile"]["post_count"] == 1
    assert profile["profile"]["is_followed"] is True

    own = services.users.get_profile(bobcat)
    assert own["profile"]["email"] == "bobcat@example.com"
    assert [item["id"] for item in own["profile"]["collections"]] == [collection["id"]]


def test_default_clock_is_timezone_aware_utc(session_factory, image_store, load):
    from core.models import Cat, utcnow
    from core.services.container import build_services

    assert utcnow().tzinfo is timezone.utc

    services = build_services(session_factory, image_store=image_store)
    token = services.users.register("alice", "a" * 64, "alice@example.com")["session_token"]
    before = utcnow().replace(tzinfo=None)
    posted = services.cats.create_cat(token, "Clock", b"\xff\xd8\xff\xe0")
    after = utcnow().replace(tzinfo=None)

    created_at = load(Cat, posted["cat"]["id"]).created_at.replace(tzinfo=None)
    assert before <= created_at <= after
