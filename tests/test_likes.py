import os
import uuid
from concurrent.futures import ThreadPoolExecutor

os.environ.setdefault("DB_BACKEND", "sqlite")

from core.models import Cat, Like


def test_like_is_idempotent(services, register, post_cat, load, count_rows):
    owner = register("alice")
    fan = register("bobcat")
    cat = post_cat(owner)

    first = services.cats.like_cat(fan, cat["id"])
    assert first == {"status": "liked", "changed": True, "cat_id": cat["id"], "likes": 1, "liked": True}

    second = services.cats.like_cat(fan, cat["id"])
    assert second["changed"] is False
    assert second["likes"] == 1
    assert load(Cat, cat["id"]).likes == 1
    assert count_rows(Like) == 1


def test_unlike_is_idempotent_and_floored(services, register, post_cat, load):
    owner = register("alice")
    cat = post_cat(owner)

    services.cats.like_cat(owner, cat["id"])
    removed = services.cats.like_cat(owner, cat["id"], "unlike")
    assert removed["status"] == "unliked"
    assert removed["likes"] == 0
    assert removed["liked"] is False

    again = services.cats.like_cat(owner, cat["id"], "unlike")
    assert again["changed"] is False
    assert again["likes"] == 0
    assert load(Cat, cat["id"]).likes == 0


def test_like_missing_cat_is_not_found(services, register, count_rows):
    token = register("alice")
    result = services.cats.like_cat(token, str(uuid.uuid4()))
    assert result["error_type"] == "not_found"
    assert count_rows(Like) == 0

    assert services.cats.like_cat(token, "not-a-uuid")["error_type"] == "validation_error"
    assert services.cats.like_cat(token, str(uuid.uuid4()), "love")["error_type"] == "validation_error"


def test_liked_flag_follows_viewer(services, register, post_cat):
    owner = register("alice")
    fan = register("bobcat")
    liked = post_cat(owner, "Liked")
    other = post_cat(owner, "Other")
    services.cats.like_cat(fan, liked["id"])

    page = services.cats.list_cats(session_token=fan)
    flags = {cat["id"]: cat["user_liked"] for cat in page["cats"]}
    assert flags == {liked["id"]: True, other["id"]: False}

    anonymous = services.cats.list_cats()
    assert all(cat["user_liked"] is False for cat in anonymous["cats"])

    single = services.cats.get_cat(liked["id"], fan)
    assert single["cat"]["user_liked"] is True
    assert single["cat"]["likes"] == 1


def test_concurrent_likes_from_two_users_count_twice(services, register, post_cat, load, count_rows):
    owner = register("alice")
    fans = [register("bobcat"), register("carol")]
    cat = post_cat(owner)

    with ThreadPoolExecutor(max_workers=2) as executor:
        results = list(executor.map(lambda token: services.cats.like_cat(token, cat["id"]), fans))

    assert all(result["status"] == "liked" for result in results)
    assert load(Cat, cat["id"]).likes == 2
    assert count_rows(Like, Like.cat_id == cat["id"]) == 2


def test_concurrent_double_like_from_one_user_counts_once(services, register, post_cat, load, count_rows):
    owner = register("alice")
    fan = register("bobcat")
    cat = post_cat(owner)

    with ThreadPoolExecutor(max_workers=4) as executor:
        results = list(executor.map(lambda _: services.cats.like_cat(fan, cat["id"]), range(4)))

    assert all(result["status"] == "liked" for result in results)
    assert sum(1 for result in results if result["changed"]) == 1
    assert load(Cat, cat["id"]).likes == 1
    assert count_rows(Like, Like.cat_id == cat["id"]) == 1
