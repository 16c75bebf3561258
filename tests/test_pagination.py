import base64
import json
import os
from datetime import datetime

os.environ.setdefault("DB_BACKEND", "sqlite")

import pytest

from core.errors import ValidationIssue
from core.services.container import build_services
from core.services.pagination import CursorKey, PaginationCodec


FIXED_TIME = datetime(2026, 3, 1, 9, 30, 0)


def _raw_cursor(payload) -> str:
    return base64.urlsafe_b64encode(json.dumps(payload).encode("utf-8")).decode("ascii").rstrip("=")


def _walk(list_page, limit):
    seen = []
    cursor = None
    pages = 0
    while True:
        page = list_page(limit=limit, cursor=cursor)
        assert page["status"] == "ok", page
        seen.extend(cat["id"] for cat in page["cats"])
        pages += 1
        cursor = page["next_cursor"]
        if cursor is None:
            return seen, pages
        assert pages < 100


def test_cursor_round_trip():
    codec = PaginationCodec()
    cursor = codec.encode(FIXED_TIME, "abc")
    assert isinstance(cursor, str)
    assert codec.decode(cursor) == CursorKey(sort_key=FIXED_TIME, tie_break_id="abc")
    assert codec.decode(None) is None
    assert codec.decode("") is None


def test_single_field_cursor_round_trip():
    codec = PaginationCodec()
    assert codec.decode_single(codec.encode_single(FIXED_TIME)) == CursorKey(sort_key=FIXED_TIME)


@pytest.mark.parametrize(
    "cursor",
    [
        "%%%not-base64%%%",
        _raw_cursor(["ts", "id"]),
        _raw_cursor({"ts": FIXED_TIME.isoformat()}),
        _raw_cursor({"ts": FIXED_TIME.isoformat(), "id": ""}),
        _raw_cursor({"ts": "yesterday", "id": "abc"}),
        _raw_cursor({"ts": FIXED_TIME.isoformat(), "id": "abc", "extra": 1}),
        base64.urlsafe_b64encode(b"not json").decode("ascii"),
    ],
)
def test_malformed_cursor_is_a_validation_error(cursor):
    with pytest.raises(ValidationIssue) as excinfo:
        PaginationCodec().decode(cursor)
    assert excinfo.value.field == "cursor"


def test_single_field_decoder_rejects_dual_cursor():
    codec = PaginationCodec()
    with pytest.raises(ValidationIssue):
        codec.decode_single(codec.encode(FIXED_TIME, "abc"))


def test_three_items_two_pages(services, register, post_cat):
    token = register("alice")
    oldest = post_cat(token, "Oldest")
    middle = post_cat(token, "Middle")
    newest = post_cat(token, "Newest")

    first = services.cats.list_cats(limit=2)
    assert [cat["id"] for cat in first["cats"]] == [newest["id"], middle["id"]]
    assert first["next_cursor"] is not None

    second = services.cats.list_cats(limit=2, cursor=first["next_cursor"])
    assert [cat["id"] for cat in second["cats"]] == [oldest["id"]]
    assert second["next_cursor"] is None


def test_exact_fit_has_no_next_cursor(services, register, post_cat):
    token = register("alice")
    post_cat(token)
    post_cat(token)
    page = services.cats.list_cats(limit=2)
    assert len(page["cats"]) == 2
    assert page["next_cursor"] is None


@pytest.mark.parametrize("limit", [1, 2, 3, 4, 7, 8, 50])
def test_walk_yields_every_cat_once_in_order(services, register, post_cat, limit):
    token = register("alice")
    created = [post_cat(token, f"Cat {index}")["id"] for index in range(7)]

    seen, pages = _walk(services.cats.list_cats, limit)

    assert seen == list(reversed(created))
    assert pages == max(1, -(-len(created) // limit))


@pytest.mark.parametrize("limit", [1, 2, 3, 4, 50])
def test_tag_search_walk_yields_every_match_once_in_order(services, register, post_cat, limit):
    token = register("alice")
    tabbies = []
    for index in range(8):
        tags = ["tabby"] if index % 2 == 0 else ["siamese"]
        cat = post_cat(token, f"Cat {index}", tags=tags)
        if index % 2 == 0:
            tabbies.append(cat["id"])

    seen, pages = _walk(lambda **page: services.cats.search_cats("tabby", **page), limit)

    assert seen == list(reversed(tabbies))
    assert pages == max(1, -(-len(tabbies) // limit))


@pytest.mark.parametrize("limit", [1, 2, 3, 5])
def test_shared_timestamps_break_ties_by_id(session_factory, image_store, limit):
    services = build_services(session_factory, image_store=image_store, clock=lambda: FIXED_TIME)
    token = services.users.register("alice", "a" * 64, "alice@example.com")["session_token"]
    ids = []
    for index in range(6):
        result = services.cats.create_cat(token, f"Twin {index}", b"\x89PNG", content_type="image/png")
        ids.append(result["cat"]["id"])

    seen, _ = _walk(services.cats.list_cats, limit)
    assert seen == sorted(ids, reverse=True)

    again, _ = _walk(services.cats.list_cats, limit)
    assert again == seen


def test_username_filter(services, register, post_cat):
    alice = register("alice")
    bobby = register("bobby")
    mine = post_cat(alice)
    post_cat(bobby)

    page = services.cats.list_cats(username="alice")
    assert [cat["id"] for cat in page["cats"]] == [mine["id"]]


@pytest.mark.parametrize("limit", [0, -1, 101, "ten"])
def test_invalid_limit_is_rejected(services, limit):
    result = services.cats.list_cats(limit=limit)
    assert result["status"] == "error"
    assert result["error_type"] == "validation_error"
    assert result["field"] == "limit"


def test_invalid_cursor_reported_by_service(services):
    result = services.cats.list_cats(cursor="garbage!!")
    assert result["error_type"] == "validation_error"
    assert result["field"] == "cursor"
