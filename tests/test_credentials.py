import os
import re

os.environ.setdefault("DB_BACKEND", "sqlite")

import pytest

from core.errors import AuthError, NotFound
from core.models import User
from core.services.credentials import CredentialStore, generate_session_token


def test_generated_tokens_are_fixed_length_hex():
    tokens = {generate_session_token() for _ in range(20)}
    assert len(tokens) == 20
    assert all(re.fullmatch(r"[0-9a-f]{64}", token) for token in tokens)


def test_register_issues_token_bound_to_user(services, register, load):
    token = register("alice")
    assert load(User, "alice").session_token == token

    profile = services.users.get_profile(token)
    assert profile["status"] == "ok"
    assert profile["profile"]["username"] == "alice"
    assert profile["profile"]["email"] == "alice@example.com"


def test_login_rotates_token_and_invalidates_previous(services, register, hash_password):
    first = register("alice")

    login = services.users.login("alice@example.com", hash_password("alice"))
    assert login["status"] == "logged_in"
    second = login["session_token"]
    assert second != first

    stale = services.users.get_profile(first)
    assert stale["status"] == "error"
    assert stale["error_type"] == "auth_error"
    assert services.users.get_profile(second)["status"] == "ok"


def test_login_accepts_username(services, register, hash_password):
    register("alice")
    login = services.users.login("alice", hash_password("alice"))
    assert login["status"] == "logged_in"
    assert login["profile"]["username"] == "alice"


def test_login_rejects_wrong_password(services, register, hash_password):
    register("alice")
    result = services.users.login("alice@example.com", hash_password("not-alice"))
    assert result["status"] == "error"
    assert result["error_type"] == "auth_error"


def test_resolve_rejects_missing_and_unknown_tokens(session_factory):
    store = CredentialStore()
    db = session_factory()
    try:
        with pytest.raises(AuthError):
            store.resolve(db, None)
        with pytest.raises(AuthError):
            store.resolve(db, "f" * 64)
        assert store.resolve_optional(db, None) is None
        with pytest.raises(AuthError):
            store.resolve_optional(db, "f" * 64)
    finally:
        db.close()


def test_issue_for_unknown_user_fails(session_factory):
    store = CredentialStore()
    db = session_factory()
    try:
        with pytest.raises(NotFound):
            store.issue(db, "nobody")
        db.rollback()
    finally:
        db.close()


def test_register_duplicate_username_and_email_conflict(services, register, hash_password):
    register("alice")

    same_name = services.users.register("alice", hash_password("x"), "other@example.com")
    assert same_name["error_type"] == "conflict"
    assert same_name["field"] == "username"

    same_email = services.users.register("alicia", hash_password("x"), "alice@example.com")
    assert same_email["error_type"] == "conflict"
    assert same_email["field"] == "email"


def test_register_validates_fields(services, hash_password):
    short = services.users.register("abc", hash_password("abc"), "abc@example.com")
    assert short["error_type"] == "validation_error"
    assert short["field"] == "username"

    bad_hash = services.users.register("alice", "not-a-hash", "alice@example.com")
    assert bad_hash["error_type"] == "validation_error"
    assert bad_hash["field"] == "password_hash"

    bad_email = services.users.register("alice", hash_password("alice"), "not-an-email")
    assert bad_email["error_type"] == "validation_error"
    assert bad_email["field"] == "email"


def test_check_username(services, register):
    register("alice")
    assert services.users.check_username("alice")["available"] is False
    assert services.users.check_username("alicia")["available"] is True
    assert services.users.check_username("al")["error_type"] == "validation_error"


def test_change_password_rotates_token(services, register, hash_password):
    token = register("alice")
    wrong = services.users.change_password(token, hash_password("nope"), hash_password("new"))
    assert wrong["error_type"] == "auth_error"

    changed = services.users.change_password(token, hash_password("alice"), hash_password("new"))
    assert changed["status"] == "updated"
    assert changed["session_token"] != token
    assert services.users.get_profile(token)["error_type"] == "auth_error"
    assert services.users.login("alice", hash_password("new"))["status"] == "logged_in"


def test_update_profile_leaves_counters_alone(services, register, post_cat):
    token = register("alice")
    post_cat(token)

    result = services.users.update_profile(token, bio="  Cat person  ", location="Lisbon")
    assert result["status"] == "updated"
    assert result["profile"]["bio"] == "Cat person"
    assert result["profile"]["location"] == "Lisbon"
    assert result["profile"]["post_count"] == 1
