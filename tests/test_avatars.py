import os
from contextlib import contextmanager

os.environ.setdefault("DB_BACKEND", "sqlite")

import core.services.users as users_module
from core.errors import StorageFailure
from core.models import User

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def test_change_avatar_updates_profile(services, register, image_store, load):
    token = register("alice")
    viewer = register("bobcat")

    result = services.users.change_avatar(token, PNG_BYTES, "image/png")
    assert result["status"] == "updated"
    assert result["avatar_path"] == "avatars/alice.png"
    assert result["profile"]["avatar_path"] == "avatars/alice.png"
    assert image_store.objects["avatars/alice.png"] == (PNG_BYTES, "image/png")
    assert load(User, "alice").avatar_path == "avatars/alice.png"

    own = services.users.get_profile(token)
    assert own["profile"]["avatar_path"] == "avatars/alice.png"
    guest = services.users.get_profile(viewer, "alice")
    assert guest["profile"]["avatar_path"] == "avatars/alice.png"


def test_replacing_avatar_removes_previous_object(services, register, image_store):
    token = register("alice")
    services.users.change_avatar(token, PNG_BYTES, "image/png")
    result = services.users.change_avatar(token, b"\xff\xd8\xff\xe0", "image/jpeg")

    assert result["avatar_path"] == "avatars/alice.jpg"
    assert set(image_store.objects) == {"avatars/alice.jpg"}


def test_failed_update_removes_new_avatar(services, register, image_store, load, monkeypatch):
    token = register("alice")

    @contextmanager
    def failing_atomic(db, *, operation, conflict_message=None):
        raise StorageFailure(f"Failed to {operation}")
        yield db

    monkeypatch.setattr(users_module, "atomic", failing_atomic)
    result = services.users.change_avatar(token, PNG_BYTES, "image/png")

    assert result["error_type"] == "storage_failure"
    assert image_store.objects == {}
    assert load(User, "alice").avatar_path is None


def test_change_avatar_validation(services, register, image_store):
    token = register("alice")
    assert services.users.change_avatar(token, b"", "image/png")["error_type"] == "validation_error"
    assert services.users.change_avatar(token, PNG_BYTES, "image/bmp")["field"] == "content_type"
    assert services.users.change_avatar("f" * 64, PNG_BYTES, "image/png")["error_type"] == "auth_error"
    assert services.users.change_avatar(None, PNG_BYTES, "image/png")["error_type"] == "auth_error"
    assert image_store.objects == {}
