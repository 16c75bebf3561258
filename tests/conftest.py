import hashlib
import itertools
import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DB_BACKEND", "sqlite")

import pytest
from sqlalchemy import func
from sqlalchemy.orm import sessionmaker

from core.db import build_engine
from core.images import MemoryImageStore
from core.models import Base
from core.services.container import build_services


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
CLOCK_START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TickingClock:
    """Returns a strictly increasing timestamp on every call."""

    def __init__(self, start=CLOCK_START, step=timedelta(seconds=1)):
        self._start = start
        self._step = step
        self._ticks = itertools.count()

    def __call__(self) -> datetime:
        return self._start + self._step * next(self._ticks)


def password_hash(seed: str) -> str:
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'catgraph.sqlite'}", backend="sqlite")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def image_store():
    return MemoryImageStore()


@pytest.fixture
def services(session_factory, image_store, clock):
    return build_services(session_factory, image_store=image_store, clock=clock)


@pytest.fixture
def hash_password():
    return password_hash


@pytest.fixture
def register(services):
    def _register(username: str, email: str = None) -> str:
        result = services.users.register(
            username,
            password_hash(username),
            email or f"{username}@example.com",
        )
        assert result["status"] == "registered", result
        return result["session_token"]

    return _register


@pytest.fixture
def post_cat(services):
    def _post(token: str, name: str = "Tom", **kwargs) -> dict:
        result = services.cats.create_cat(token, name, PNG_BYTES, content_type="image/png", **kwargs)
        assert result["status"] == "created", result
        return result["cat"]

    return _post


@pytest.fixture
def count_rows(session_factory):
    def _count(model, *criteria) -> int:
        db = session_factory()
        try:
            query = db.query(func.count()).select_from(model)
            if criteria:
                query = query.filter(*criteria)
            return query.scalar()
        finally:
            db.close()

    return _count


@pytest.fixture
def load(session_factory):
    def _load(model, key):
        db = session_factory()
        try:
            row = db.get(model, key)
            if row is not None:
                db.expunge(row)
            return row
        finally:
            db.close()

    return _load
