"""
Race-safe edge mutations with synchronized denormalized counters.

Every mutation follows the same protocol inside one transaction:

1. write exactly one edge row with an idempotent primitive
   (INSERT ... ON CONFLICT DO NOTHING, or a keyed DELETE),
2. read back how many rows the store actually changed (0 or 1),
3. move the counter(s) by exactly that amount.

A duplicate follow/like/add therefore changes nothing, and concurrent
duplicates cannot double count. Counters are never recomputed from an
aggregate and never written directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence

from sqlalchemy import and_, case, delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from core.errors import NotFound, StorageFailure
from core.models import Cat, CatTag, Collection, CollectionCat, Follow, Like, User, utcnow
from core.services.credentials import CredentialStore
from core.services.guard import AuthorizationGuard
from core.services.shared import atomic, logger


users_table = User.__table__
follows_table = Follow.__table__
cats_table = Cat.__table__
cat_tags_table = CatTag.__table__
likes_table = Like.__table__
collections_table = Collection.__table__
collection_cats_table = CollectionCat.__table__


@dataclass(frozen=True)
class FollowCounts:
    changed: bool
    follower_username: str
    followee_username: str
    following_count: int
    follower_count: int


@dataclass(frozen=True)
class LikeResult:
    changed: bool
    cat_id: str
    likes: int
    liked: bool


@dataclass(frozen=True)
class MembershipResult:
    changed: bool
    collection_id: str
    cat_id: str
    cat_count: int


class ConsistencyEngine:
    def __init__(
        self,
        credentials: CredentialStore,
        guard: AuthorizationGuard,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._credentials = credentials
        self._guard = guard
        self._clock = clock

    # ------------------------------------------------------------------
    # Follow edges
    # ------------------------------------------------------------------

    def follow_user(self, db, session_token: str, target_username: str) -> FollowCounts:
        follower = self._credentials.resolve(db, session_token)
        self._guard.require_not_self(follower, target_username, "follow")
        self._require_user(db, target_username)
        follower_username = follower.username

        with atomic(db, operation="follow user"):
            inserted = self._insert_ignore(
                db,
                follows_table,
                {
                    "follower_username": follower_username,
                    "followee_username": target_username,
                    "followed_at": self._clock(),
                },
                ("follower_username", "followee_username"),
            )
            following_count, follower_count = self._shift_follow_counters(
                db, follower_username, target_username, inserted
            )

        if inserted:
            logger.info("follow_created", extra={"follower": follower_username, "followee": target_username})
        return FollowCounts(
            changed=bool(inserted),
            follower_username=follower_username,
            followee_username=target_username,
            following_count=following_count,
            follower_count=follower_count,
        )

    def unfollow_user(self, db, session_token: str, target_username: str) -> FollowCounts:
        follower = self._credentials.resolve(db, session_token)
        self._guard.require_not_self(follower, target_username, "unfollow")
        self._require_user(db, target_username)
        follower_username = follower.username

        with atomic(db, operation="unfollow user"):
            deleted = db.execute(
                delete(follows_table).where(
                    and_(
                        follows_table.c.follower_username == follower_username,
                        follows_table.c.followee_username == target_username,
                    )
                )
            ).rowcount
            following_count, follower_count = self._shift_follow_counters(
                db, follower_username, target_username, -deleted
            )

        if deleted:
            logger.info("follow_removed", extra={"follower": follower_username, "followee": target_username})
        return FollowCounts(
            changed=bool(deleted),
            follower_username=follower_username,
            followee_username=target_username,
            following_count=following_count,
            follower_count=follower_count,
        )

    def _shift_follow_counters(self, db, follower_username: str, followee_username: str, delta: int):
        # Lock both users rows in username order so A->B and B->A cannot deadlock.
        shifts = sorted(
            [(follower_username, "following_count"), (followee_username, "follower_count")]
        )
        counts = {}
        for username, column_name in shifts:
            counts[column_name] = self._shift_counter(
                db,
                users_table,
                users_table.c.username == username,
                column_name,
                delta,
            )
        if counts["following_count"] is None or counts["follower_count"] is None:
            raise NotFound("User not found", field="target_username")
        return counts["following_count"], counts["follower_count"]

    # ------------------------------------------------------------------
    # Like edges
    # ------------------------------------------------------------------

    def like_cat(self, db, session_token: str, cat_id: str) -> LikeResult:
        user = self._credentials.resolve(db, session_token)
        username = user.username
        self._require_cat(db, cat_id)

        with atomic(db, operation="like cat"):
            inserted = self._insert_ignore(
                db,
                likes_table,
                {"cat_id": cat_id, "username": username, "liked_at": self._clock()},
                ("cat_id", "username"),
            )
            likes = self._shift_counter(db, cats_table, cats_table.c.id == cat_id, "likes", inserted)
            if likes is None:
                raise NotFound("Cat not found", field="cat_id")

        return LikeResult(changed=bool(inserted), cat_id=cat_id, likes=likes, liked=True)

    def unlike_cat(self, db, session_token: str, cat_id: str) -> LikeResult:
        user = self._credentials.resolve(db, session_token)
        username = user.username
        self._require_cat(db, cat_id)

        with atomic(db, operation="remove like"):
            deleted = db.execute(
                delete(likes_table).where(
                    and_(likes_table.c.cat_id == cat_id, likes_table.c.username == username)
                )
            ).rowcount
            likes = self._shift_counter(db, cats_table, cats_table.c.id == cat_id, "likes", -deleted)
            if likes is None:
                raise NotFound("Cat not found", field="cat_id")

        return LikeResult(changed=bool(deleted), cat_id=cat_id, likes=likes, liked=False)

    # ------------------------------------------------------------------
    # Content creation
    # ------------------------------------------------------------------

    def create_cat(
        self,
        db,
        session_token: str,
        *,
        cat_id: str,
        name: str,
        image_path: str,
        tags: Optional[Sequence[str]] = None,
        description: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> Cat:
        """Insert a cat with its tag rows and bump its owner's post_count in the same transaction."""
        owner = self._credentials.resolve(db, session_token)
        username = owner.username

        with atomic(db, operation="create cat"):
            inserted = db.execute(
                cats_table.insert().values(
                    id=cat_id,
                    name=name,
                    tags=list(tags or []),
                    username=username,
                    description=description,
                    location_latitude=latitude,
                    location_longitude=longitude,
                    image_path=image_path,
                    likes=0,
                    created_at=self._clock(),
                )
            ).rowcount
            if tags:
                db.execute(
                    cat_tags_table.insert(),
                    [{"cat_id": cat_id, "tag": tag} for tag in dict.fromkeys(tags)],
                )
            post_count = self._shift_counter(
                db, users_table, users_table.c.username == username, "post_count", inserted
            )
            if post_count is None:
                raise NotFound("User not found", field="session_token")

        logger.info("cat_created", extra={"cat_id": cat_id, "owner": username})
        return db.get(Cat, cat_id)

    # ------------------------------------------------------------------
    # Collection membership
    # ------------------------------------------------------------------

    def add_cat_to_collection(self, db, session_token: str, collection_id: str, cat_id: str) -> MembershipResult:
        username = self._authorize_collection(db, session_token, collection_id)
        self._require_cat(db, cat_id)
        now = self._clock()

        with atomic(db, operation="save cat to collection"):
            inserted = self._insert_ignore(
                db,
                collection_cats_table,
                {"collection_id": collection_id, "cat_id": cat_id, "added_at": now},
                ("collection_id", "cat_id"),
            )
            cat_count = self._shift_collection_count(db, collection_id, username, inserted, now)

        return MembershipResult(
            changed=bool(inserted),
            collection_id=collection_id,
            cat_id=cat_id,
            cat_count=cat_count,
        )

    def remove_cat_from_collection(
        self, db, session_token: str, collection_id: str, cat_id: str
    ) -> MembershipResult:
        username = self._authorize_collection(db, session_token, collection_id)
        self._require_cat(db, cat_id)
        now = self._clock()

        with atomic(db, operation="remove cat from collection"):
            deleted = db.execute(
                delete(collection_cats_table).where(
                    and_(
                        collection_cats_table.c.collection_id == collection_id,
                        collection_cats_table.c.cat_id == cat_id,
                    )
                )
            ).rowcount
            cat_count = self._shift_collection_count(db, collection_id, username, -deleted, now)

        return MembershipResult(
            changed=bool(deleted),
            collection_id=collection_id,
            cat_id=cat_id,
            cat_count=cat_count,
        )

    def _authorize_collection(self, db, session_token: str, collection_id: str) -> str:
        identity = self._credentials.resolve(db, session_token)
        collection = db.get(Collection, collection_id)
        if collection is None:
            raise NotFound("Collection not found", field="collection_id")
        self._guard.require_owner(identity, collection)
        return identity.username

    def _shift_collection_count(self, db, collection_id: str, owner_username: str, delta: int, now: datetime) -> int:
        cat_count = self._shift_counter(
            db,
            collections_table,
            and_(
                collections_table.c.id == collection_id,
                collections_table.c.owner_username == owner_username,
            ),
            "cat_count",
            delta,
            extra_values={"updated_at": now},
        )
        if cat_count is None:
            raise NotFound("Collection not found", field="collection_id")
        return cat_count

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    @staticmethod
    def _insert_ignore(db, table, values: dict, conflict_columns: Sequence[str]) -> int:
        """Insert one row unless its key already exists; return rows inserted."""
        dialect = db.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(table).values(**values).on_conflict_do_nothing(index_elements=list(conflict_columns))
        elif dialect == "sqlite":
            stmt = sqlite_insert(table).values(**values).on_conflict_do_nothing(index_elements=list(conflict_columns))
        else:
            raise StorageFailure(f"Unsupported database dialect: {dialect}")
        return db.execute(stmt).rowcount

    @staticmethod
    def _shift_counter(
        db,
        table,
        where,
        column_name: str,
        delta: int,
        extra_values: Optional[dict] = None,
    ) -> Optional[int]:
        """
        Move ``column_name`` by ``delta`` (floored at zero) and return the new value.

        Returns None when ``where`` matches no row.
        """
        column = table.c[column_name]
        if delta >= 0:
            new_value = column + delta
        else:
            new_value = case((column > -delta, column + delta), else_=0)
        values = {column_name: new_value}
        if extra_values:
            values.update(extra_values)
        result = db.execute(update(table).where(where).values(values))
        if result.rowcount == 0:
            return None
        return int(db.execute(select(column).where(where)).scalar_one())

    # ------------------------------------------------------------------
    # Existence checks (run before the transaction writes anything)
    # ------------------------------------------------------------------

    @staticmethod
    def _require_user(db, username: str) -> None:
        exists = db.query(User.username).filter(User.username == username).first()
        if not exists:
            raise NotFound("Target user not found", field="target_username")

    @staticmethod
    def _require_cat(db, cat_id: str) -> None:
        exists = db.query(Cat.id).filter(Cat.id == cat_id).first()
        if not exists:
            raise NotFound("Cat not found", field="cat_id")
