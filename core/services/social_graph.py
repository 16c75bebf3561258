"""
Read-side composition for cats, follows, collections and comments.

Pages are fetched with PaginationCodec, then decorated with profile and
"liked by me" metadata using one batched query per concern rather than one
query per row.
"""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import distinct, func, select

from core.errors import NotFound
from core.models import Cat, CatTag, Collection, CollectionCat, Comment, Follow, Like, User
from core.services.credentials import CredentialStore
from core.services.pagination import PaginationCodec
from core.services.shared import PROFILE_COLLECTIONS_LIMIT, isoformat, reading


def fallback_profile(username: str) -> dict:
    """Profile used when a referenced user row is missing."""
    return {
        "username": username,
        "bio": None,
        "location": None,
        "avatar_path": None,
        "post_count": 0,
        "follower_count": 0,
        "following_count": 0,
        "is_followed": None,
    }


def serialize_profile(user: User, is_followed: Optional[bool] = None) -> dict:
    return {
        "username": user.username,
        "bio": user.bio,
        "location": user.location,
        "avatar_path": user.avatar_path,
        "post_count": int(user.post_count or 0),
        "follower_count": int(user.follower_count or 0),
        "following_count": int(user.following_count or 0),
        "is_followed": is_followed,
    }


def serialize_private_profile(user: User) -> dict:
    profile = serialize_profile(user)
    profile.pop("is_followed")
    profile["email"] = user.email
    profile["created_at"] = isoformat(user.created_at)
    return profile


def serialize_cat(cat: Cat, poster: dict, user_liked: bool = False) -> dict:
    return {
        "id": cat.id,
        "name": cat.name,
        "tags": list(cat.tags or []),
        "created_at": isoformat(cat.created_at),
        "description": cat.description,
        "location": {
            "latitude": cat.location_latitude,
            "longitude": cat.location_longitude,
        },
        "image_path": cat.image_path,
        "likes": int(cat.likes or 0),
        "poster": poster,
        "user_liked": user_liked,
    }


def serialize_collection(collection: Collection, owner: dict) -> dict:
    return {
        "id": collection.id,
        "owner": owner,
        "name": collection.name,
        "description": collection.description,
        "is_public": bool(collection.is_public),
        "cat_count": int(collection.cat_count or 0),
        "created_at": isoformat(collection.created_at),
        "updated_at": isoformat(collection.updated_at),
    }


def serialize_comment(comment: Comment, author: dict, viewer_username: Optional[str] = None) -> dict:
    return {
        "comment_id": comment.comment_id,
        "cat_id": comment.cat_id,
        "comment": comment.comment,
        "comment_at": isoformat(comment.comment_at),
        "user": author,
        "is_owner": bool(viewer_username) and comment.username == viewer_username,
    }


class SocialGraphRepository:
    def __init__(self, codec: PaginationCodec, credentials: CredentialStore):
        self._codec = codec
        self._credentials = credentials

    # ------------------------------------------------------------------
    # Batched lookups
    # ------------------------------------------------------------------

    def viewer(self, db, session_token: Optional[str]) -> Optional[str]:
        user = self._credentials.resolve_optional(db, session_token)
        return user.username if user is not None else None

    def fetch_profiles(self, db, usernames: Iterable[str], viewer_username: Optional[str] = None) -> dict:
        """
        Load public profiles for ``usernames`` in one users query.

        When a viewer is given, a second query marks which of them the viewer
        follows. Missing users map to a fallback profile.
        """
        wanted = sorted(set(usernames))
        if not wanted:
            return {}

        with reading(db, operation="load user profiles"):
            users = db.query(User).filter(User.username.in_(wanted)).all()
            followed = set()
            if viewer_username:
                followed = {
                    row.followee_username
                    for row in db.query(Follow.followee_username)
                    .filter(
                        Follow.follower_username == viewer_username,
                        Follow.followee_username.in_(wanted),
                    )
                    .all()
                }

        profiles = {}
        for user in users:
            is_followed = (user.username in followed) if viewer_username else None
            profiles[user.username] = serialize_profile(user, is_followed)
        for username in wanted:
            if username not in profiles:
                profiles[username] = fallback_profile(username)
        return profiles

    def fetch_liked_cat_ids(self, db, viewer_username: Optional[str], cat_ids: Iterable[str]) -> set:
        ids = list(set(cat_ids))
        if not viewer_username or not ids:
            return set()
        with reading(db, operation="load liked cats"):
            rows = (
                db.query(Like.cat_id)
                .filter(Like.username == viewer_username, Like.cat_id.in_(ids))
                .all()
            )
        return {row.cat_id for row in rows}

    def decorate_cats(self, db, cats: list, viewer_username: Optional[str]) -> list:
        if not cats:
            return []
        profiles = self.fetch_profiles(db, (cat.username for cat in cats), viewer_username)
        liked = self.fetch_liked_cat_ids(db, viewer_username, (cat.id for cat in cats))
        return [
            serialize_cat(cat, profiles.get(cat.username) or fallback_profile(cat.username), cat.id in liked)
            for cat in cats
        ]

    # ------------------------------------------------------------------
    # Cats
    # ------------------------------------------------------------------

    def list_cats(
        self,
        db,
        *,
        limit: int,
        cursor: Optional[str] = None,
        username: Optional[str] = None,
        session_token: Optional[str] = None,
    ) -> dict:
        viewer = self.viewer(db, session_token)
        with reading(db, operation="list cats"):
            query = db.query(Cat)
            if username:
                query = query.filter(Cat.username == username)
            page = self._codec.paginate(
                query,
                sort_column=Cat.created_at,
                id_column=Cat.id,
                limit=limit,
                cursor=cursor,
            )
        return {"cats": self.decorate_cats(db, page.rows, viewer), "next_cursor": page.next_cursor}

    def search_cats_by_tags(
        self,
        db,
        tags: list,
        *,
        mode: str = "any",
        limit: int,
        cursor: Optional[str] = None,
        session_token: Optional[str] = None,
    ) -> dict:
        """
        List cats carrying the given tags, newest first.

        ``mode="any"`` matches cats with at least one of the tags,
        ``mode="all"`` only cats carrying every one of them.
        """
        viewer = self.viewer(db, session_token)
        matching = select(CatTag.cat_id).where(CatTag.tag.in_(tags))
        if mode == "all":
            matching = matching.group_by(CatTag.cat_id).having(
                func.count(distinct(CatTag.tag)) == len(set(tags))
            )
        with reading(db, operation="search cats"):
            page = self._codec.paginate(
                db.query(Cat).filter(Cat.id.in_(matching)),
                sort_column=Cat.created_at,
                id_column=Cat.id,
                limit=limit,
                cursor=cursor,
            )
        return {"cats": self.decorate_cats(db, page.rows, viewer), "next_cursor": page.next_cursor}

    def get_cat(self, db, cat_id: str, session_token: Optional[str] = None) -> dict:
        viewer = self.viewer(db, session_token)
        with reading(db, operation="load cat"):
            cat = db.get(Cat, cat_id)
        if cat is None:
            raise NotFound("Cat not found", field="cat_id")
        return self.decorate_cats(db, [cat], viewer)[0]

    # ------------------------------------------------------------------
    # Follow graph
    # ------------------------------------------------------------------

    def list_followers(
        self,
        db,
        username: str,
        *,
        limit: int,
        cursor: Optional[str] = None,
        viewer_username: Optional[str] = None,
    ) -> dict:
        return self._list_follow_edges(
            db,
            Follow.followee_username == username,
            "follower_username",
            limit=limit,
            cursor=cursor,
            viewer_username=viewer_username,
            key="followers",
        )

    def list_following(
        self,
        db,
        username: str,
        *,
        limit: int,
        cursor: Optional[str] = None,
        viewer_username: Optional[str] = None,
    ) -> dict:
        return self._list_follow_edges(
            db,
            Follow.follower_username == username,
            "followee_username",
            limit=limit,
            cursor=cursor,
            viewer_username=viewer_username,
            key="following",
        )

    def _list_follow_edges(self, db, criterion, other_side: str, *, limit, cursor, viewer_username, key) -> dict:
        with reading(db, operation=f"list {key}"):
            page = self._codec.paginate_single(
                db.query(Follow).filter(criterion),
                sort_column=Follow.followed_at,
                limit=limit,
                cursor=cursor,
            )
        names = [getattr(edge, other_side) for edge in page.rows]
        profiles = self.fetch_profiles(db, names, viewer_username)
        items = [
            {
                "username": name,
                "followed_at": isoformat(edge.followed_at),
                "profile": profiles.get(name) or fallback_profile(name),
            }
            for name, edge in zip(names, page.rows)
        ]
        return {key: items, "next_cursor": page.next_cursor}

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def list_collections(
        self,
        db,
        owner_username: str,
        *,
        limit: int,
        cursor: Optional[str] = None,
        viewer_username: Optional[str] = None,
    ) -> dict:
        with reading(db, operation="list collections"):
            query = db.query(Collection).filter(Collection.owner_username == owner_username)
            if viewer_username != owner_username:
                query = query.filter(Collection.is_public.is_(True))
            page = self._codec.paginate(
                query,
                sort_column=Collection.created_at,
                id_column=Collection.id,
                limit=limit,
                cursor=cursor,
            )
        owner = self.fetch_profiles(db, [owner_username], viewer_username)[owner_username]
        return {
            "collections": [serialize_collection(row, owner) for row in page.rows],
            "next_cursor": page.next_cursor,
        }

    def load_collection(self, db, collection_id: str, viewer_username: Optional[str] = None) -> Collection:
        """Return a collection the viewer may see; private ones look missing to others."""
        with reading(db, operation="load collection"):
            collection = db.get(Collection, collection_id)
        if collection is None:
            raise NotFound("Collection not found", field="collection_id")
        if not collection.is_public and collection.owner_username != viewer_username:
            raise NotFound("Collection not found", field="collection_id")
        return collection

    def get_collection(
        self,
        db,
        collection_id: str,
        *,
        limit: int,
        cursor: Optional[str] = None,
        viewer_username: Optional[str] = None,
    ) -> dict:
        collection = self.load_collection(db, collection_id, viewer_username)
        with reading(db, operation="list collection cats"):
            query = (
                db.query(Cat, CollectionCat.added_at)
                .join(CollectionCat, CollectionCat.cat_id == Cat.id)
                .filter(CollectionCat.collection_id == collection_id)
            )
            page = self._codec.paginate(
                query,
                sort_column=CollectionCat.added_at,
                id_column=CollectionCat.cat_id,
                limit=limit,
                cursor=cursor,
                key_of=lambda row: (row.added_at, row[0].id),
            )
        cats = self.decorate_cats(db, [row[0] for row in page.rows], viewer_username)
        for item, row in zip(cats, page.rows):
            item["added_at"] = isoformat(row.added_at)
        owner = self.fetch_profiles(db, [collection.owner_username], viewer_username)[collection.owner_username]
        return {
            "collection": serialize_collection(collection, owner),
            "cats": cats,
            "next_cursor": page.next_cursor,
        }

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def list_comments(
        self,
        db,
        cat_id: str,
        *,
        limit: int,
        cursor: Optional[str] = None,
        viewer_username: Optional[str] = None,
    ) -> dict:
        with reading(db, operation="list comments"):
            if db.query(Cat.id).filter(Cat.id == cat_id).first() is None:
                raise NotFound("Cat not found", field="cat_id")
            page = self._codec.paginate(
                db.query(Comment).filter(Comment.cat_id == cat_id),
                sort_column=Comment.comment_at,
                id_column=Comment.comment_id,
                limit=limit,
                cursor=cursor,
            )
        authors = self.fetch_profiles(db, (row.username for row in page.rows), viewer_username)
        return {
            "comments": [serialize_comment(row, authors[row.username], viewer_username) for row in page.rows],
            "next_cursor": page.next_cursor,
        }

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def guest_profile(self, db, username: str, viewer_username: Optional[str] = None) -> dict:
        """Public profile of one user with the first page of their collections."""
        with reading(db, operation="load profile"):
            user = db.get(User, username)
        if user is None:
            raise NotFound("User not found", field="target_username")
        profile = self.fetch_profiles(db, [username], viewer_username)[username]
        collections = self.list_collections(
            db,
            username,
            limit=PROFILE_COLLECTIONS_LIMIT,
            viewer_username=viewer_username,
        )
        profile["collections"] = collections["collections"]
        profile["collections_next_cursor"] = collections["next_cursor"]
        return profile

    def own_profile(self, db, user: User) -> dict:
        profile = serialize_private_profile(user)
        collections = self.list_collections(
            db,
            user.username,
            limit=PROFILE_COLLECTIONS_LIMIT,
            viewer_username=user.username,
        )
        profile["collections"] = collections["collections"]
        profile["collections_next_cursor"] = collections["next_cursor"]
        return profile
