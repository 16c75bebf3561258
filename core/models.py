"""
catgraph Database Models
PostgreSQL (or SQLite) schema for users, cats and the social graph
"""

from datetime import datetime, timezone
import uuid
from sqlalchemy import (
    Column, Integer, BigInteger, String, Text, Float, Boolean,
    DateTime, ForeignKey, CheckConstraint, Index, UniqueConstraint, JSON, true
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship, declarative_base, synonym

import core.config as config

DB_BACKEND_EFFECTIVE = config.DB_BACKEND_EFFECTIVE

JSON_TYPE = JSONB if DB_BACKEND_EFFECTIVE == "postgres" else JSON


def _uuid_default() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Timezone-aware UTC now; default clock for every timestamp column."""
    return datetime.now(timezone.utc)

Base = declarative_base()

# =============================================================================
# Users (identities)
# =============================================================================

class User(Base):
    __tablename__ = "users"

    username = Column(String(32), primary_key=True)
    email = Column(String(255), nullable=False)
    password_hash = Column(String(64), nullable=False)
    session_token = Column(String(128))  # rotated on every login
    bio = Column(Text)
    location = Column(String(100))
    avatar_path = Column(String(500))
    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Denormalized counters, only moved by the consistency engine
    post_count = Column(BigInteger, default=0, server_default="0", nullable=False)
    follower_count = Column(BigInteger, default=0, server_default="0", nullable=False)
    following_count = Column(BigInteger, default=0, server_default="0", nullable=False)

    cats = relationship("Cat", back_populates="owner")
    collections = relationship("Collection", back_populates="owner")

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        UniqueConstraint("session_token", name="uq_users_session_token"),
    )


# =============================================================================
# Follow edges
# =============================================================================

class Follow(Base):
    __tablename__ = "follows"

    follower_username = Column(
        String(32), ForeignKey("users.username", ondelete="CASCADE"), primary_key=True
    )
    followee_username = Column(
        String(32), ForeignKey("users.username", ondelete="CASCADE"), primary_key=True
    )
    followed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("follower_username <> followee_username", name="check_no_self_follow"),
        Index("ix_follows_followee_followed_at", "followee_username", "followed_at"),
        Index("ix_follows_follower_followed_at", "follower_username", "followed_at"),
    )


# =============================================================================
# Cats (content posts)
# =============================================================================

class Cat(Base):
    __tablename__ = "cats"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    name = Column(String(100), nullable=False)
    tags = Column(JSON_TYPE, default=list)
    username = Column(String(32), ForeignKey("users.username", ondelete="CASCADE"), nullable=False)
    description = Column(Text)
    location_latitude = Column(Float)
    location_longitude = Column(Float)
    image_path = Column(String(500), nullable=False)
    likes = Column(BigInteger, default=0, server_default="0", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    owner_username = synonym("username")

    owner = relationship("User", back_populates="cats")

    __table_args__ = (
        Index("ix_cats_created_at_id", "created_at", "id"),
        Index("ix_cats_username_created_at", "username", "created_at"),
    )


class CatTag(Base):
    """One row per (cat, tag); the searchable copy of ``Cat.tags``."""

    __tablename__ = "cat_tags"

    cat_id = Column(String(36), ForeignKey("cats.id", ondelete="CASCADE"), primary_key=True)
    tag = Column(String(30), primary_key=True)

    __table_args__ = (
        Index("ix_cat_tags_tag", "tag"),
    )


class Like(Base):
    __tablename__ = "likes"

    cat_id = Column(String(36), ForeignKey("cats.id", ondelete="CASCADE"), primary_key=True)
    username = Column(String(32), ForeignKey("users.username", ondelete="CASCADE"), primary_key=True)
    liked_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_likes_username", "username"),
    )


# =============================================================================
# Collections
# =============================================================================

class Collection(Base):
    __tablename__ = "collections"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    owner_username = Column(
        String(32), ForeignKey("users.username", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(100), nullable=False)
    description = Column(Text)
    is_public = Column(Boolean, default=True, server_default=true(), nullable=False)
    cat_count = Column(Integer, default=0, server_default="0", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    owner = relationship("User", back_populates="collections")

    __table_args__ = (
        UniqueConstraint("owner_username", "name", name="uq_collections_owner_name"),
        Index("ix_collections_owner_created_at", "owner_username", "created_at"),
    )


class CollectionCat(Base):
    __tablename__ = "collection_cats"

    collection_id = Column(
        String(36), ForeignKey("collections.id", ondelete="CASCADE"), primary_key=True
    )
    cat_id = Column(String(36), ForeignKey("cats.id", ondelete="CASCADE"), primary_key=True)
    added_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_collection_cats_collection_added_at", "collection_id", "added_at"),
        Index("ix_collection_cats_cat_id", "cat_id"),
    )


# =============================================================================
# Comments
# =============================================================================

class Comment(Base):
    __tablename__ = "comments"

    comment_id = Column(String(36), primary_key=True, default=_uuid_default)
    cat_id = Column(String(36), ForeignKey("cats.id", ondelete="CASCADE"), nullable=False)
    username = Column(String(32), ForeignKey("users.username", ondelete="CASCADE"), nullable=False)
    comment = Column(Text, nullable=False)
    comment_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    owner_username = synonym("username")

    __table_args__ = (
        Index("ix_comments_cat_comment_at", "cat_id", "comment_at"),
    )
