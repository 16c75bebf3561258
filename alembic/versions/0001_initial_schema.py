"""Initial catgraph schema: users, follows, cats, likes, collections, comments.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    is_postgres = bind.dialect.name == "postgresql"
    json_type = postgresql.JSONB() if is_postgres else sa.JSON()

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------
    op.create_table(
        "users",
        sa.Column("username", sa.String(length=32), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=64), nullable=False),
        sa.Column("session_token", sa.String(length=128)),
        sa.Column("bio", sa.Text()),
        sa.Column("location", sa.String(length=100)),
        sa.Column("avatar_path", sa.String(length=500)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("post_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("follower_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("following_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("session_token", name="uq_users_session_token"),
    )

    # -------------------------------------------------------------------------
    # Follow edges
    # -------------------------------------------------------------------------
    op.create_table(
        "follows",
        sa.Column(
            "follower_username",
            sa.String(length=32),
            sa.ForeignKey("users.username", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "followee_username",
            sa.String(length=32),
            sa.ForeignKey("users.username", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("followed_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("follower_username <> followee_username", name="check_no_self_follow"),
    )
    op.create_index(
        "ix_follows_followee_followed_at",
        "follows",
        ["followee_username", "followed_at"],
    )
    op.create_index(
        "ix_follows_follower_followed_at",
        "follows",
        ["follower_username", "followed_at"],
    )

    # -------------------------------------------------------------------------
    # Cats and likes
    # -------------------------------------------------------------------------
    op.create_table(
        "cats",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("tags", json_type),
        sa.Column(
            "username",
            sa.String(length=32),
            sa.ForeignKey("users.username", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("description", sa.Text()),
        sa.Column("location_latitude", sa.Float()),
        sa.Column("location_longitude", sa.Float()),
        sa.Column("image_path", sa.String(length=500), nullable=False),
        sa.Column("likes", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_cats_created_at_id", "cats", ["created_at", "id"])
    op.create_index("ix_cats_username_created_at", "cats", ["username", "created_at"])

    op.create_table(
        "likes",
        sa.Column(
            "cat_id",
            sa.String(length=36),
            sa.ForeignKey("cats.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "username",
            sa.String(length=32),
            sa.ForeignKey("users.username", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("liked_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_likes_username", "likes", ["username"])

    # -------------------------------------------------------------------------
    # Collections
    # -------------------------------------------------------------------------
    op.create_table(
        "collections",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "owner_username",
            sa.String(length=32),
            sa.ForeignKey("users.username", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("cat_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("owner_username", "name", name="uq_collections_owner_name"),
    )
    op.create_index(
        "ix_collections_owner_created_at",
        "collections",
        ["owner_username", "created_at"],
    )

    op.create_table(
        "collection_cats",
        sa.Column(
            "collection_id",
            sa.String(length=36),
            sa.ForeignKey("collections.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "cat_id",
            sa.String(length=36),
            sa.ForeignKey("cats.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_collection_cats_collection_added_at",
        "collection_cats",
        ["collection_id", "added_at"],
    )
    op.create_index("ix_collection_cats_cat_id", "collection_cats", ["cat_id"])

    # -------------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------------
    op.create_table(
        "comments",
        sa.Column("comment_id", sa.String(length=36), primary_key=True),
        sa.Column(
            "cat_id",
            sa.String(length=36),
            sa.ForeignKey("cats.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "username",
            sa.String(length=32),
            sa.ForeignKey("users.username", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("comment_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_comments_cat_comment_at", "comments", ["cat_id", "comment_at"])


def downgrade() -> None:
    op.drop_index("ix_comments_cat_comment_at", table_name="comments")
    op.drop_table("comments")
    op.drop_index("ix_collection_cats_cat_id", table_name="collection_cats")
    op.drop_index("ix_collection_cats_collection_added_at", table_name="collection_cats")
    op.drop_table("collection_cats")
    op.drop_index("ix_collections_owner_created_at", table_name="collections")
    op.drop_table("collections")
    op.drop_index("ix_likes_username", table_name="likes")
    op.drop_table("likes")
    op.drop_index("ix_cats_username_created_at", table_name="cats")
    op.drop_index("ix_cats_created_at_id", table_name="cats")
    op.drop_table("cats")
    op.drop_index("ix_follows_follower_followed_at", table_name="follows")
    op.drop_index("ix_follows_followee_followed_at", table_name="follows")
    op.drop_table("follows")
    op.drop_table("users")
