"""Add cat_tags for tag search and backfill it from cats.tags.

Revision ID: 0002_cat_tags
Revises: 0001_initial_schema
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_cat_tags"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    cat_tags = op.create_table(
        "cat_tags",
        sa.Column(
            "cat_id",
            sa.String(length=36),
            sa.ForeignKey("cats.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("tag", sa.String(length=30), primary_key=True),
    )
    op.create_index("ix_cat_tags_tag", "cat_tags", ["tag"])

    bind = op.get_bind()
    cats = sa.table("cats", sa.column("id", sa.String), sa.column("tags", sa.JSON))
    rows = []
    for cat_id, tags in bind.execute(sa.select(cats.c.id, cats.c.tags)):
        for tag in dict.fromkeys(tags or []):
            rows.append({"cat_id": cat_id, "tag": tag})
    if rows:
        op.bulk_insert(cat_tags, rows)


def downgrade() -> None:
    op.drop_index("ix_cat_tags_tag", table_name="cat_tags")
    op.drop_table("cat_tags")
