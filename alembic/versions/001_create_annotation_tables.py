"""Create books, kindle_annotations, tags and annotations_tags

Revision ID: 001
Revises: None
Create Date: 2020-02-20 00:00:00.000000+00:00

What:  Initial schema for Kindle/Calibre annotations and their tags.
Rollback: downgrade() drops all four tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "books",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "title",
            sa.String(512),
            nullable=False,
            comment="Book title as reported by the reading device",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("title"),
    )

    op.create_table(
        "kindle_annotations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("book_id", sa.Integer(), nullable=False),
        sa.Column("bookline", sa.Text(), nullable=True),
        sa.Column("title", sa.String(512), nullable=True),
        sa.Column("author", sa.String(512), nullable=True),
        sa.Column("language", sa.String(32), nullable=True),
        sa.Column("begin", sa.Integer(), nullable=True),
        sa.Column("end", sa.Integer(), nullable=True),
        sa.Column(
            "time",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When the annotation was made on the device (or imported)",
        ),
        sa.Column("highlight", sa.Text(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column(
            "statusline",
            sa.Text(),
            nullable=True,
            comment="Device caption, e.g. 'Your Highlight on Location 1077-1080 | Added on ...'",
        ),
        sa.Column("page", sa.Integer(), nullable=True),
        sa.Column("edited", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("ordernr", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"]),
        sa.PrimaryKeyConstraint("id"),
    )

    # Merge lookups in add_annotation filter on (book_id, end).
    # Not unique: concurrent imports may still produce duplicates.
    op.create_index(
        "idx_kindle_annotations_book_end",
        "kindle_annotations",
        ["book_id", "end"],
    )

    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tag", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tag"),
    )

    op.create_table(
        "annotations_tags",
        sa.Column("annotation_id", sa.Integer(), nullable=False),
        sa.Column("tag_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["annotation_id"], ["kindle_annotations.id"]),
        sa.ForeignKeyConstraint(["tag_id"], ["tags.id"]),
        sa.PrimaryKeyConstraint("annotation_id", "tag_id"),
    )


def downgrade() -> None:
    op.drop_table("annotations_tags")
    op.drop_table("tags")
    op.drop_index("idx_kindle_annotations_book_end", table_name="kindle_annotations")
    op.drop_table("kindle_annotations")
    op.drop_table("books")
