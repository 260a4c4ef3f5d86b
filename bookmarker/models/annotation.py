"""
Bookmarker — Annotation, Tag and AnnotationTag Models
=======================================================

What:  ORM models for `kindle_annotations`, `tags` and `annotations_tags`.
Why:   Maps annotation rows to Python objects for the AnnotationStore.
How:   Inherits from the shared DeclarativeBase; Alembic reads these for migrations.
Who:   Used by AnnotationStore for CRUD and by the Alembic migration.

Table Design Rationale:
    - bookline/title/author/language are copied from the source document at
      import time, next to the book_id reference, for display convenience.
    - begin/end are device location numbers. (book_id, end) is the merge key
      used by AnnotationStore.add_annotation; it is indexed but deliberately
      not unique.
    - time is rendered as yyyy-mm-dd-hh-mi-ss by the response schema.
    - edited flips to true whenever a user edits highlight/note.

Column naming:
    `end` and `begin` are SQL keywords; SQLAlchemy quotes them automatically.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from bookmarker.database import Base


class KindleAnnotation(Base):
    """
    A highlight and/or note attached to a span of a book.

    Lifecycle:
        1. Created by import (add_annotation / add_calibre_annotation)
        2. Merged in place when a later import hits the same (book_id, end)
        3. Edited by the user (edited = true)
        4. Deleted explicitly; tag rows are not cascaded by the store
    """

    __tablename__ = "kindle_annotations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    book_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("books.id"),
        nullable=False,
    )

    # ── Denormalized source metadata ──────────────────────────────────────
    bookline: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    title: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    author: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    language: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    # ── Location span ─────────────────────────────────────────────────────
    begin: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    end: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When the annotation was made on the device (or imported)",
    )

    # ── Content ───────────────────────────────────────────────────────────
    highlight: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    statusline: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Device caption, e.g. 'Your Highlight on Location 1077-1080 | Added on ...'",
    )
    page: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    edited: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    ordernr: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        Index("idx_kindle_annotations_book_end", "book_id", "end"),
    )

    def __repr__(self) -> str:
        return (
            f"<KindleAnnotation(id={self.id}, book_id={self.book_id}, "
            f"begin={self.begin}, end={self.end})>"
        )


class Tag(Base):
    """A free-text label. The tag string itself is unique."""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tag: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, tag='{self.tag}')>"


class AnnotationTag(Base):
    """Join row between an annotation and a tag."""

    __tablename__ = "annotations_tags"

    # Composite primary key: the pair is unique at the database level
    annotation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("kindle_annotations.id"),
        primary_key=True,
    )
    tag_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tags.id"),
        primary_key=True,
    )

    def __repr__(self) -> str:
        return f"<AnnotationTag(annotation_id={self.annotation_id}, tag_id={self.tag_id})>"
