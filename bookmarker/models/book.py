"""
Bookmarker — Book SQLAlchemy Model
====================================

What:  ORM model representing the `books` table.
Why:   Every annotation references exactly one book; books are looked up
       (or lazily created) by title when annotations are imported.
Who:   Used by BookStore and, through the foreign key, by KindleAnnotation.
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from bookmarker.database import Base


class Book(Base):
    """A book that annotations hang off. Title is the natural lookup key."""

    __tablename__ = "books"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    title: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        unique=True,
        comment="Book title as reported by the reading device",
    )

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, title='{self.title[:30]}')>"
