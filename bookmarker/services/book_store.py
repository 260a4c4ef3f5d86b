"""
Bookmarker — Book Store
=========================

What:  Title-based lookup and creation of books.
Why:   Annotations are imported by title; the annotation store needs a
       book id to attach them to.
Who:   Used by AnnotationStore.add_annotation and get_annotations_by_book_title.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookmarker.models.book import Book

logger = logging.getLogger(__name__)


class BookStore:
    """Data access for the `books` table, bound to one session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_book_id(self, title: str) -> Optional[int]:
        """Id of the book with this exact title, or None."""
        result = await self.db.execute(select(Book.id).where(Book.title == title))
        return result.scalars().first()

    async def insert_book(self, title: str) -> int:
        """Insert a book and return its generated id."""
        book = Book(title=title)
        self.db.add(book)
        await self.db.flush()  # Assigns the id without committing
        logger.info("Created book %s: %s", book.id, title)
        return book.id
