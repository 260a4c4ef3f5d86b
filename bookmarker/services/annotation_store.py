"""
Bookmarker — Annotation Store
===============================

What:  All reads and writes against kindle_annotations, tags and annotations_tags.
Why:   Keeps SQL out of the routes and the importer; both talk to this class.
How:   Bound to one AsyncSession at construction. Each method issues one
       or a few SQLAlchemy statements and returns AnnotationResponse
       projections (or None when the row does not exist).
Who:   Constructed per request by routes.annotations.get_annotation_store,
       and once per run by the Calibre importer.

Merge Flow (add_annotation):
    ┌────────────┐    ┌──────────────────┐    ┌───────────────────────┐
    │ Resolve or │───▶│ Matching row for │─┬─▶│ found: overwrite the  │
    │ create the │    │ (book_id, end)?  │ │  │ highlight/note given  │
    │ book       │    └──────────────────┘ │  └───────────────────────┘
    └────────────┘                         └─▶│ none: insert full row │
                                              └───────────────────────┘

    The lookup and the write are separate statements with no lock between
    them; two concurrent imports of the same (book_id, end) can both insert.

Error Handling:
    Storage failures (sqlalchemy.exc.SQLAlchemyError) propagate unchanged.
    Callers decide how to present them.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from bookmarker.config import settings
from bookmarker.models.annotation import AnnotationTag, KindleAnnotation, Tag
from bookmarker.schemas.annotation import (
    AnnotationCreate,
    AnnotationResponse,
    AnnotationTagResponse,
    CalibreAnnotation,
)
from bookmarker.services.book_store import BookStore

logger = logging.getLogger(__name__)

# Fields copied verbatim from an AnnotationCreate onto a new row
_INSERT_FIELDS = (
    "bookline", "title", "author", "language", "begin", "end",
    "highlight", "note", "statusline", "page", "ordernr",
)


class AnnotationStore:
    """
    Data access for annotations and their tags.

    Args:
        db:    Session every statement runs on. Commit/rollback is the
               caller's responsibility.
        books: Book collaborator; defaults to a BookStore on the same session.
    """

    def __init__(self, db: AsyncSession, books: Optional[BookStore] = None):
        self.db = db
        self.books = books or BookStore(db)

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get_all_annotations(
        self, limit: int = settings.default_annotation_limit
    ) -> List[AnnotationResponse]:
        result = await self.db.execute(
            select(KindleAnnotation).order_by(KindleAnnotation.id).limit(limit)
        )
        return [AnnotationResponse.from_model(a) for a in result.scalars().all()]

    async def get_annotations_by_book_title(self, title: str) -> List[AnnotationResponse]:
        """Annotations of the book with this title; [] if no such book."""
        book_id = await self.books.get_book_id(title)
        if book_id is None:
            return []
        return await self.get_annotations_by_book_id(book_id)

    async def get_annotations_by_book_id(self, book_id: int) -> List[AnnotationResponse]:
        result = await self.db.execute(
            select(KindleAnnotation)
            .where(KindleAnnotation.book_id == book_id)
            .order_by(KindleAnnotation.id)
        )
        return [AnnotationResponse.from_model(a) for a in result.scalars().all()]

    async def get_annotation_by_id(self, annotation_id: int) -> Optional[AnnotationResponse]:
        annotation = await self._load(annotation_id)
        if annotation is None:
            return None
        return AnnotationResponse.from_model(annotation)

    async def get_matching_annotation_id(
        self, book_id: int, end: Optional[int]
    ) -> Optional[int]:
        """
        Id of an existing annotation on the same book ending at the same location.

        Returns the lowest id when earlier races left duplicates behind.
        An annotation without an end location never matches anything.
        """
        if end is None:
            return None
        result = await self.db.execute(
            select(KindleAnnotation.id)
            .where(
                KindleAnnotation.book_id == book_id,
                KindleAnnotation.end == end,
            )
            .order_by(KindleAnnotation.id)
            .limit(1)
        )
        return result.scalars().first()

    # ── Writes ────────────────────────────────────────────────────────────

    async def add_annotation(self, annotation: AnnotationCreate) -> AnnotationResponse:
        """
        Insert an annotation, or merge it into the matching one.

        The owning book is resolved by title and created if missing.
        When an annotation with the same (book_id, end) exists, only the
        highlight and note carried by the input (non-empty) are written
        over it; every other column is left alone.
        """
        book_id = await self.books.get_book_id(annotation.title)
        if book_id is None:
            logger.info("No existing book titled %r; creating one", annotation.title)
            book_id = await self.books.insert_book(annotation.title)

        match_id = await self.get_matching_annotation_id(book_id, annotation.end)

        if match_id is not None:
            existing = await self._load(match_id)
            if annotation.highlight:
                existing.highlight = annotation.highlight
            if annotation.note:
                existing.note = annotation.note
            await self.db.flush()
            logger.debug("Merged annotation into %s (book %s, end %s)", match_id, book_id, annotation.end)
            return AnnotationResponse.from_model(existing)

        values: Dict[str, Any] = {
            field: getattr(annotation, field) for field in _INSERT_FIELDS
        }
        if annotation.time is not None:
            values["time"] = annotation.time

        row = KindleAnnotation(book_id=book_id, **values)
        self.db.add(row)
        await self.db.flush()
        logger.debug("Inserted annotation %s (book %s, end %s)", row.id, book_id, annotation.end)
        return AnnotationResponse.from_model(row)

    async def add_calibre_annotation(
        self, calibre_annotation: CalibreAnnotation
    ) -> AnnotationResponse:
        """Store a Calibre export record; its text becomes the highlight or the note."""
        text = calibre_annotation.text
        fields = calibre_annotation.model_dump(exclude={"kind", "text"})
        fields["highlight"] = text if calibre_annotation.kind == "highlight" else None
        fields["note"] = text if calibre_annotation.kind == "note" else None
        return await self.add_annotation(AnnotationCreate(**fields))

    async def edit_annotation(
        self,
        annotation_id: int,
        highlight: Optional[str],
        note: Optional[str],
    ) -> Optional[AnnotationResponse]:
        """Overwrite highlight and note as given and mark the row edited."""
        annotation = await self._load(annotation_id)
        if annotation is None:
            return None
        annotation.highlight = highlight
        annotation.note = note
        annotation.edited = True
        await self.db.flush()
        return AnnotationResponse.from_model(annotation)

    async def delete_annotation(self, annotation_id: int) -> Optional[AnnotationResponse]:
        """Delete the row and return what it held."""
        annotation = await self._load(annotation_id)
        if annotation is None:
            return None
        deleted = AnnotationResponse.from_model(annotation)
        await self.db.delete(annotation)
        await self.db.flush()
        return deleted

    # ── Tags ──────────────────────────────────────────────────────────────

    async def find_tag_id(self, tag: str) -> Optional[int]:
        result = await self.db.execute(select(Tag.id).where(Tag.tag == tag))
        return result.scalars().first()

    async def create_tag(self, tag: str) -> Tag:
        row = Tag(tag=tag)
        self.db.add(row)
        await self.db.flush()
        return row

    async def add_tag_to_annotation(self, annotation_id: int, tag: str) -> AnnotationTagResponse:
        """
        Attach a tag (created on first use) to an annotation.

        No duplicate check is made here; attaching the same tag twice fails
        on the join table's primary key and the IntegrityError propagates.
        """
        tag_id = await self.find_tag_id(tag)
        if tag_id is None:
            tag_id = (await self.create_tag(tag)).id

        await self.db.execute(
            insert(AnnotationTag).values(annotation_id=annotation_id, tag_id=tag_id)
        )
        return AnnotationTagResponse(annotation_id=annotation_id, tag_id=tag_id)

    async def remove_tag_from_annotation(
        self, annotation_id: int, tag: str
    ) -> Optional[AnnotationTagResponse]:
        """Detach a tag. Returns the removed pair, or None if it was not attached."""
        tag_id = await self.find_tag_id(tag)
        if tag_id is None:
            return None

        result = await self.db.execute(
            delete(AnnotationTag)
            .where(
                AnnotationTag.annotation_id == annotation_id,
                AnnotationTag.tag_id == tag_id,
            )
            .returning(AnnotationTag.annotation_id, AnnotationTag.tag_id)
        )
        row = result.first()
        if row is None:
            return None
        return AnnotationTagResponse(annotation_id=row.annotation_id, tag_id=row.tag_id)

    # ── Internal ──────────────────────────────────────────────────────────

    async def _load(self, annotation_id: int) -> Optional[KindleAnnotation]:
        result = await self.db.execute(
            select(KindleAnnotation).where(KindleAnnotation.id == annotation_id)
        )
        return result.scalar_one_or_none()
