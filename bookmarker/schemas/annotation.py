"""
Bookmarker — Pydantic Request/Response Schemas
================================================

What:  Pydantic models defining the annotation API contract.
Why:   Request validation, serialization, and OpenAPI doc generation.
How:   FastAPI validates request bodies against these models; the store
       returns AnnotationResponse projections which FastAPI serializes.

Projection:
    Every read and write returns the same fixed column set:
    id, book_id, bookline, title, author, language, begin, end, time,
    highlight, note, page. statusline, edited and ordernr are stored but
    never projected.
"""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

from bookmarker.models.annotation import KindleAnnotation

# PostgreSQL TO_CHAR pattern 'yyyy-mm-dd-hh-mi-ss'; hh is the 12-hour clock
TIME_FORMAT = "%Y-%m-%d-%I-%M-%S"


def format_time(value: Optional[datetime]) -> Optional[str]:
    """
    Render a stored timestamp in the projection's textual format.

    Aware values are shifted to UTC first, so a freshly inserted row and the
    same row read back from PostgreSQL render identically.
    """
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIME_FORMAT)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class AnnotationResponse(BaseModel):
    """The fixed annotation projection returned by every store operation."""

    id: int = Field(description="Annotation identifier")
    book_id: int = Field(description="Owning book identifier")
    bookline: Optional[str] = Field(default=None, description="Raw 'Title (Author)' line")
    title: Optional[str] = None
    author: Optional[str] = None
    language: Optional[str] = None
    begin: Optional[int] = Field(default=None, description="First location of the span")
    end: Optional[int] = Field(default=None, description="Last location of the span")
    time: Optional[str] = Field(default=None, description="Timestamp as yyyy-mm-dd-hh-mi-ss")
    highlight: Optional[str] = None
    note: Optional[str] = None
    page: Optional[int] = None

    @classmethod
    def from_model(cls, annotation: KindleAnnotation) -> "AnnotationResponse":
        return cls(
            id=annotation.id,
            book_id=annotation.book_id,
            bookline=annotation.bookline,
            title=annotation.title,
            author=annotation.author,
            language=annotation.language,
            begin=annotation.begin,
            end=annotation.end,
            time=format_time(annotation.time),
            highlight=annotation.highlight,
            note=annotation.note,
            page=annotation.page,
        )


class AnnotationTagResponse(BaseModel):
    """An (annotation, tag) association."""

    annotation_id: int
    tag_id: int

    model_config = {"from_attributes": True}


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class AnnotationCreate(BaseModel):
    """
    What:  An annotation submitted for import or creation.
    Who:   Body of POST /api/annotations/, and the base of CalibreAnnotation.

    book_id is accepted for compatibility with exported records but ignored:
    the owning book is always resolved from the title.
    """

    title: str = Field(min_length=1, description="Book title used to resolve the owning book")
    book_id: Optional[int] = Field(default=None, description="Ignored; resolved from title")
    bookline: Optional[str] = None
    author: Optional[str] = None
    language: Optional[str] = None
    begin: Optional[int] = None
    end: Optional[int] = None
    time: Optional[datetime] = Field(
        default=None,
        description="Device timestamp, e.g. '2020-02-15 01:19:41'. Defaults to now.",
    )
    highlight: Optional[str] = None
    note: Optional[str] = None
    statusline: Optional[str] = None
    page: Optional[int] = None
    ordernr: Optional[int] = None


class CalibreAnnotation(AnnotationCreate):
    """
    A record from a Calibre/Kindle clippings export.

    Example:
        {
            "kind": "highlight",
            "text": "In a sense the vision of Adam Smith is a testimony to the ...",
            "title": "The Worldly Philosophers",
            "author": "Heilbroner, Robert L.",
            "bookline": "The Worldly Philosophers (Heilbroner, Robert L.)",
            "language": "en",
            "begin": 1077,
            "end": 1080,
            "time": "2020-02-15 01:19:41",
            "statusline": "Your Highlight on Location 1077-1080 | Added on ...",
            "ordernr": 8363,
            "page": null
        }
    """

    kind: Literal["highlight", "note"]
    text: str = ""


class AnnotationEdit(BaseModel):
    """Body of PUT /api/annotations/{id}. Both fields are overwritten as given."""

    highlight: Optional[str] = None
    note: Optional[str] = None


class TagRequest(BaseModel):
    """Body of POST /api/annotations/{id}/tags."""

    tag: str = Field(min_length=1, max_length=255)


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """Standardized error envelope used by the global exception handlers."""

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and database status."""

    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
