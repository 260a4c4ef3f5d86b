"""
Bookmarker — Annotation Route Handlers
========================================

What:  REST endpoints over the AnnotationStore, mounted at /api/annotations.
Why:   Entry point for the reader UI and for scripted imports.
How:   Each handler obtains a request-scoped AnnotationStore through
       get_annotation_store, makes one store call, and serializes the result.

Read endpoints (legacy contract):
    GET /                 → all annotations (limit, default 50)
    GET /{id}             → one annotation
    GET /bookID/{id}      → annotations of one book

    These answer 404 with a fixed, endpoint-specific body whenever the
    lookup fails, whether the row is absent or the database errored.
    Clients depend on those exact bodies.

Write endpoints:
    POST   /                  → add (or merge) an annotation
    POST   /calibre           → add a Calibre export record
    PUT    /{id}              → edit highlight/note
    DELETE /{id}              → delete
    POST   /{id}/tags         → attach a tag
    DELETE /{id}/tags/{tag}   → detach a tag

    These use the standard error envelope from the global handlers in main.py.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bookmarker.config import settings
from bookmarker.database import get_db_session
from bookmarker.exceptions import ConflictError, DatabaseError, NotFoundError
from bookmarker.schemas.annotation import (
    AnnotationCreate,
    AnnotationEdit,
    AnnotationResponse,
    AnnotationTagResponse,
    CalibreAnnotation,
    ErrorResponse,
    TagRequest,
)
from bookmarker.services.annotation_store import AnnotationStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/annotations", tags=["Annotations"])

# ── Fixed 404 bodies of the read endpoints ────────────────────────────────
NO_ANNOTATIONS_FOUND = {"noAnnotationsFound": "No Annotations Found"}
NO_ANNOTATION_WITH_ID = {"noAnnotationFound": "No Annotation with ID Found"}
NO_ANNOTATIONS_FOR_BOOK = {
    "noAnnotationsFound": "No Annotations Associated with Book ID found"
}


def get_annotation_store(db: AsyncSession = Depends(get_db_session)) -> AnnotationStore:
    """Request-scoped store bound to the request's session."""
    return AnnotationStore(db)


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """Translate SQLAlchemy failures on write endpoints into application errors."""
    try:
        yield
    except IntegrityError as e:
        logger.warning("Integrity error while trying to %s: %s", action, e.orig)
        raise ConflictError(
            message=f"Could not {action}: it conflicts with existing data.",
            context={"error_type": type(e).__name__},
        )
    except SQLAlchemyError as e:
        logger.error("Database error while trying to %s: %s", action, str(e), exc_info=True)
        raise DatabaseError(
            message=f"Could not {action}. Please try again.",
            context={"error_type": type(e).__name__},
        )


# ══════════════════════════════════════════════════════════════════════════
# Read endpoints
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "/",
    response_model=List[AnnotationResponse],
    responses={404: {"description": "Lookup failed", "content": {"application/json": {"example": NO_ANNOTATIONS_FOUND}}}},
    summary="List annotations",
)
async def get_all_annotations(
    limit: int = Query(
        default=settings.default_annotation_limit,
        ge=1,
        le=settings.max_annotation_limit,
        description="Maximum number of annotations to return",
    ),
    store: AnnotationStore = Depends(get_annotation_store),
):
    try:
        return await store.get_all_annotations(limit=limit)
    except Exception as e:
        logger.warning("Listing annotations failed: %s", str(e), exc_info=True)
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=NO_ANNOTATIONS_FOUND)


@router.get(
    "/bookID/{book_id}",
    response_model=List[AnnotationResponse],
    responses={404: {"description": "Lookup failed", "content": {"application/json": {"example": NO_ANNOTATIONS_FOR_BOOK}}}},
    summary="List annotations of one book",
)
async def get_annotations_by_book_id(
    book_id: int,
    store: AnnotationStore = Depends(get_annotation_store),
):
    try:
        return await store.get_annotations_by_book_id(book_id)
    except Exception as e:
        logger.warning("Listing annotations of book %s failed: %s", book_id, str(e), exc_info=True)
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=NO_ANNOTATIONS_FOR_BOOK)


@router.get(
    "/{annotation_id}",
    response_model=AnnotationResponse,
    responses={404: {"description": "No such annotation", "content": {"application/json": {"example": NO_ANNOTATION_WITH_ID}}}},
    summary="Get one annotation",
)
async def get_annotation(
    annotation_id: int,
    store: AnnotationStore = Depends(get_annotation_store),
):
    try:
        annotation = await store.get_annotation_by_id(annotation_id)
    except Exception as e:
        logger.warning("Fetching annotation %s failed: %s", annotation_id, str(e), exc_info=True)
        annotation = None

    if annotation is None:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=NO_ANNOTATION_WITH_ID)
    return annotation


# ══════════════════════════════════════════════════════════════════════════
# Write endpoints
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "/",
    response_model=AnnotationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={500: {"model": ErrorResponse}},
    summary="Add an annotation, merging into an existing one at the same location",
)
async def add_annotation(
    annotation: AnnotationCreate,
    store: AnnotationStore = Depends(get_annotation_store),
) -> AnnotationResponse:
    with storage_errors("save the annotation"):
        return await store.add_annotation(annotation)


@router.post(
    "/calibre",
    response_model=AnnotationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={500: {"model": ErrorResponse}},
    summary="Add a Calibre export record",
)
async def add_calibre_annotation(
    annotation: CalibreAnnotation,
    store: AnnotationStore = Depends(get_annotation_store),
) -> AnnotationResponse:
    with storage_errors("save the annotation"):
        return await store.add_calibre_annotation(annotation)


@router.put(
    "/{annotation_id}",
    response_model=AnnotationResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Edit the highlight and note of an annotation",
)
async def edit_annotation(
    annotation_id: int,
    edit: AnnotationEdit,
    store: AnnotationStore = Depends(get_annotation_store),
) -> AnnotationResponse:
    with storage_errors("edit the annotation"):
        result = await store.edit_annotation(annotation_id, edit.highlight, edit.note)
    if result is None:
        raise NotFoundError(resource="annotation", resource_id=str(annotation_id))
    return result


@router.delete(
    "/{annotation_id}",
    response_model=AnnotationResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Delete an annotation",
)
async def delete_annotation(
    annotation_id: int,
    store: AnnotationStore = Depends(get_annotation_store),
) -> AnnotationResponse:
    with storage_errors("delete the annotation"):
        result = await store.delete_annotation(annotation_id)
    if result is None:
        raise NotFoundError(resource="annotation", resource_id=str(annotation_id))
    return result


@router.post(
    "/{annotation_id}/tags",
    response_model=AnnotationTagResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Attach a tag to an annotation",
)
async def add_tag(
    annotation_id: int,
    body: TagRequest,
    store: AnnotationStore = Depends(get_annotation_store),
) -> AnnotationTagResponse:
    with storage_errors("tag the annotation"):
        return await store.add_tag_to_annotation(annotation_id, body.tag)


@router.delete(
    "/{annotation_id}/tags/{tag}",
    response_model=AnnotationTagResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Detach a tag from an annotation",
)
async def remove_tag(
    annotation_id: int,
    tag: str,
    store: AnnotationStore = Depends(get_annotation_store),
) -> AnnotationTagResponse:
    with storage_errors("untag the annotation"):
        result = await store.remove_tag_from_annotation(annotation_id, tag)
    if result is None:
        raise NotFoundError(resource="tag", resource_id=tag)
    return result
