"""
Bookmarker — Calibre Annotation Importer
==========================================

What:  Loads a Calibre/Kindle clippings export (JSON) into the database.
Why:   Annotations reach the database in bulk from device exports; the
       HTTP API is for browsing and editing them afterwards.
How:   Validates each record as a CalibreAnnotation and feeds it through
       AnnotationStore.add_calibre_annotation, so re-importing a file merges
       into existing rows instead of duplicating them. Everything runs in one
       session and is committed at the end.

Usage:
    python -m bookmarker.importer clippings.json [--database-url URL]

Input format:
    A JSON array of objects with at least `kind`, `text` and `title`.
    Records whose kind is neither "highlight" nor "note" (bookmarks,
    clippings) are skipped.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, NamedTuple, Optional, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookmarker.config import settings
from bookmarker.database import build_engine
from bookmarker.exceptions import ValidationError
from bookmarker.schemas.annotation import CalibreAnnotation
from bookmarker.services.annotation_store import AnnotationStore

logger = logging.getLogger(__name__)

IMPORTED_KINDS = {"highlight", "note"}


class ImportSummary(NamedTuple):
    records: int      # records handed to the store
    annotations: int  # distinct annotation rows they ended up in
    skipped: int      # records of other kinds


def load_calibre_records(path: Path) -> Tuple[List[CalibreAnnotation], int]:
    """
    Read and validate an export file.

    Returns the importable records and the number of records skipped.

    Raises:
        ValidationError: unreadable JSON, a top level that is not a list,
                         or a highlight/note record missing required fields.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(
            message=f"{path} is not valid JSON: {e.msg} (line {e.lineno})",
            context={"path": str(path)},
        )

    if not isinstance(raw, list):
        raise ValidationError(
            message=f"{path} must contain a JSON array of annotation records",
            context={"path": str(path)},
        )

    records: List[CalibreAnnotation] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict) or item.get("kind") not in IMPORTED_KINDS:
            continue
        try:
            records.append(CalibreAnnotation.model_validate(item))
        except PydanticValidationError as e:
            raise ValidationError(
                message=f"Record {index} in {path} is invalid: {e.errors()[0]['msg']}",
                field=".".join(str(part) for part in e.errors()[0]["loc"]),
                context={"path": str(path), "index": index},
            )
    return records, len(raw) - len(records)


async def import_annotations(
    store: AnnotationStore, records: Sequence[CalibreAnnotation]
) -> List[int]:
    """Store each record; returns the annotation id each one landed in."""
    ids = []
    for record in records:
        row = await store.add_calibre_annotation(record)
        ids.append(row.id)
    return ids


async def import_file(path: Path, session: AsyncSession) -> ImportSummary:
    """Import one export file on the given session and commit."""
    records, skipped = load_calibre_records(path)
    ids = await import_annotations(AnnotationStore(session), records)
    await session.commit()
    return ImportSummary(
        records=len(records),
        annotations=len(set(ids)),
        skipped=skipped,
    )


async def run(path: Path, database_url: str) -> ImportSummary:
    engine = build_engine(database_url)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_factory() as session:
            return await import_file(path, session)
    finally:
        await engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bookmarker-import",
        description="Import a Calibre/Kindle annotation export into Bookmarker.",
    )
    parser.add_argument("path", type=Path, help="JSON file with annotation records")
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        help="Database URL (default: DATABASE_URL from the environment)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    from bookmarker.main import setup_logging

    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        summary = asyncio.run(run(args.path, args.database_url))
    except ValidationError as e:
        logger.error("Import aborted: %s", e.message)
        return 1

    logger.info(
        "Imported %d records into %d annotations (%d skipped)",
        summary.records,
        summary.annotations,
        summary.skipped,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
