"""
Bookmarker — Annotation Route Tests
=====================================

What:  HTTP contract of /api/annotations and /health.
How:   Most tests replace the store dependency with an AsyncMock (see
       conftest) to pin status codes and bodies without a database.
       TestAgainstDatabase runs the real session dependency on SQLite.

What we test:
    ✅ Read endpoints return 200 with projections
    ✅ Read endpoints answer their fixed 404 bodies on absence or failure
    ✅ Write endpoints map None → 404, IntegrityError → 409, other DB errors → 500
    ✅ Request IDs are echoed back
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from bookmarker.models.annotation import Tag
from bookmarker.schemas.annotation import AnnotationResponse, AnnotationTagResponse


def make_annotation(**overrides):
    fields = dict(
        id=1,
        book_id=7,
        bookline="The Worldly Philosophers (Heilbroner, Robert L.)",
        title="The Worldly Philosophers",
        author="Heilbroner, Robert L.",
        language="en",
        begin=1077,
        end=1080,
        time="2020-02-15-01-19-41",
        highlight="In a sense the vision of Adam Smith",
        note=None,
        page=None,
    )
    fields.update(overrides)
    return AnnotationResponse(**fields)


def db_down():
    return OperationalError("SELECT ...", {}, Exception("connection refused"))


class TestReadEndpoints:

    @pytest.mark.asyncio
    async def test_list(self, test_client, mock_store):
        mock_store.get_all_annotations.return_value = [make_annotation(), make_annotation(id=2)]

        response = await test_client.get("/api/annotations/")

        assert response.status_code == 200
        body = response.json()
        assert [a["id"] for a in body] == [1, 2]
        assert set(body[0]) == {
            "id", "book_id", "bookline", "title", "author", "language",
            "begin", "end", "time", "highlight", "note", "page",
        }
        mock_store.get_all_annotations.assert_awaited_once_with(limit=50)

    @pytest.mark.asyncio
    async def test_list_passes_limit(self, test_client, mock_store):
        mock_store.get_all_annotations.return_value = []

        response = await test_client.get("/api/annotations/", params={"limit": 5})

        assert response.status_code == 200
        assert response.json() == []
        mock_store.get_all_annotations.assert_awaited_once_with(limit=5)

    @pytest.mark.asyncio
    async def test_list_failure_is_404(self, test_client, mock_store):
        mock_store.get_all_annotations.side_effect = db_down()

        response = await test_client.get("/api/annotations/")

        assert response.status_code == 404
        assert response.json() == {"noAnnotationsFound": "No Annotations Found"}

    @pytest.mark.asyncio
    async def test_get_by_id(self, test_client, mock_store):
        mock_store.get_annotation_by_id.return_value = make_annotation(id=3)

        response = await test_client.get("/api/annotations/3")

        assert response.status_code == 200
        assert response.json()["id"] == 3
        mock_store.get_annotation_by_id.assert_awaited_once_with(3)

    @pytest.mark.asyncio
    async def test_get_missing_id_is_404(self, test_client, mock_store):
        mock_store.get_annotation_by_id.return_value = None

        response = await test_client.get("/api/annotations/999999")

        assert response.status_code == 404
        assert response.json() == {"noAnnotationFound": "No Annotation with ID Found"}

    @pytest.mark.asyncio
    async def test_get_by_id_failure_is_404(self, test_client, mock_store):
        mock_store.get_annotation_by_id.side_effect = db_down()

        response = await test_client.get("/api/annotations/3")

        assert response.status_code == 404
        assert response.json() == {"noAnnotationFound": "No Annotation with ID Found"}

    @pytest.mark.asyncio
    async def test_get_by_book(self, test_client, mock_store):
        mock_store.get_annotations_by_book_id.return_value = [make_annotation(book_id=7)]

        response = await test_client.get("/api/annotations/bookID/7")

        assert response.status_code == 200
        assert response.json()[0]["book_id"] == 7
        mock_store.get_annotations_by_book_id.assert_awaited_once_with(7)

    @pytest.mark.asyncio
    async def test_get_by_book_failure_is_404(self, test_client, mock_store):
        mock_store.get_annotations_by_book_id.side_effect = db_down()

        response = await test_client.get("/api/annotations/bookID/7")

        assert response.status_code == 404
        assert response.json() == {
            "noAnnotationsFound": "No Annotations Associated with Book ID found"
        }


class TestWriteEndpoints:

    @pytest.mark.asyncio
    async def test_create(self, test_client, mock_store):
        mock_store.add_annotation.return_value = make_annotation(id=10)

        response = await test_client.post(
            "/api/annotations/",
            json={"title": "The Worldly Philosophers", "begin": 1077, "end": 1080, "highlight": "x"},
        )

        assert response.status_code == 201
        assert response.json()["id"] == 10
        submitted = mock_store.add_annotation.await_args.args[0]
        assert submitted.title == "The Worldly Philosophers"
        assert submitted.end == 1080

    @pytest.mark.asyncio
    async def test_create_requires_title(self, test_client, mock_store):
        response = await test_client.post("/api/annotations/", json={"end": 1080})

        assert response.status_code == 422
        mock_store.add_annotation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_database_error_is_500(self, test_client, mock_store):
        mock_store.add_annotation.side_effect = db_down()

        response = await test_client.post("/api/annotations/", json={"title": "Foo", "end": 1})

        assert response.status_code == 500
        assert response.json()["error"] == "server_error"

    @pytest.mark.asyncio
    async def test_calibre(self, test_client, mock_store, sample_calibre_record):
        mock_store.add_calibre_annotation.return_value = make_annotation()

        response = await test_client.post("/api/annotations/calibre", json=sample_calibre_record)

        assert response.status_code == 201
        record = mock_store.add_calibre_annotation.await_args.args[0]
        assert record.kind == "highlight"
        assert record.text == sample_calibre_record["text"]

    @pytest.mark.asyncio
    async def test_calibre_rejects_unknown_kind(self, test_client, mock_store, sample_calibre_record):
        response = await test_client.post(
            "/api/annotations/calibre", json=dict(sample_calibre_record, kind="bookmark"),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_edit(self, test_client, mock_store):
        mock_store.edit_annotation.return_value = make_annotation(highlight="H", note="N")

        response = await test_client.put("/api/annotations/1", json={"highlight": "H", "note": "N"})

        assert response.status_code == 200
        assert response.json()["note"] == "N"
        mock_store.edit_annotation.assert_awaited_once_with(1, "H", "N")

    @pytest.mark.asyncio
    async def test_edit_missing_is_404(self, test_client, mock_store):
        mock_store.edit_annotation.return_value = None

        response = await test_client.put("/api/annotations/5", json={"highlight": "H", "note": "N"})

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_delete(self, test_client, mock_store):
        mock_store.delete_annotation.return_value = make_annotation(id=4)

        response = await test_client.delete("/api/annotations/4")

        assert response.status_code == 200
        assert response.json()["id"] == 4

    @pytest.mark.asyncio
    async def test_delete_missing_is_404(self, test_client, mock_store):
        mock_store.delete_annotation.return_value = None

        response = await test_client.delete("/api/annotations/4")

        assert response.status_code == 404


class TestTagEndpoints:

    @pytest.mark.asyncio
    async def test_add_tag(self, test_client, mock_store):
        mock_store.add_tag_to_annotation.return_value = AnnotationTagResponse(annotation_id=1, tag_id=9)

        response = await test_client.post("/api/annotations/1/tags", json={"tag": "economics"})

        assert response.status_code == 201
        assert response.json() == {"annotation_id": 1, "tag_id": 9}
        mock_store.add_tag_to_annotation.assert_awaited_once_with(1, "economics")

    @pytest.mark.asyncio
    async def test_duplicate_tag_is_409(self, test_client, mock_store):
        mock_store.add_tag_to_annotation.side_effect = IntegrityError(
            "INSERT INTO annotations_tags ...", {}, Exception("UNIQUE constraint failed"),
        )

        response = await test_client.post("/api/annotations/1/tags", json={"tag": "economics"})

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_empty_tag_is_422(self, test_client, mock_store):
        response = await test_client.post("/api/annotations/1/tags", json={"tag": ""})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_remove_tag(self, test_client, mock_store):
        mock_store.remove_tag_from_annotation.return_value = AnnotationTagResponse(annotation_id=1, tag_id=9)

        response = await test_client.delete("/api/annotations/1/tags/economics")

        assert response.status_code == 200
        mock_store.remove_tag_from_annotation.assert_awaited_once_with(1, "economics")

    @pytest.mark.asyncio
    async def test_remove_unattached_tag_is_404(self, test_client, mock_store):
        mock_store.remove_tag_from_annotation.return_value = None

        response = await test_client.delete("/api/annotations/1/tags/economics")

        assert response.status_code == 404


class TestAmbient:

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, test_client, mock_store):
        mock_store.get_all_annotations.return_value = []

        response = await test_client.get("/api/annotations/", headers={"X-Request-ID": "abc123"})

        assert response.headers["X-Request-ID"] == "abc123"

    @pytest.mark.asyncio
    async def test_request_id_generated(self, test_client, mock_store):
        mock_store.get_all_annotations.return_value = []

        response = await test_client.get("/api/annotations/")

        assert len(response.headers["X-Request-ID"]) == 8

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"


class TestAgainstDatabase:
    """Full request cycle through get_db_session on an in-memory database."""

    @pytest.mark.asyncio
    async def test_missing_id_is_404(self, db_client):
        response = await db_client.get("/api/annotations/999999")

        assert response.status_code == 404
        assert response.json() == {"noAnnotationFound": "No Annotation with ID Found"}

    @pytest.mark.asyncio
    async def test_created_annotation_is_committed(self, db_client):
        created = await db_client.post(
            "/api/annotations/",
            json={"title": "Foo", "end": 80, "highlight": "x", "time": "2020-02-15T13:19:41"},
        )
        assert created.status_code == 201

        # Served by a new request, hence a new session
        fetched = await db_client.get(f"/api/annotations/{created.json()['id']}")

        assert fetched.status_code == 200
        assert fetched.json() == created.json()
        assert fetched.json()["time"] == "2020-02-15-01-19-41"

    @pytest.mark.asyncio
    async def test_failed_request_rolls_back(self, db_client, db_engine):
        created = await db_client.post("/api/annotations/", json={"title": "Foo", "end": 80})
        annotation_id = created.json()["id"]
        first = await db_client.post(f"/api/annotations/{annotation_id}/tags", json={"tag": "economics"})
        assert first.status_code == 201

        duplicate = await db_client.post(f"/api/annotations/{annotation_id}/tags", json={"tag": "economics"})
        assert duplicate.status_code == 409

        other = await db_client.post(f"/api/annotations/{annotation_id}/tags", json={"tag": "history"})
        assert other.status_code == 201
        async with AsyncSession(db_engine) as session:
            tags = (await session.execute(select(Tag.tag).order_by(Tag.tag))).scalars().all()
        assert tags == ["economics", "history"]
