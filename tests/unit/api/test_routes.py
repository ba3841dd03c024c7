"""Tests for the MediaVault HTTP routes."""

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Dict, List

import pytest
from fastapi.testclient import TestClient

from mediavault.api.main import create_app
from mediavault.api.routes.upload import _validate_upload
from mediavault.core.exceptions import UnsupportedMediaError
from mediavault.core.jobs import JobKind, JobScheduler, JobStore
from mediavault.media.library import ImageRecord, MediaLibrary


class RecordingHandlers:
    """Handlers that remember which resources they ran for."""

    def __init__(self, fail: bool = False) -> None:
        self.calls: Dict[JobKind, List[str]] = {kind: [] for kind in JobKind}
        self.fail = fail

    def for_kind(self, kind: JobKind):
        async def handler(resource_id: str) -> None:
            self.calls[kind].append(resource_id)
            if self.fail:
                raise RuntimeError(f"{kind.value} failed")

        return handler

    def mapping(self):
        return {kind: self.for_kind(kind) for kind in JobKind}


@pytest.fixture
def handlers() -> RecordingHandlers:
    return RecordingHandlers()


@pytest.fixture
def scheduler(handlers: RecordingHandlers) -> JobScheduler:
    return JobScheduler(handlers.mapping(), concurrency=2)


@pytest.fixture
def client(config, library, scheduler):
    app = create_app(config, scheduler=scheduler, library=library)
    with TestClient(app) as test_client:
        yield test_client


def _populated_store() -> JobStore:
    store = JobStore()
    store.enqueue("done", JobKind.AI_ANALYSIS)
    store.enqueue("broken", JobKind.AI_ANALYSIS)
    store.enqueue("running", JobKind.METADATA_AND_THUMBNAIL)
    store.enqueue("waiting", JobKind.AI_ANALYSIS)
    store.record_finished(store.dequeue_next())
    store.record_finished(store.dequeue_next(), "Claude request failed")
    store.dequeue_next()
    return store


class TestHealth:
    def test_health_reports_queue(self, client: TestClient) -> None:
        response = client.get("/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["queue"] == {
            "pending": 0,
            "processing": 0,
            "completed": 0,
            "failed": 0,
            "total": 0,
        }


class TestQueueStatus:
    def test_counts(self, config, library) -> None:
        scheduler = JobScheduler({}, store=_populated_store())
        app = create_app(config, scheduler=scheduler, library=library)
        # No lifespan: the pending job must stay pending
        response = TestClient(app).get("/v1/images/queue-status")

        assert response.status_code == 200
        assert response.json() == {
            "pending": 1,
            "processing": 1,
            "completed": 1,
            "failed": 1,
            "total": 4,
        }

    def test_lookup_by_ids(self, config, library) -> None:
        scheduler = JobScheduler({}, store=_populated_store())
        app = create_app(config, scheduler=scheduler, library=library)

        response = TestClient(app).post(
            "/v1/images/queue-status",
            json={"imageIds": ["waiting", "running", "done", "broken", "unknown-id"]},
        )

        assert response.status_code == 200
        jobs = response.json()["jobs"]
        assert [job["resourceId"] for job in jobs] == [
            "waiting",
            "running",
            "done",
            "broken",
            "unknown-id",
        ]
        assert [job["status"] for job in jobs] == [
            "pending",
            "processing",
            "complete",
            "failed",
            "not-found",
        ]
        assert jobs[3]["error"] == "Claude request failed"
        assert "error" not in jobs[0]
        assert jobs[4] == {"resourceId": "unknown-id", "status": "not-found"}

    def test_lookup_requires_image_ids(self, client: TestClient) -> None:
        response = client.post("/v1/images/queue-status", json={})

        assert response.status_code == 400
        assert response.json()["code"] == "MV-REQ-000"


class TestAnalyze:
    def test_single_image(self, client: TestClient, scheduler, handlers) -> None:
        response = client.post("/v1/images/img-1/analyze")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["imageId"] == "img-1"
        assert scheduler.get_job(body["jobId"]).kind is JobKind.AI_ANALYSIS

    def test_batch(self, client: TestClient, scheduler, handlers) -> None:
        response = client.post(
            "/v1/images/analyze-batch", json={"imageIds": ["a", "b", "c"]}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 3
        assert body["message"] == "Queued 3 images for AI analysis"
        assert len(set(body["jobIds"])) == 3

    def test_batch_rejects_empty_list(self, client: TestClient) -> None:
        response = client.post("/v1/images/analyze-batch", json={"imageIds": []})

        assert response.status_code == 400
        assert response.json() == {
            "error": "imageIds must be a non-empty array",
            "code": "MV-HTTP-400",
        }

    def test_batch_with_empty_id_queues_nothing(
        self, client: TestClient, scheduler
    ) -> None:
        response = client.post(
            "/v1/images/analyze-batch", json={"imageIds": ["a", ""]}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "MV-REQ-000"
        assert scheduler.get_queue_status().total == 0

    def test_jobs_finish_after_shutdown(self, config, library, handlers) -> None:
        scheduler = JobScheduler(handlers.mapping())
        app = create_app(config, scheduler=scheduler, library=library)

        with TestClient(app) as test_client:
            test_client.post("/v1/images/analyze-batch", json={"imageIds": ["a", "b"]})

        assert sorted(handlers.calls[JobKind.AI_ANALYSIS]) == ["a", "b"]
        assert scheduler.get_queue_status().completed == 2

    def test_failed_job_visible_in_status(self, config, library) -> None:
        failing = RecordingHandlers(fail=True)
        scheduler = JobScheduler(failing.mapping())
        app = create_app(config, scheduler=scheduler, library=library)

        with TestClient(app) as test_client:
            test_client.post("/v1/images/img-9/analyze")

        response = TestClient(app).post(
            "/v1/images/queue-status", json={"imageIds": ["img-9"]}
        )
        (job,) = response.json()["jobs"]
        assert job["status"] == "failed"
        assert job["error"] == "ai-analysis failed"


class TestUpload:
    def test_upload_queues_both_jobs(
        self, client: TestClient, scheduler, library, jpeg_bytes
    ) -> None:
        response = client.post(
            "/v1/upload",
            files=[("files", ("sunset.jpg", jpeg_bytes, "image/jpeg"))],
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["count"] == 1
        (result,) = body["results"]
        assert result["status"] == "success"
        assert result["filepath"].startswith("originals/")
        assert result["thumbnailPath"].startswith("thumbnails/")
        kinds = [scheduler.get_job(job_id).kind for job_id in result["jobIds"]]
        assert kinds == [JobKind.METADATA_AND_THUMBNAIL, JobKind.AI_ANALYSIS]
        assert library.exists(result["id"])

    def test_rejections_are_per_file(self, client: TestClient, jpeg_bytes) -> None:
        response = client.post(
            "/v1/upload",
            files=[
                ("files", ("notes.txt", b"hello", "text/plain")),
                ("files", ("scan.tiff", b"II*\x00", "image/tiff")),
                ("files", ("empty.jpg", b"", "image/jpeg")),
                ("files", ("ok.jpg", jpeg_bytes, "image/jpeg")),
            ],
        )

        assert response.status_code == 200
        results = response.json()["results"]
        assert [r["status"] for r in results] == ["error", "error", "error", "success"]
        assert results[0]["error"] == "Unsupported content type: text/plain"
        assert results[1]["error"] == "Unsupported image type: image/tiff"
        assert results[2]["error"] == "File is empty"

    def test_oversized_file_rejected(self, config, library, scheduler) -> None:
        config.media.max_file_size_mb = 0.001
        app = create_app(config, scheduler=scheduler, library=library)

        response = TestClient(app).post(
            "/v1/upload",
            files=[("files", ("big.jpg", b"x" * 2048, "image/jpeg"))],
        )

        (result,) = response.json()["results"]
        assert result["status"] == "error"
        assert "MB limit" in result["error"]

    def test_too_many_files(self, config, library, scheduler) -> None:
        config.media.max_files_per_batch = 1
        app = create_app(config, scheduler=scheduler, library=library)

        response = TestClient(app).post(
            "/v1/upload",
            files=[
                ("files", ("a.jpg", b"x", "image/jpeg")),
                ("files", ("b.jpg", b"x", "image/jpeg")),
            ],
        )

        assert response.status_code == 400

    def test_missing_files_field(self, client: TestClient) -> None:
        assert client.post("/v1/upload").status_code == 400

    def test_validate_upload_raises_media_error(self, config) -> None:
        text_file = SimpleNamespace(content_type="text/plain")

        with pytest.raises(UnsupportedMediaError) as exc_info:
            _validate_upload(text_file, b"hello", config)

        assert exc_info.value.error_code == "MV-MEDIA-002"
        assert exc_info.value.user_message == "Unsupported content type: text/plain"


class TestErrorBody:
    def test_unknown_path(self, client: TestClient) -> None:
        response = client.get("/v1/nothing-here")

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found", "code": "MV-HTTP-404"}

    def test_missing_files_field_uses_error_shape(self, client: TestClient) -> None:
        body = client.post("/v1/upload").json()

        assert set(body) >= {"error", "code"}
        assert "detail" not in body


def _store(library: MediaLibrary, name: str, data: bytes, day: int) -> ImageRecord:
    now = datetime(2026, 3, day, tzinfo=timezone.utc)
    return library.store_upload(name, data, "image/jpeg", now=now)


class TestImages:
    def test_list_newest_first(self, client: TestClient, library) -> None:
        older = _store(library, "older.jpg", b"1", day=1)
        newer = _store(library, "newer.jpg", b"2", day=2)

        response = client.get("/v1/images")

        assert response.status_code == 200
        body = response.json()
        assert [image["id"] for image in body] == [newer.id, older.id]
        assert body[0]["originalName"] == "newer.jpg"
        assert body[0]["aiStatus"] == "pending"

    def test_list_empty(self, client: TestClient) -> None:
        assert client.get("/v1/images").json() == []

    def test_get_one(self, client: TestClient, library) -> None:
        record = _store(library, "sunset.jpg", b"x", day=9)

        response = client.get(f"/v1/images/{record.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == record.id
        assert body["thumbnailPath"] == record.thumbnail_path
        assert body["fileSize"] == 1
        assert body["ai"] is None

    def test_get_unknown(self, client: TestClient) -> None:
        response = client.get("/v1/images/missing-id")

        assert response.status_code == 404
        assert response.json()["code"] == "MV-MEDIA-001"

    def test_static_paths_not_taken_as_ids(self, client: TestClient) -> None:
        assert "pending" in client.get("/v1/images/queue-status").json()


class TestImageFile:
    def test_original(self, client: TestClient, library, jpeg_bytes) -> None:
        record = _store(library, "a.jpg", jpeg_bytes, day=1)

        response = client.get(f"/v1/images/{record.id}/file")

        assert response.status_code == 200
        assert response.content == jpeg_bytes
        assert response.headers["content-type"] == "image/jpeg"
        assert "immutable" in response.headers["cache-control"]

    def test_thumbnail(self, client: TestClient, library) -> None:
        record = _store(library, "a.jpg", b"original", day=1)
        thumbnail = library.thumbnail_path(record)
        thumbnail.parent.mkdir(parents=True, exist_ok=True)
        thumbnail.write_bytes(b"thumb")

        response = client.get(f"/v1/images/{record.id}/file?type=thumbnail")

        assert response.status_code == 200
        assert response.content == b"thumb"

    def test_thumbnail_falls_back_to_original(self, client: TestClient, library) -> None:
        record = _store(library, "a.jpg", b"original", day=1)

        response = client.get(f"/v1/images/{record.id}/file?type=thumbnail")

        assert response.status_code == 200
        assert response.content == b"original"

    def test_missing_original(self, client: TestClient, library) -> None:
        record = _store(library, "a.jpg", b"original", day=1)
        library.original_path(record).unlink()

        response = client.get(f"/v1/images/{record.id}/file")

        assert response.status_code == 404
        assert response.json()["code"] == "MV-MEDIA-001"

    def test_bad_type(self, client: TestClient, library) -> None:
        record = _store(library, "a.jpg", b"original", day=1)

        response = client.get(f"/v1/images/{record.id}/file?type=poster")

        assert response.status_code == 400


class TestDelete:
    def test_delete_one(self, client: TestClient, library) -> None:
        record = _store(library, "a.jpg", b"x", day=1)
        thumbnail = library.thumbnail_path(record)
        thumbnail.parent.mkdir(parents=True, exist_ok=True)
        thumbnail.write_bytes(b"t")

        response = client.delete(f"/v1/images/{record.id}")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Image deleted successfully",
            "imageId": record.id,
        }
        assert not library.exists(record.id)
        assert not library.original_path(record).exists()
        assert not thumbnail.exists()

    def test_delete_unknown(self, client: TestClient) -> None:
        response = client.delete("/v1/images/missing-id")

        assert response.status_code == 404

    def test_delete_batch(self, client: TestClient, library) -> None:
        kept = _store(library, "kept.jpg", b"k", day=1)
        first = _store(library, "first.jpg", b"1", day=2)
        second = _store(library, "second.jpg", b"2", day=3)
        library.original_path(second).unlink()

        response = client.post(
            "/v1/images/delete-batch",
            json={"imageIds": [first.id, second.id, "missing-id"]},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Deleted 2 images"
        assert body["details"] == {
            "filesDeleted": 1,
            "thumbnailsDeleted": 0,
            "recordsDeleted": 2,
            "errors": [f"Failed to delete file for image {second.id}"],
        }
        assert [record.id for record in library.list_records()] == [kept.id]

    def test_delete_batch_none_found(self, client: TestClient) -> None:
        response = client.post(
            "/v1/images/delete-batch", json={"imageIds": ["missing-id"]}
        )

        assert response.status_code == 404
        assert response.json() == {"error": "No images found", "code": "MV-MEDIA-001"}

    def test_delete_batch_rejects_empty_id(self, client: TestClient, library) -> None:
        record = _store(library, "a.jpg", b"x", day=1)

        response = client.post(
            "/v1/images/delete-batch", json={"imageIds": [record.id, ""]}
        )

        assert response.status_code == 400
        assert library.exists(record.id)
