"""Tests for folder records, member uploads, archives and folder deletion."""

import io
import zipfile

import pytest
from sqlalchemy.exc import OperationalError

from conftest import OVERRIDE_CODE, create_folder, stored_keys
from api.files.repositories import files_repository
from api.files.services import files_service
from api.upload.services import upload_service
from api.download.services import archive_service
from exceptions import ArchiveError, ValidationError
from storage import LocalObjectStorage


def _zip_contents(data: bytes) -> dict[str, bytes]:
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return {name: zf.read(name) for name in zf.namelist()}


class TestFolderUpload:

    def test_folder_has_exactly_one_record(self, client, storage):
        record = create_folder(client)

        listed = client.get("/api/files").json()
        assert [f["id"] for f in listed] == [record["id"]]
        assert listed[0]["is_folder"] is True
        assert listed[0]["file_count"] == 3
        assert len(stored_keys(storage)) == 3

    def test_zero_files_is_rejected(self, client):
        response = client.post(
            "/api/folders",
            json={"title": "Empty", "secret_code": "x", "file_count": 0, "size": 0},
        )
        assert response.status_code == 400

    def test_duplicate_folder_title_is_rejected(self, client):
        create_folder(client, title="Course")
        response = client.post(
            "/api/folders",
            json={"title": "Course", "secret_code": "x", "file_count": 2, "size": 10},
        )
        assert response.status_code == 409

    def test_member_upload_requires_folder_code(self, client, storage):
        record = create_folder(client, files={})
        response = client.put(
            f"/api/folders/{record['id']}/files/course/a.txt",
            content=b"x",
            headers={"X-Secret-Code": "wrong"},
        )
        assert response.status_code == 403
        assert stored_keys(storage) == []

    def test_member_upload_into_a_single_file_record_is_refused(self, client):
        file_record = client.post(
            "/api/files",
            data={"title": "Single", "secret_code": "s3cret"},
            files={"file": ("a.txt", b"a", "text/plain")},
        ).json()
        response = client.put(
            f"/api/folders/{file_record['id']}/files/x.txt",
            content=b"x",
            headers={"X-Secret-Code": "s3cret"},
        )
        assert response.status_code == 404

    def test_member_paths_cannot_escape_the_folder(self, client, storage):
        record = create_folder(client, files={})
        entry = upload_service.put_folder_member(
            record["id"], "s3cret", "course/../../../escape.txt", b"x", storage=storage
        )
        assert entry.key == f"folders/{record['id']}/course/escape.txt"

    @pytest.mark.parametrize("raw,expected", [
        ("notes/a.txt", "notes/a.txt"),
        ("notes\\win\\b.txt", "notes/win/b.txt"),
        ("/notes//./c.txt", "notes/c.txt"),
    ])
    def test_sanitize_relpath(self, raw, expected):
        assert upload_service.sanitize_relpath(raw) == expected

    def test_sanitize_relpath_rejects_empty_paths(self):
        with pytest.raises(ValidationError):
            upload_service.sanitize_relpath("../..")

    def test_multipart_folder_upload(self, client):
        response = client.post(
            "/api/folders/upload",
            data={"title": "Bulk", "secret_code": "s3cret", "paths": ["bulk/a.txt", "bulk/b/c.txt"]},
            files=[
                ("files", ("a.txt", b"one", "text/plain")),
                ("files", ("c.txt", b"two", "text/plain")),
            ],
        )
        assert response.status_code == 201, response.text
        body = response.json()
        assert body["uploaded"] == 2
        assert body["failed"] == []
        assert body["folder"]["file_count"] == 2
        assert body["folder"]["size"] == 6

        archive = client.get(
            "/download-folder", params={"folderId": body["folder"]["id"], "code": "s3cret"}
        )
        assert _zip_contents(archive.content) == {"bulk/a.txt": b"one", "bulk/b/c.txt": b"two"}


class TestFolderDownload:

    def test_entries_listing(self, client):
        record = create_folder(client)
        response = client.get(f"/api/folders/{record['id']}/entries", params={"code": "s3cret"})
        assert response.status_code == 200
        body = response.json()
        assert body["file_count"] == 3
        assert [e["path"] for e in body["entries"]] == [
            "course/a.txt",
            "course/sub/b.txt",
            "course/sub/deeper/c.bin",
        ]

    def test_archive_contains_every_member_under_its_relative_path(self, client):
        record = create_folder(client)

        response = client.get("/download-folder", params={"folderId": record["id"], "code": "s3cret"})
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        assert "Course.zip" in response.headers["content-disposition"]
        assert _zip_contents(response.content) == {
            "course/a.txt": b"alpha",
            "course/sub/b.txt": b"bravo",
            "course/sub/deeper/c.bin": b"\x00\x01\x02",
        }

    def test_archive_with_override_code(self, client):
        record = create_folder(client, code="private")
        response = client.get("/download-folder", params={"folderId": record["id"], "code": OVERRIDE_CODE})
        assert response.status_code == 200

    def test_archive_with_wrong_code(self, client):
        record = create_folder(client)
        response = client.get("/download-folder", params={"folderId": record["id"], "code": "nope"})
        assert response.status_code == 403
        assert response.json()["message"] == "Incorrect secret code"

    def test_empty_folder_reports_nothing_to_download(self, client):
        record = create_folder(client, files={})

        entries = client.get(f"/api/folders/{record['id']}/entries", params={"code": "s3cret"}).json()
        assert entries["entries"] == []

        response = client.get("/download-folder", params={"folderId": record["id"], "code": "s3cret"})
        assert response.status_code == 404
        assert response.json()["code"] == "EMPTY_FOLDER"

    def test_archive_failure_delivers_no_partial_archive(self, client, storage, monkeypatch):
        record = create_folder(client)

        def broken_open(key):
            raise OSError("disk on fire")

        monkeypatch.setattr(storage, "open", broken_open)
        response = client.get("/download-folder", params={"folderId": record["id"], "code": "s3cret"})
        assert response.status_code == 500
        assert response.json() == {
            "message": "Could not create the archive, please try again later",
            "code": "ARCHIVE_FAILED",
        }

    def test_single_file_access_refuses_folders(self, client):
        record = create_folder(client)
        response = client.get(f"/api/files/{record['id']}/access", params={"code": "s3cret"})
        assert response.status_code == 404


class TestFolderDelete:

    def test_delete_removes_every_member_and_the_record(self, client, storage):
        record = create_folder(client)

        response = client.delete(f"/api/files/{record['id']}", headers={"X-Secret-Code": "s3cret"})
        assert response.status_code == 204
        assert stored_keys(storage) == []
        assert client.get(f"/api/files/{record['id']}").status_code == 404
        response = client.get("/download-folder", params={"folderId": record["id"], "code": "s3cret"})
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class FlakyStorage(LocalObjectStorage):
    """Fails the first remove call."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.remove_calls = 0

    def remove(self, keys):
        self.remove_calls += 1
        if self.remove_calls == 1:
            raise OSError("temporarily unavailable")
        return super().remove(keys)


@pytest.fixture
def flaky_storage(tmp_path):
    return FlakyStorage(tmp_path / "bucket", "signing-key")


def test_failed_removal_batch_does_not_stop_deletion(flaky_storage):
    record = files_repository.create(
        title="Flaky",
        filename="flaky",
        file_path="folders/flaky",
        secret_code="s3cret",
        content_type="application/x-directory",
        size=5,
        is_folder=True,
        file_count=5,
    )
    for i in range(5):
        flaky_storage.put(f"folders/flaky/flaky/{i}.txt", b"x")

    result = files_service.delete_file(record.id, "s3cret", storage=flaky_storage, batch_size=2)

    assert flaky_storage.remove_calls == 3
    assert len(result.failed) == 2
    assert len(result.succeeded) == 3
    # The record goes even though two objects are now orphaned.
    assert files_repository.get_by_id(record.id) is None
    assert len(flaky_storage.list("folders/flaky")) == 2


class TestFolderSetupFailure:

    @pytest.fixture
    def broken_store(self, monkeypatch):
        def create(**kwargs):
            raise OperationalError("INSERT INTO shared_files", {}, Exception("database is locked"))

        monkeypatch.setattr(files_repository, "create", create)

    @pytest.fixture
    def no_batches(self, monkeypatch):
        async def run_batches(*args, **kwargs):
            raise AssertionError("members must not be uploaded")

        monkeypatch.setattr(upload_service, "run_batches", run_batches)

    def test_multipart_upload_writes_nothing(self, client, storage, broken_store, no_batches):
        response = client.post(
            "/api/folders/upload",
            data={"title": "Bulk", "secret_code": "s3cret", "paths": ["bulk/a.txt", "bulk/b.txt"]},
            files=[
                ("files", ("a.txt", b"one", "text/plain")),
                ("files", ("b.txt", b"two", "text/plain")),
            ],
        )
        assert response.status_code == 500
        assert response.json() == {
            "message": "Could not create the folder, nothing was uploaded",
            "code": "FOLDER_SETUP_FAILED",
        }
        assert stored_keys(storage) == []
        assert client.get("/api/files").json() == []

    def test_folder_record_endpoint(self, client, broken_store):
        response = client.post(
            "/api/folders",
            json={"title": "Course", "secret_code": "x", "file_count": 2, "size": 10},
        )
        assert response.status_code == 500
        assert response.json()["code"] == "FOLDER_SETUP_FAILED"


def test_member_upload_checks_the_code_before_storing(client, storage, monkeypatch):
    record = create_folder(client, files={})

    def put_folder_member(*args, **kwargs):
        raise AssertionError("body must not be stored")

    monkeypatch.setattr(upload_service, "put_folder_member", put_folder_member)
    response = client.put(
        f"/api/folders/{record['id']}/files/course/a.txt",
        content=b"x" * 4096,
        headers={"X-Secret-Code": "wrong"},
    )
    assert response.status_code == 403
    assert stored_keys(storage) == []


def test_build_archive_returns_a_rewound_file(client, storage):
    created = create_folder(client)
    record = files_repository.get_access_by_id(created["id"])
    entries = archive_service.list_folder(record, storage)

    with archive_service.build_archive(record, entries, storage) as archive:
        assert archive.tell() == 0
        assert _zip_contents(archive.read())["course/sub/b.txt"] == b"bravo"


def test_build_archive_failure_raises_archive_error(client, storage, monkeypatch):
    created = create_folder(client)
    record = files_repository.get_access_by_id(created["id"])
    entries = archive_service.list_folder(record, storage)

    def broken_open(key):
        raise OSError("disk on fire")

    monkeypatch.setattr(storage, "open", broken_open)
    with pytest.raises(ArchiveError):
        archive_service.build_archive(record, entries, storage)


@pytest.mark.parametrize("raw", ["../escaped.txt", "a/b/escaped.txt", "..\\dir\\escaped.txt"])
def test_upload_file_stores_the_base_name(storage, raw):
    record = upload_service.upload_file(raw, "s3cret", raw, "text/plain", b"x", storage=storage)
    assert record.filename == "escaped.txt"


def test_upload_file_rejects_a_name_without_a_file(storage):
    with pytest.raises(ValidationError):
        upload_service.upload_file("Nameless", "s3cret", "../..", "text/plain", b"x", storage=storage)
    assert stored_keys(storage) == []
