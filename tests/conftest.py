"""Shared pytest fixtures for all tests."""

import os
import shutil
import tempfile

# Configuration is read at import time; point it at a scratch directory first.
_DATA_DIR = tempfile.mkdtemp(prefix="library-tests-")
os.environ["DATA_DIR"] = _DATA_DIR
os.environ["STORAGE_DIR"] = os.path.join(_DATA_DIR, "bucket")
os.environ.pop("DATABASE_URL", None)
os.environ["LIBRARY_OVERRIDE_CODE"] = "41134"
os.environ["LIBRARY_SIGNING_KEY"] = "test-signing-key"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

OVERRIDE_CODE = "41134"


@pytest.fixture(scope="session")
def app():
    """The FastAPI application, migrated against the scratch database."""
    from main import app

    return app


@pytest.fixture(autouse=True)
def clean_state():
    """
    Give every test an empty record store and an empty bucket.
    """
    from database import SessionLocal, init_db
    from api.files.orm import FileModel
    from storage import get_storage

    init_db()
    yield

    with SessionLocal() as session:
        session.query(FileModel).delete()
        session.commit()

    storage = get_storage()
    for directory in (storage.objects_dir, storage.meta_dir):
        shutil.rmtree(directory, ignore_errors=True)
        directory.mkdir(parents=True, exist_ok=True)


@pytest.fixture
def client(app):
    """Create FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def storage():
    from storage import get_storage

    return get_storage()


def stored_keys(storage) -> list[str]:
    """Every object key currently in the bucket."""
    return sorted(
        p.relative_to(storage.objects_dir).as_posix()
        for p in storage.objects_dir.rglob("*")
        if p.is_file()
    )


def upload(client, title="Lecture notes", code="s3cret", filename="notes.txt", content=b"hello world"):
    return client.post(
        "/api/files",
        data={"title": title, "secret_code": code},
        files={"file": (filename, content, "text/plain")},
    )


def create_folder(client, title="Course", code="s3cret", files=None):
    """Create a folder record and PUT its members; returns the record JSON."""
    files = files if files is not None else {
        "course/a.txt": b"alpha",
        "course/sub/b.txt": b"bravo",
        "course/sub/deeper/c.bin": b"\x00\x01\x02",
    }
    response = client.post(
        "/api/folders",
        json={
            "title": title,
            "secret_code": code,
            "file_count": max(len(files), 1),
            "size": sum(len(v) for v in files.values()),
            "name": "course",
        },
    )
    assert response.status_code == 201, response.text
    record = response.json()
    for path, content in files.items():
        r = client.put(
            f"/api/folders/{record['id']}/files/{path}",
            content=content,
            headers={"X-Secret-Code": code},
        )
        assert r.status_code == 200, r.text
    return record
