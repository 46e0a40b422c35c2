"""Tests for the filesystem object storage."""

import io
from urllib.parse import parse_qs, urlsplit, unquote

import pytest

from exceptions import InvalidSignatureError, LinkExpiredError
from storage.object_storage import LocalObjectStorage, normalize_key


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bucket(tmp_path, clock):
    return LocalObjectStorage(tmp_path / "bucket", "signing-key", clock=clock)


def _signed_parts(url):
    parts = urlsplit(url)
    query = parse_qs(parts.query)
    key = unquote(parts.path[len("/storage/"):])
    download = query.get("download", [None])[0]
    return key, int(query["expires"][0]), query["signature"][0], download


class TestObjects:

    def test_put_and_read_back(self, bucket):
        entry = bucket.put("files/a.txt", b"hello", "text/plain")

        assert entry.key == "files/a.txt"
        assert entry.size == 5
        assert entry.content_type == "text/plain"
        with bucket.open("files/a.txt") as f:
            assert f.read() == b"hello"

    def test_put_accepts_file_objects(self, bucket):
        bucket.put("files/b.bin", io.BytesIO(b"\x00" * 2048))
        assert bucket.stat("files/b.bin").size == 2048

    def test_content_type_is_guessed_when_missing(self, bucket):
        assert bucket.put("files/c.pdf", b"%PDF").content_type == "application/pdf"

    def test_list_is_recursive_sorted_and_paged(self, bucket):
        for name in ["f/z.txt", "f/a/b.txt", "f/a.txt", "other/x.txt"]:
            bucket.put(name, b"x")

        keys = [e.key for e in bucket.list("f")]
        assert keys == ["f/a.txt", "f/a/b.txt", "f/z.txt"]
        assert [e.key for e in bucket.list("f", limit=2)] == ["f/a.txt", "f/a/b.txt"]
        assert [e.key for e in bucket.list("f", limit=2, offset=2)] == ["f/z.txt"]
        assert bucket.list("missing") == []

    def test_remove_deletes_and_ignores_missing(self, bucket):
        bucket.put("f/a/b.txt", b"x")
        bucket.put("f/c.txt", b"y")

        assert bucket.remove(["f/a/b.txt", "f/c.txt", "f/nope.txt"]) == 2
        assert bucket.list("f") == []
        assert bucket.stat("f/c.txt") is None

    def test_remove_refuses_oversized_batches(self, bucket):
        with pytest.raises(ValueError):
            bucket.remove([f"k/{i}" for i in range(1001)])

    @pytest.mark.parametrize("key", ["", "/etc/passwd", "../escape", "a/../../b", "a\\b"])
    def test_invalid_keys_are_rejected(self, bucket, key):
        with pytest.raises(ValueError):
            bucket.put(key, b"x")

    def test_normalize_key_collapses_duplicate_slashes(self):
        assert normalize_key("a//b/c") == "a/b/c"


class TestSignedUrls:

    def test_signed_url_is_valid_inside_window(self, bucket, clock):
        bucket.put("files/a.txt", b"hello")
        url = bucket.create_signed_url("files/a.txt", 300, download_name="A.txt")

        assert "download=A.txt" in url
        key, expires, signature, download = _signed_parts(url)
        clock.now += 299
        bucket.verify_signature(key, expires, signature, download)

    def test_download_name_is_covered_by_the_signature(self, bucket):
        bucket.put("files/a.txt", b"hello")
        key, expires, signature, download = _signed_parts(
            bucket.create_signed_url("files/a.txt", 300, download_name="A.txt")
        )
        assert download == "A.txt"

        with pytest.raises(InvalidSignatureError):
            bucket.verify_signature(key, expires, signature, "evil.exe")
        with pytest.raises(InvalidSignatureError):
            bucket.verify_signature(key, expires, signature)

    def test_signed_url_expires_after_ttl(self, bucket, clock):
        bucket.put("files/a.txt", b"hello")
        key, expires, signature, _ = _signed_parts(bucket.create_signed_url("files/a.txt", 300))

        clock.now += 360
        with pytest.raises(LinkExpiredError):
            bucket.verify_signature(key, expires, signature)

    def test_tampered_signature_is_rejected(self, bucket):
        bucket.put("files/a.txt", b"hello")
        bucket.put("files/b.txt", b"other")
        key, expires, signature, _ = _signed_parts(bucket.create_signed_url("files/a.txt", 300))

        with pytest.raises(InvalidSignatureError):
            bucket.verify_signature("files/b.txt", expires, signature)
        with pytest.raises(InvalidSignatureError):
            bucket.verify_signature(key, expires + 3600, signature)

    def test_signed_url_for_missing_object(self, bucket):
        with pytest.raises(FileNotFoundError):
            bucket.create_signed_url("files/none.txt", 300)

    def test_public_url(self, bucket):
        assert bucket.get_public_url("files/a b.txt") == "/storage/public/files/a%20b.txt"
