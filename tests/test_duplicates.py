"""Tests for duplicate detection."""

import hashlib
import io

import pytest

from snaptag.duplicates import DuplicateGuard, compute_content_hash
from snaptag.exceptions import Conflict
from snaptag.metadata import Image


def test_compute_content_hash_bytes_and_stream():
    data = b"\x89PNG" + b"x" * 4096
    expected = hashlib.sha256(data).hexdigest()

    assert compute_content_hash(data) == expected
    assert compute_content_hash(io.BytesIO(data)) == expected


class TestDuplicateGuard:

    def test_no_identifiers(self, test_db):
        assert DuplicateGuard(test_db).find_duplicate() is None

    def test_url_match(self, test_db, make_image):
        existing = make_image(filename="house.jpg", source_url="https://example.com/house")

        match = DuplicateGuard(test_db).find_duplicate(source_url="  https://example.com/house ")

        assert match.kind == "url"
        assert match.image_id == existing.id
        assert match.filename == "house.jpg"

    def test_hash_match_ignores_case(self, test_db, make_image):
        digest = "ab" * 32
        existing = make_image(file_hash=digest)

        match = DuplicateGuard(test_db).find_duplicate(content_hash=digest.upper())

        assert match.kind == "hash"
        assert match.image_id == existing.id

    def test_url_checked_before_hash(self, test_db, make_image):
        by_url = make_image(source_url="https://example.com/a")
        make_image(file_hash="cd" * 32)

        match = DuplicateGuard(test_db).find_duplicate(source_url="https://example.com/a", content_hash="cd" * 32)

        assert match.kind == "url"
        assert match.image_id == by_url.id

    def test_different_url_is_not_duplicate(self, test_db, make_image):
        make_image(source_url="https://example.com/a")
        assert DuplicateGuard(test_db).find_duplicate(source_url="https://example.com/b") is None

    def test_ensure_unique_carries_match(self, test_db, make_image):
        make_image(filename="house.jpg", source_url="https://example.com/house")

        with pytest.raises(Conflict) as excinfo:
            DuplicateGuard(test_db).ensure_unique(source_url="https://example.com/house")

        payload = excinfo.value.to_dict()
        assert payload["error"] == "conflict"
        assert payload["duplicate"]["kind"] == "url"
        assert payload["duplicate"]["filename"] == "house.jpg"

    def test_padded_url_matches_itself(self, test_db, make_image):
        first = make_image(source_url=" http://example.com/a ", file_hash="a" * 64)
        assert first.source_url == "http://example.com/a"

        with pytest.raises(Conflict) as excinfo:
            make_image(source_url=" http://example.com/a ", file_hash="b" * 64)

        assert excinfo.value.duplicate.image_id == first.id
        assert test_db.query(Image).count() == 1
