"""Tests for tier selection and path helpers."""

import re

import pytest

from common.constants import INLINE_THRESHOLD_BYTES
from driver.paths import (
    clean_path,
    content_object_path,
    generate_location,
    join_path,
    location_prefix,
    segment_object_path,
    split_path
)
from driver.repositories.file_repository import FileRecord
from driver.tiering import Tier, build_file_record, choose_tier, tier_of


class TestChooseTier:
    @pytest.mark.parametrize("length,expected", [
        (0, Tier.EMPTY),
        (1, Tier.INLINE),
        (INLINE_THRESHOLD_BYTES, Tier.INLINE),
        (INLINE_THRESHOLD_BYTES + 1, Tier.EXTERNAL),
        (10 * 1024 * 1024, Tier.EXTERNAL),
    ])
    def test_boundaries(self, length, expected):
        assert choose_tier(length) is expected


class TestTierOf:
    def test_empty_record_with_location(self):
        record = FileRecord(dirname="/", basename="f", size=0, location="abcd")
        assert tier_of(record) is Tier.EMPTY

    def test_external_record(self):
        record = FileRecord(dirname="/", basename="f", size=10, location="abcd")
        assert tier_of(record) is Tier.EXTERNAL

    def test_inline_record(self):
        record = FileRecord(dirname="/", basename="f", size=2, content=b"hi")
        assert tier_of(record) is Tier.INLINE


class TestBuildFileRecord:
    def test_inline(self):
        record = build_file_record("/d", "f", b"abc")
        assert record.content == b"abc"
        assert record.location is None
        assert record.size == 3

    def test_external(self):
        record = build_file_record("/d", "f", b"x" * (INLINE_THRESHOLD_BYTES + 1))
        assert record.content is None
        assert re.fullmatch(r"[0-9a-f]{16}", record.location)

    def test_empty(self):
        record = build_file_record("/d", "f", b"")
        assert record.content is None
        assert record.location is None
        assert record.size == 0


class TestPaths:
    @pytest.mark.parametrize("raw,expected", [
        ("/a/b", "/a/b"),
        ("a/b/", "/a/b"),
        ("//a//b//", "/a/b"),
        ("/", "/"),
        ("", "/"),
    ])
    def test_clean_path(self, raw, expected):
        assert clean_path(raw) == expected

    def test_split_path(self):
        assert split_path("/a/b/c") == ("/a/b", "c")
        assert split_path("/top") == ("/", "top")
        assert split_path("/") == ("/", "/")

    def test_join_path(self):
        assert join_path("/", "a") == "/a"
        assert join_path("/a", "b") == "/a/b"

    def test_generate_location_is_random_hex(self):
        first, second = generate_location(), generate_location()
        assert re.fullmatch(r"[0-9a-f]{16}", first)
        assert first != second

    def test_object_names(self):
        assert content_object_path("registry", "abcd") == "registry/abcd/content"
        assert content_object_path("", "abcd") == "abcd/content"
        assert segment_object_path("registry", "abcd", 7) == "registry/abcd/0000000000000007"
        assert location_prefix("registry", "abcd") == "registry/abcd/"
        assert location_prefix("", "abcd") == "abcd/"
