"""Tests for the storage driver facade."""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

import pytest

from common.constants import INLINE_THRESHOLD_BYTES
from driver.context import RequestContext
from driver.exceptions import OperationCancelledError, PathNotFoundError, UnsupportedMethodError, WriterMisuseError
from objectstore.exceptions import ObjectNotFoundError


class TestPutAndGet:
    """Whole-content writes and reads across both tiers."""

    @pytest.mark.parametrize("size", [1, 17, INLINE_THRESHOLD_BYTES])
    def test_small_content_is_inlined(self, driver, object_store, size):
        content = b"x" * size
        driver.put_content("/docker/registry/v2/small", content)

        assert driver.get_content("/docker/registry/v2/small") == content
        assert object_store.write_calls == []
        assert driver.stat("/docker/registry/v2/small").size == len(content)

        record = driver.file_repo.get("/docker/registry/v2/small")
        assert record.content == content
        assert record.location is None

    @pytest.mark.parametrize("size", [INLINE_THRESHOLD_BYTES + 1, 4096])
    def test_large_content_goes_to_object_store(self, driver, object_store, size):
        content = bytes(i % 251 for i in range(size))
        driver.put_content("/blobs/large", content)

        assert driver.get_content("/blobs/large") == content
        assert len(object_store.write_calls) >= 1
        assert driver.stat("/blobs/large").size == len(content)

        record = driver.file_repo.get("/blobs/large")
        assert record.content is None
        assert record.location
        assert object_store.write_calls == [f"registry/{record.location}/content"]

    def test_empty_content(self, driver, object_store):
        driver.put_content("/empty", b"")

        assert driver.get_content("/empty") == b""
        assert driver.stat("/empty").size == 0
        assert driver.reader("/empty").read() == b""
        assert object_store.write_calls == []

    def test_get_missing_path(self, driver):
        with pytest.raises(PathNotFoundError) as exc_info:
            driver.get_content("/nope")
        assert exc_info.value.path == "/nope"

    def test_get_directory_is_not_found(self, driver):
        driver.put_content("/dir/file", b"data")
        with pytest.raises(PathNotFoundError):
            driver.get_content("/dir")

    def test_put_creates_ancestors(self, driver):
        driver.put_content("/a/b/c/file", b"data")

        for ancestor in ("/a", "/a/b", "/a/b/c"):
            assert driver.stat(ancestor).is_dir
        assert driver.list("/") == ["/a"]

    def test_overwrite_external_with_inline_removes_old_blob(self, driver, object_store, large_content):
        driver.put_content("/f", large_content)
        old_location = driver.file_repo.get("/f").location

        driver.put_content("/f", b"small")

        assert driver.get_content("/f") == b"small"
        assert not any(old_location in str(p) for p in object_store.stored_files())

    def test_overwrite_external_uses_fresh_location(self, driver, large_content):
        driver.put_content("/f", large_content)
        first = driver.file_repo.get("/f").location

        driver.put_content("/f", large_content[::-1])

        assert driver.file_repo.get("/f").location != first
        assert driver.get_content("/f") == large_content[::-1]

    def test_object_not_found_reports_logical_path(self, driver, object_store, large_content):
        driver.put_content("/repo/blob", large_content)
        location = driver.file_repo.get("/repo/blob").location
        object_store.delete_all(f"registry/{location}/")

        with pytest.raises(PathNotFoundError) as exc_info:
            driver.get_content("/repo/blob")

        assert exc_info.value.path == "/repo/blob"
        assert location not in str(exc_info.value)

        with pytest.raises(PathNotFoundError) as exc_info:
            driver.reader("/repo/blob", 3)
        assert location not in str(exc_info.value)


class TestReader:
    """Ranged reads."""

    def test_inline_offset(self, driver):
        driver.put_content("/f", b"0123456789")
        assert driver.reader("/f", 4).read() == b"456789"

    def test_external_offset(self, driver, large_content):
        driver.put_content("/f", large_content)
        with driver.reader("/f", 300) as stream:
            assert stream.read() == large_content[300:]

    @pytest.mark.parametrize("content", [b"short inline", bytes(300)])
    def test_offset_past_end_is_empty(self, driver, object_store, content):
        driver.put_content("/f", content)
        writes_before = list(object_store.write_calls)

        assert driver.reader("/f", len(content) + 1).read() == b""
        assert object_store.write_calls == writes_before

    def test_offset_at_end_is_empty(self, driver, large_content):
        driver.put_content("/f", large_content)
        assert driver.reader("/f", len(large_content)).read() == b""

    def test_reader_missing_and_directory(self, driver):
        driver.put_content("/d/f", b"x")
        with pytest.raises(PathNotFoundError):
            driver.reader("/missing", 0)
        with pytest.raises(PathNotFoundError):
            driver.reader("/d", 0)

    def test_reader_over_segmented_file(self, driver):
        with driver.writer("/up") as writer:
            writer.write(b"abcdefgh" * 3)
            writer.write(b"tail")

        assert driver.reader("/up", 10).read() == (b"abcdefgh" * 3 + b"tail")[10:]


class TestStatAndList:
    def test_stat_root_is_synthetic(self, driver):
        record = driver.stat("/")
        assert record.is_dir
        assert record.path == "/"
        assert record.modified_at == datetime.fromtimestamp(0, tz=timezone.utc)

    def test_stat_missing(self, driver):
        with pytest.raises(PathNotFoundError):
            driver.stat("/missing")

    def test_stat_file(self, driver):
        driver.put_content("/x/y", b"hello")
        record = driver.stat("/x/y")
        assert record.path == "/x/y"
        assert record.size == 5
        assert not record.is_dir
        assert record.modified_at is not None

    def test_list_is_single_level(self, driver):
        driver.put_content("/repo/a", b"1")
        driver.put_content("/repo/b/c", b"2")
        driver.put_content("/repo/b/d/e", b"3")

        assert driver.list("/repo") == ["/repo/a", "/repo/b"]
        assert driver.list("/repo/b") == ["/repo/b/c", "/repo/b/d"]

    def test_list_missing_equals_empty(self, driver):
        assert driver.list("/nothing/here") == []

    def test_list_normalizes_path(self, driver):
        driver.put_content("/repo/a", b"1")
        assert driver.list("/repo/") == ["/repo/a"]


class TestMove:
    def test_move_creates_destination_ancestors(self, driver, large_content):
        driver.put_content("/uploads/tmp", large_content)

        driver.move("/uploads/tmp", "/blobs/sha256/ab/abcdef/data")

        for ancestor in ("/blobs", "/blobs/sha256", "/blobs/sha256/ab", "/blobs/sha256/ab/abcdef"):
            assert driver.stat(ancestor).is_dir
        assert driver.get_content("/blobs/sha256/ab/abcdef/data") == large_content
        with pytest.raises(PathNotFoundError):
            driver.get_content("/uploads/tmp")

    def test_move_missing_source(self, driver):
        with pytest.raises(PathNotFoundError) as exc_info:
            driver.move("/missing", "/dest")
        assert exc_info.value.path == "/missing"

    def test_move_overwrites_destination(self, driver, object_store, large_content):
        driver.put_content("/dest", large_content)
        dest_location = driver.file_repo.get("/dest").location
        driver.put_content("/src", b"new")

        driver.move("/src", "/dest")

        assert driver.get_content("/dest") == b"new"
        assert not any(dest_location in str(p) for p in object_store.stored_files())

    def test_move_leaves_source_ancestors(self, driver):
        driver.put_content("/old/parent/file", b"x")

        driver.move("/old/parent/file", "/new/file")

        assert driver.stat("/old/parent").is_dir
        assert driver.list("/old/parent") == []

    def test_move_onto_itself_keeps_content(self, driver):
        driver.put_content("/same", b"keep")
        driver.move("/same", "/same")
        assert driver.get_content("/same") == b"keep"

    def test_move_directory_orphans_descendants(self, driver):
        driver.put_content("/src/dir/child", b"x")

        driver.move("/src/dir", "/dst/dir")

        assert driver.stat("/dst/dir").is_dir
        assert driver.list("/dst/dir") == []
        # the child row still carries the old dirname
        assert driver.file_repo.get("/src/dir/child") is not None


class TestDelete:
    def test_delete_directory_recursively(self, driver, object_store, large_content):
        driver.put_content("/repo/layers/big", large_content)
        driver.put_content("/repo/layers/small", b"inline")
        driver.put_content("/repo/manifests/deep/tag", large_content)
        locations = [
            driver.file_repo.get("/repo/layers/big").location,
            driver.file_repo.get("/repo/manifests/deep/tag").location,
        ]

        driver.delete("/repo")

        for path in ("/repo", "/repo/layers", "/repo/layers/big", "/repo/layers/small",
                     "/repo/manifests", "/repo/manifests/deep", "/repo/manifests/deep/tag"):
            with pytest.raises(PathNotFoundError):
                driver.stat(path)
        with pytest.raises(PathNotFoundError):
            driver.get_content("/repo/layers/big")
        assert driver.list("/repo/layers") == []
        assert driver.list("/") == []
        for location in locations:
            assert not any(location in str(p) for p in object_store.stored_files())

    def test_delete_missing_is_noop(self, driver):
        driver.delete("/never/existed")
        driver.put_content("/gone", b"x")
        driver.delete("/gone")
        driver.delete("/gone")

    def test_delete_keeps_siblings(self, driver):
        driver.put_content("/repo/a/file", b"1")
        driver.put_content("/repo/b/file", b"2")

        driver.delete("/repo/a")

        assert driver.list("/repo") == ["/repo/b"]
        assert driver.get_content("/repo/b/file") == b"2"

    def test_delete_leaves_segment_rows(self, driver):
        with driver.writer("/up") as writer:
            writer.write(b"0123456789abcdef")
        location = driver.file_repo.get("/up").location

        driver.delete("/up")

        assert len(driver.segment_repo.get_segments_by_location(location)) == 2


class TestPutOverDirectory:
    def test_children_survive(self, driver):
        driver.put_content("/dir/child", b"x")

        driver.put_content("/dir", b"now a file")

        assert driver.get_content("/dir") == b"now a file"
        assert driver.file_repo.get("/dir/child") is not None
        assert driver.list("/dir") == ["/dir/child"]


class TestWriterThroughDriver:
    def test_append_continues_segment_numbering(self, driver):
        writer = driver.writer("/blob")
        writer.write(b"A" * 8)
        writer.write(b"B" * 8)
        writer.commit()
        writer.close()
        location = driver.file_repo.get("/blob").location
        assert [s.number for s in driver.segment_repo.get_segments_by_location(location)] == [1, 2]

        writer = driver.writer("/blob", append=True)
        writer.write(b"C" * 8)
        writer.write(b"D" * 8)
        writer.commit()
        writer.close()

        segments = driver.segment_repo.get_segments_by_location(location)
        assert [s.number for s in segments] == [1, 2, 3, 4]
        assert driver.get_content("/blob") == b"A" * 8 + b"B" * 8 + b"C" * 8 + b"D" * 8
        assert driver.stat("/blob").size == 32
        assert driver.file_repo.get("/blob").location == location

    def test_cancel_after_write(self, driver):
        writer = driver.writer("/upload")
        writer.write(b"some bytes")

        writer.cancel()

        with pytest.raises(PathNotFoundError):
            driver.get_content("/upload")
        with pytest.raises(WriterMisuseError) as exc_info:
            writer.cancel()
        assert exc_info.value.state == "cancelled"
        with pytest.raises(WriterMisuseError) as exc_info:
            writer.write(b"more")
        assert exc_info.value.state == "cancelled"

    def test_cancel_leaks_uploaded_segments(self, driver, object_store):
        writer = driver.writer("/upload")
        writer.write(b"x" * 20)
        location = writer.writer.location

        writer.cancel()

        assert len(driver.segment_repo.get_segments_by_location(location)) == 3
        assert any(location in str(p) for p in object_store.stored_files())

    def test_writer_without_append_replaces_subtree(self, driver):
        driver.put_content("/target/child", b"x")

        with driver.writer("/target") as writer:
            writer.write(b"fresh")

        assert driver.get_content("/target") == b"fresh"
        assert driver.file_repo.get("/target/child") is None

    def test_append_to_missing_creates_file(self, driver):
        with driver.writer("/new", append=True) as writer:
            writer.write(b"first")
        assert driver.get_content("/new") == b"first"

    def test_empty_commit(self, driver):
        with driver.writer("/zero"):
            pass
        assert driver.stat("/zero").size == 0
        assert driver.get_content("/zero") == b""

    def test_commit_creates_ancestors(self, driver):
        with driver.writer("/x/y/z") as writer:
            writer.write(b"payload")
        assert driver.stat("/x").is_dir
        assert driver.stat("/x/y").is_dir


class TestURLFor:
    def test_url_for_external(self, driver, large_content):
        driver.put_content("/blob", large_content)
        location = driver.file_repo.get("/blob").location
        expiry = datetime(2030, 1, 1, tzinfo=timezone.utc)

        url = driver.url_for("/blob", {"method": "GET", "expiry": expiry})

        parts = urlsplit(url)
        assert parts.netloc == "objects.example.com"
        assert parts.path == f"/v1/AUTH_test/registry/registry/{location}/content"
        query = parse_qs(parts.query)
        assert query["temp_url_expires"] == [str(int(expiry.timestamp()))]
        assert len(query["temp_url_sig"][0]) == 40

    def test_url_for_default_expiry(self, driver, large_content):
        driver.put_content("/blob", large_content)
        url = driver.url_for("/blob")
        expires = int(parse_qs(urlsplit(url).query)["temp_url_expires"][0])
        now = datetime.now(timezone.utc)
        assert now < datetime.fromtimestamp(expires, tz=timezone.utc) <= now + timedelta(minutes=21)

    def test_url_for_inline(self, driver):
        driver.put_content("/small", b"x")
        with pytest.raises(UnsupportedMethodError):
            driver.url_for("/small")

    def test_url_for_missing(self, driver):
        with pytest.raises(UnsupportedMethodError):
            driver.url_for("/missing")


class TestRequestContext:
    def test_cancelled_context_stops_operation(self, driver):
        ctx = RequestContext()
        ctx.cancel()
        with pytest.raises(OperationCancelledError):
            driver.put_content("/f", b"x", ctx)
        assert driver.file_repo.get("/f") is None

    def test_expired_deadline(self, driver):
        driver.put_content("/f", b"x")
        with pytest.raises(OperationCancelledError):
            driver.get_content("/f", RequestContext(timeout=0))

    def test_cancel_mid_upload_keeps_partial_state(self, driver):
        ctx = RequestContext()
        writer = driver.writer("/up", ctx=ctx)
        writer.write(b"x" * 8)
        location = writer.writer.location

        ctx.cancel()

        with pytest.raises(OperationCancelledError):
            writer.commit()
        assert driver.file_repo.get("/up") is None
        assert len(driver.segment_repo.get_segments_by_location(location)) == 1


class TestMissingObjects:
    """Missing objects are reported under the logical path, never the location."""

    def test_commit_when_manifest_target_is_missing(self, driver, object_store, monkeypatch):
        def missing(object_path, segments):
            raise ObjectNotFoundError(object_path)

        monkeypatch.setattr(object_store, "write_manifest", missing)
        writer = driver.writer("/uploads/layer")
        writer.write(b"x" * 8)
        location = writer.writer.location

        with pytest.raises(PathNotFoundError) as exc_info:
            writer.commit()

        assert exc_info.value.path == "/uploads/layer"
        assert location not in str(exc_info.value)

    def test_blob_delete_when_objects_are_missing(self, driver, object_store, large_content, monkeypatch):
        driver.put_content("/repo/blob", large_content)
        location = driver.file_repo.get("/repo/blob").location

        def missing(prefix):
            raise ObjectNotFoundError(prefix)

        monkeypatch.setattr(object_store, "delete_all", missing)

        with pytest.raises(PathNotFoundError) as exc_info:
            driver.delete("/repo")
        assert exc_info.value.path == "/repo/blob"
        assert location not in str(exc_info.value)

        with pytest.raises(PathNotFoundError) as exc_info:
            driver.put_content("/repo/blob", b"replacement")
        assert exc_info.value.path == "/repo/blob"

        with pytest.raises(PathNotFoundError) as exc_info:
            driver.writer("/repo/blob")
        assert location not in str(exc_info.value)

    def test_segment_missing_while_streaming(self, driver, object_store):
        with driver.writer("/layer") as writer:
            writer.write(b"a" * 8 + b"b" * 8 + b"c" * 4)
        location = driver.file_repo.get("/layer").location
        object_store.get_object_path(f"registry/{location}/0000000000000002").unlink()

        stream = driver.reader("/layer", 0)
        with pytest.raises(PathNotFoundError) as exc_info:
            stream.read()
        stream.close()
        assert exc_info.value.path == "/layer"
        assert location not in str(exc_info.value)

        with pytest.raises(PathNotFoundError) as exc_info:
            driver.get_content("/layer")
        assert location not in str(exc_info.value)

    def test_reader_streams_external_content(self, driver, large_content):
        driver.put_content("/f", large_content)
        with driver.reader("/f", 0) as stream:
            assert stream.read(10) == large_content[:10]
            assert stream.read() == large_content[10:]
