"""Tests for payload classification."""

import io

import pytest

from s3_file_manager.exceptions import InvalidPayloadError
from s3_file_manager.payload import (
    DEFAULT_CONTENT_TYPE,
    BytesContent,
    ContentKind,
    Payload,
    ReaderContent,
    StreamContent,
    as_content,
    classify,
    resolve_content_type,
)


class TestAsContent:
    def test_str_is_utf8_encoded(self):
        content = as_content("héllo")
        assert isinstance(content, BytesContent)
        assert content.data == "héllo".encode("utf-8")

    def test_bytes_like(self):
        assert as_content(bytearray(b"ab")).data == b"ab"
        assert as_content(memoryview(b"cd")).data == b"cd"

    def test_file_like_is_reader(self):
        assert isinstance(as_content(io.BytesIO(b"x")), ReaderContent)

    def test_iterable_is_stream(self):
        assert isinstance(as_content(iter([b"a", b"b"])), StreamContent)

    def test_existing_content_passes_through(self):
        content = BytesContent(b"x")
        assert as_content(content) is content

    def test_unsupported_type(self):
        with pytest.raises(InvalidPayloadError, match="int"):
            as_content(42)


class TestClassify:
    def test_bytes_size_from_data(self):
        assert classify(Payload.of("a.bin", b"12345")) == (ContentKind.BYTES, 5)

    def test_empty_bytes(self):
        assert classify(Payload.of("empty.txt", b"")) == (ContentKind.BYTES, 0)

    def test_resident_bytes_ignore_stale_hint(self):
        payload = Payload.of("a.bin", b"12345", size_hint_bytes=99)
        assert classify(payload) == (ContentKind.BYTES, 5)

    def test_reader_without_hint_is_unknown(self):
        payload = Payload.of("a.bin", io.BytesIO(b"abc"))
        assert classify(payload) == (ContentKind.READER, None)

    def test_stream_with_hint(self):
        payload = Payload.of("a.bin", iter([b"abc"]), size_hint_bytes=3)
        assert classify(payload) == (ContentKind.STREAM, 3)


class TestResolveContentType:
    def test_explicit_wins(self):
        assert resolve_content_type("a.txt", "application/x-custom") == (
            "application/x-custom"
        )

    def test_guessed_from_name(self):
        assert resolve_content_type("report.json") == "application/json"
        assert resolve_content_type("notes.txt") == "text/plain"

    def test_unknown_defaults_to_octet_stream(self):
        assert resolve_content_type("blob") == DEFAULT_CONTENT_TYPE
