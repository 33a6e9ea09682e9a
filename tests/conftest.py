"""Shared fixtures for transfer orchestration tests."""

import io
import itertools
import os
import sys
import threading
import time
from collections import defaultdict, deque
from unittest.mock import MagicMock

import boto3
import pytest
from moto import mock_aws

# Add package source to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from s3_file_manager.config import MIB, TransferConfig  # noqa: E402
from s3_file_manager.context import TransferContext  # noqa: E402
from s3_file_manager.exceptions import NotFoundError  # noqa: E402
from s3_file_manager.filesystem import LocalFilesystem  # noqa: E402
from s3_file_manager.retry import RetryPolicy  # noqa: E402
from s3_file_manager.store import (  # noqa: E402
    DeleteFailure,
    ListPage,
    ObjectBody,
    ObjectMetadata,
)
from s3_file_manager.tracing import no_span  # noqa: E402

BUCKET = "test-bucket"


@pytest.fixture(autouse=True)
def aws_env(monkeypatch):
    """Set AWS environment variables for testing."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")

    monkeypatch.setenv("BUCKET_NAME", BUCKET)
    monkeypatch.setenv("BUCKET_REGION", "us-east-1")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")


class FakeObjectStore:
    """In-memory ObjectStore that records every call.

    Failures are injected per operation (optionally per key) with
    ``fail(...)`` for one-shot errors or ``fail_always(...)``.
    """

    def __init__(self, bucket: str = BUCKET, page_size: int = 1000):
        self.bucket = bucket
        self.page_size = page_size
        self.objects = {}
        self.content_types = {}
        self.uploads = {}
        self.completed_parts = {}
        self.part_sizes = []
        self.aborted = []
        self.calls = []
        self.delete_errors = {}
        self.transfer_delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self._failures = defaultdict(deque)
        self._always = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    # Failure injection

    def fail(self, operation, *errors, key=None):
        self._failures[(operation, key)].extend(errors)

    def fail_always(self, operation, error, key=None):
        self._always[(operation, key)] = error

    def count(self, operation):
        return sum(1 for op, _ in self.calls if op == operation)

    def keys_for(self, operation):
        return [key for op, key in self.calls if op == operation]

    def _record(self, operation, key=None):
        with self._lock:
            self.calls.append((operation, key))
            for lookup in ((operation, key), (operation, None)):
                if self._failures.get(lookup):
                    raise self._failures[lookup].popleft()
            for lookup in ((operation, key), (operation, None)):
                if lookup in self._always:
                    raise self._always[lookup]

    def _transfer(self):
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.transfer_delay:
                time.sleep(self.transfer_delay)
        finally:
            with self._lock:
                self.in_flight -= 1

    def _missing(self, key, operation):
        return NotFoundError(
            f"S3 {operation} failed: NoSuchKey",
            details={"error_code": "NoSuchKey", "key": key},
        )

    # ObjectStore capability

    def put_object(self, key, body, content_type):
        self._record("put_object", key)
        self._transfer()
        data = body if isinstance(body, bytes) else body.read()
        with self._lock:
            self.objects[key] = data
            self.content_types[key] = content_type
        return f'"etag-{key}"'

    def get_object(self, key):
        self._record("get_object", key)
        if key not in self.objects:
            raise self._missing(key, "get_object")
        data = self.objects[key]
        return ObjectBody(
            key=key,
            body=io.BytesIO(data),
            content_type=self.content_types.get(key),
            content_length=len(data),
        )

    def head_object(self, key):
        self._record("head_object", key)
        if key not in self.objects:
            raise self._missing(key, "head_object")
        return ObjectMetadata(
            key=key,
            content_type=self.content_types.get(key),
            content_length=len(self.objects[key]),
            etag=f'"etag-{key}"',
        )

    def delete_object(self, key):
        self._record("delete_object", key)
        with self._lock:
            self.objects.pop(key, None)
            self.content_types.pop(key, None)

    def delete_objects(self, keys):
        self._record("delete_objects")
        failures = []
        with self._lock:
            for key in keys:
                if key in self.delete_errors:
                    failures.append(
                        DeleteFailure(key, self.delete_errors[key], "Access Denied")
                    )
                    continue
                self.objects.pop(key, None)
                self.content_types.pop(key, None)
        return failures

    def copy_object(self, source_key, dest_key):
        self._record("copy_object", source_key)
        if source_key not in self.objects:
            raise self._missing(source_key, "copy_object")
        with self._lock:
            self.objects[dest_key] = self.objects[source_key]
            self.content_types[dest_key] = self.content_types.get(source_key)

    def list_page(self, prefix="", delimiter=None, continuation_token=None):
        self._record("list_page", prefix)
        keys, prefixes = [], []
        entries = []
        for key in sorted(self.objects):
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            if delimiter and delimiter in rest:
                common = prefix + rest.split(delimiter)[0] + delimiter
                if ("prefix", common) not in entries:
                    entries.append(("prefix", common))
            else:
                entries.append(("key", key))
        offset = int(continuation_token or 0)
        page = entries[offset:offset + self.page_size]
        for kind, value in page:
            (prefixes if kind == "prefix" else keys).append(value)
        more = offset + self.page_size < len(entries)
        return ListPage(
            keys=keys,
            prefixes=prefixes,
            next_token=str(offset + self.page_size) if more else None,
        )

    def create_multipart_upload(self, key, content_type):
        self._record("create_multipart_upload", key)
        upload_id = f"upload-{next(self._ids)}"
        with self._lock:
            self.uploads[upload_id] = {
                "key": key,
                "content_type": content_type,
                "parts": {},
            }
        return upload_id

    def upload_part(self, key, upload_id, part_number, body):
        self._record("upload_part", key)
        self._transfer()
        with self._lock:
            if upload_id not in self.uploads:
                raise NotFoundError(f"NoSuchUpload {upload_id}")
            self.uploads[upload_id]["parts"][part_number] = bytes(body)
            self.part_sizes.append((part_number, len(body)))
        return f'"etag-{part_number}"'

    def complete_multipart_upload(self, key, upload_id, parts):
        self._record("complete_multipart_upload", key)
        with self._lock:
            upload = self.uploads.pop(upload_id)
            self.completed_parts[key] = [dict(part) for part in parts]
            self.objects[key] = b"".join(
                upload["parts"][part["PartNumber"]] for part in parts
            )
            self.content_types[key] = upload["content_type"]

    def abort_multipart_upload(self, key, upload_id):
        self._record("abort_multipart_upload", key)
        with self._lock:
            self.uploads.pop(upload_id, None)
            self.aborted.append(upload_id)

    def presigned_url(self, key, expires_in):
        self._record("presigned_url", key)
        return f"https://{self.bucket}.s3.amazonaws.com/{key}?X-Amz-Expires={expires_in}"


@pytest.fixture
def fake_store():
    return FakeObjectStore()


@pytest.fixture
def config():
    """Small thresholds and no backoff so tests stay fast."""
    return TransferConfig(
        bucket_name=BUCKET,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        multipart_threshold_bytes=5 * MIB,
        buffer_ceiling_bytes=8 * MIB,
    )


@pytest.fixture
def verbose_config():
    return TransferConfig(
        bucket_name=BUCKET,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        multipart_threshold_bytes=5 * MIB,
        buffer_ceiling_bytes=8 * MIB,
        verbose_logging=True,
    )


@pytest.fixture
def mock_logger():
    return MagicMock()


@pytest.fixture
def ctx(config, fake_store, mock_logger):
    return TransferContext(
        config=config,
        store=fake_store,
        logger=mock_logger,
        with_span=no_span,
        retry=RetryPolicy(
            max_attempts=config.max_attempts,
            logger=mock_logger,
            base_delay=0.0,
            max_delay=0.0,
        ),
        filesystem=LocalFilesystem(),
    )


@pytest.fixture
def s3_client():
    """Create a moto-mocked S3 client with the test bucket."""
    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket=BUCKET)
        yield client


@pytest.fixture
def setup_bucket(s3_client):
    """Populate the test bucket with sample objects."""
    for i in range(5):
        s3_client.put_object(
            Bucket=BUCKET,
            Key=f"data/file{i}.txt",
            Body=f"content of file {i}" * 100,
            ContentType="text/plain",
        )
    s3_client.put_object(
        Bucket=BUCKET,
        Key="data/nested/deep.json",
        Body=b'{"ok": true}',
        ContentType="application/json",
    )
    return s3_client
