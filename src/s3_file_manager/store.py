"""boto3-backed object store used by the transfer engine.

The store issues exactly one wire call per method and translates botocore
failures into the package's exception hierarchy. Retries, concurrency limits
and multipart orchestration all live above this layer.
"""

from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, List, Optional, Protocol, Sequence, Union

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from s3_file_manager.config import TransferConfig
from s3_file_manager.exceptions import (
    AccessDeniedError,
    NonRetryableError,
    NotFoundError,
    RetryableError,
)

# S3 DeleteObjects accepts at most 1000 keys per request
MAX_DELETE_BATCH = 1000

_NOT_FOUND_CODES = ("NoSuchKey", "NotFound", "404", "NoSuchUpload")
_ACCESS_DENIED_CODES = ("AccessDenied", "403", "Forbidden")
_NON_RETRYABLE_CODES = (
    "NoSuchBucket",
    "InvalidBucketName",
    "InvalidArgument",
    "InvalidRequest",
    "EntityTooSmall",
    "InvalidPart",
    "InvalidPartOrder",
)


@dataclass(frozen=True)
class ObjectMetadata:
    key: str
    content_type: Optional[str] = None
    content_length: Optional[int] = None
    etag: str = ""


@dataclass
class ObjectBody:
    """An open response body. The caller must close it."""

    key: str
    body: Any
    content_type: Optional[str] = None
    content_length: Optional[int] = None

    def read(self, amt: Optional[int] = None) -> bytes:
        return self.body.read(amt) if amt is not None else self.body.read()

    def close(self) -> None:
        close = getattr(self.body, "close", None)
        if close is not None:
            close()


@dataclass(frozen=True)
class ListPage:
    keys: List[str] = field(default_factory=list)
    prefixes: List[str] = field(default_factory=list)
    next_token: Optional[str] = None


@dataclass(frozen=True)
class DeleteFailure:
    key: str
    code: str
    message: str


class ObjectStore(Protocol):
    """Capability consumed by the transfer engine."""

    bucket: str

    def put_object(
        self, key: str, body: Union[bytes, BinaryIO], content_type: str
    ) -> str: ...

    def get_object(self, key: str) -> ObjectBody: ...

    def head_object(self, key: str) -> ObjectMetadata: ...

    def delete_object(self, key: str) -> None: ...

    def delete_objects(self, keys: Sequence[str]) -> List[DeleteFailure]: ...

    def copy_object(self, source_key: str, dest_key: str) -> None: ...

    def list_page(
        self,
        prefix: str = "",
        delimiter: Optional[str] = None,
        continuation_token: Optional[str] = None,
    ) -> ListPage: ...

    def create_multipart_upload(self, key: str, content_type: str) -> str: ...

    def upload_part(
        self, key: str, upload_id: str, part_number: int, body: bytes
    ) -> str: ...

    def complete_multipart_upload(
        self, key: str, upload_id: str, parts: List[Dict[str, Any]]
    ) -> None: ...

    def abort_multipart_upload(self, key: str, upload_id: str) -> None: ...

    def presigned_url(self, key: str, expires_in: int) -> str: ...


def classify_s3_error(e: Exception, operation: str, key: str = "") -> Exception:
    """Classify a botocore error into our exception hierarchy."""
    if isinstance(e, ClientError):
        error = e.response.get("Error", {})
        error_code = str(error.get("Code", ""))
        status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        message = f"S3 {operation} failed: {e}"
        details = {"error_code": error_code, "operation": operation, "key": key}

        if error_code in _NOT_FOUND_CODES:
            return NotFoundError(message, details=details)
        if error_code in _ACCESS_DENIED_CODES:
            return AccessDeniedError(message, details=details)
        if error_code in _NON_RETRYABLE_CODES:
            return NonRetryableError(message, details=details)
        if status == 404:
            return NotFoundError(message, details=details)
        if status == 403:
            return AccessDeniedError(message, details=details)
        return RetryableError(message, details=details)

    # Connection resets, timeouts and other transport errors
    return RetryableError(
        f"S3 {operation} failed: {e}",
        details={"error_type": type(e).__name__, "operation": operation, "key": key},
    )


def create_s3_client(config: TransferConfig):
    """Create a boto3 S3 client with botocore's own retries disabled."""
    client_config = Config(
        connect_timeout=config.stream_timeout_seconds,
        read_timeout=config.stream_timeout_seconds,
        retries={"total_max_attempts": 1},
        s3={"addressing_style": "path"} if config.force_path_style else None,
    )
    kwargs: Dict[str, Any] = {"service_name": "s3", "config": client_config}
    if config.bucket_region:
        kwargs["region_name"] = config.bucket_region
    if config.endpoint_url:
        kwargs["endpoint_url"] = config.endpoint_url
    return boto3.client(**kwargs)


class S3ObjectStore:
    """One bucket on an S3-compatible endpoint."""

    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    def _call(self, operation: str, key: str, **kwargs) -> Dict[str, Any]:
        try:
            return getattr(self.client, operation)(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise classify_s3_error(e, operation, key) from e

    def put_object(
        self, key: str, body: Union[bytes, BinaryIO], content_type: str
    ) -> str:
        response = self._call(
            "put_object",
            key,
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
        )
        return response.get("ETag", "")

    def get_object(self, key: str) -> ObjectBody:
        response = self._call("get_object", key, Bucket=self.bucket, Key=key)
        if response.get("Body") is None:
            raise NotFoundError(
                f"File {key} not found in bucket {self.bucket}",
                details={"key": key, "operation": "get_object"},
            )
        return ObjectBody(
            key=key,
            body=response["Body"],
            content_type=response.get("ContentType"),
            content_length=response.get("ContentLength"),
        )

    def head_object(self, key: str) -> ObjectMetadata:
        response = self._call("head_object", key, Bucket=self.bucket, Key=key)
        return ObjectMetadata(
            key=key,
            content_type=response.get("ContentType"),
            content_length=response.get("ContentLength"),
            etag=response.get("ETag", ""),
        )

    def delete_object(self, key: str) -> None:
        self._call("delete_object", key, Bucket=self.bucket, Key=key)

    def delete_objects(self, keys: Sequence[str]) -> List[DeleteFailure]:
        if len(keys) > MAX_DELETE_BATCH:
            raise NonRetryableError(
                f"Cannot delete {len(keys)} keys in one request "
                f"(max {MAX_DELETE_BATCH})"
            )
        response = self._call(
            "delete_objects",
            "",
            Bucket=self.bucket,
            Delete={"Objects": [{"Key": k} for k in keys], "Quiet": True},
        )
        return [
            DeleteFailure(
                key=err.get("Key", ""),
                code=err.get("Code", ""),
                message=err.get("Message", ""),
            )
            for err in response.get("Errors", [])
        ]

    def copy_object(self, source_key: str, dest_key: str) -> None:
        self._call(
            "copy_object",
            source_key,
            CopySource={"Bucket": self.bucket, "Key": source_key},
            Bucket=self.bucket,
            Key=dest_key,
        )

    def list_page(
        self,
        prefix: str = "",
        delimiter: Optional[str] = None,
        continuation_token: Optional[str] = None,
    ) -> ListPage:
        kwargs: Dict[str, Any] = {"Bucket": self.bucket}
        if prefix:
            kwargs["Prefix"] = prefix
        if delimiter:
            kwargs["Delimiter"] = delimiter
        if continuation_token:
            kwargs["ContinuationToken"] = continuation_token
        response = self._call("list_objects_v2", prefix, **kwargs)
        return ListPage(
            keys=[obj["Key"] for obj in response.get("Contents", []) if obj.get("Key")],
            prefixes=[
                p["Prefix"]
                for p in response.get("CommonPrefixes", [])
                if p.get("Prefix")
            ],
            next_token=response.get("NextContinuationToken")
            if response.get("IsTruncated", True)
            else None,
        )

    def create_multipart_upload(self, key: str, content_type: str) -> str:
        response = self._call(
            "create_multipart_upload",
            key,
            Bucket=self.bucket,
            Key=key,
            ContentType=content_type,
        )
        upload_id = response.get("UploadId")
        if not upload_id:
            raise RetryableError(
                f"Failed to initiate multipart upload for {key}",
                details={"key": key},
            )
        return upload_id

    def upload_part(
        self, key: str, upload_id: str, part_number: int, body: bytes
    ) -> str:
        response = self._call(
            "upload_part",
            key,
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=body,
        )
        return response["ETag"]

    def complete_multipart_upload(
        self, key: str, upload_id: str, parts: List[Dict[str, Any]]
    ) -> None:
        self._call(
            "complete_multipart_upload",
            key,
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": parts},
        )

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        self._call(
            "abort_multipart_upload",
            key,
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
        )

    def presigned_url(self, key: str, expires_in: int) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            raise classify_s3_error(e, "generate_presigned_url", key) from e
