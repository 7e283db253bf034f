"""S3-compatible object store access.

Every public operation returns a result value instead of raising; the caller
decides whether a failure is worth retrying, surfacing or ignoring.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import threading
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from syncwatch.errors import DeleteError, DownloadError, StoreConfigError, UploadError
from syncwatch.retry import NO_RETRY, RetryPolicy, call_with_retry, iter_exception_chain


DEFAULT_CONTENT_TYPE = "application/octet-stream"
DEFAULT_REGION = "local"
# Key-level codes only. NoSuchBucket also arrives with HTTP 404.
NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}

# Built-in table only; system mime.types files are not consulted.
_MIME_TABLE = mimetypes.MimeTypes()

logger = logging.getLogger(__name__)

StoreErrors = (BotoCoreError, ClientError, StoreConfigError)


def content_type_for(key: str) -> str:
    suffix = PurePosixPath(key).suffix.lower()
    if not suffix:
        return DEFAULT_CONTENT_TYPE
    strict, loose = _MIME_TABLE.types_map
    return strict.get(suffix) or loose.get(suffix) or DEFAULT_CONTENT_TYPE


def is_not_found_error(exc: BaseException) -> bool:
    for current in iter_exception_chain(exc):
        if type(current).__name__ == "NoSuchKey":
            return True
        response = getattr(current, "response", None)
        if not isinstance(response, dict):
            continue
        if response.get("Error", {}).get("Code") in NOT_FOUND_CODES:
            return True
    return False


@dataclass(slots=True)
class PutResult:
    key: str
    ok: bool
    etag: str | None = None
    error: UploadError | None = None


@dataclass(slots=True)
class GetResult:
    key: str
    ok: bool
    data: bytes | None = None
    error: DownloadError | None = None

    @property
    def found(self) -> bool:
        return self.ok and self.data is not None


@dataclass(slots=True)
class DeleteResult:
    key: str
    ok: bool
    missing: bool = False
    error: DeleteError | None = None


class ObjectStoreClient:
    """Put/get/delete against one S3-compatible endpoint with path-style addressing.

    The boto3 client is created on first use and reused; boto3 clients are
    safe to share between the worker threads the async wrappers run on.
    """

    def __init__(
        self,
        *,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str = DEFAULT_REGION,
        retry_policy: RetryPolicy | None = None,
        client: Any = None,
    ) -> None:
        self.endpoint_url = endpoint_url or None
        self.region = region or DEFAULT_REGION
        self.retry_policy = retry_policy or NO_RETRY
        self._access_key = access_key or None
        self._secret_key = secret_key or None
        self._client = client
        self._client_lock = threading.Lock()

    def _client_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "region_name": self.region,
            "config": BotoConfig(s3={"addressing_style": "path"}),
        }
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        if self._access_key and self._secret_key:
            kwargs["aws_access_key_id"] = self._access_key
            kwargs["aws_secret_access_key"] = self._secret_key
        return kwargs

    @property
    def client(self):
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    try:
                        self._client = boto3.client("s3", **self._client_kwargs())
                    except ValueError as exc:
                        # botocore rejects malformed endpoints, e.g. "localhost:9000".
                        raise StoreConfigError(str(exc)) from exc
        return self._client

    # -- raising primitives -------------------------------------------------

    def _put_object(self, bucket: str, key: str, data: bytes, content_type: str) -> str | None:
        response = self.client.put_object(
            Bucket=bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
        return response.get("ETag")

    def _get_object(self, bucket: str, key: str) -> bytes:
        response = self.client.get_object(Bucket=bucket, Key=key)
        return response["Body"].read()

    def _delete_object(self, bucket: str, key: str) -> None:
        self.client.delete_object(Bucket=bucket, Key=key)

    # -- result translation -------------------------------------------------

    @staticmethod
    def _put_failed(key: str, exc: BaseException) -> PutResult:
        return PutResult(key=key, ok=False, error=UploadError(key, exc))

    @staticmethod
    def _get_failed(key: str, exc: BaseException) -> GetResult:
        if is_not_found_error(exc):
            return GetResult(key=key, ok=True, data=None)
        return GetResult(key=key, ok=False, error=DownloadError(key, exc))

    @staticmethod
    def _delete_failed(key: str, exc: BaseException) -> DeleteResult:
        if is_not_found_error(exc):
            return DeleteResult(key=key, ok=True, missing=True)
        return DeleteResult(key=key, ok=False, error=DeleteError(key, exc))

    # -- blocking API -------------------------------------------------------

    def put(self, bucket: str, key: str, data: bytes, content_type: str | None = None) -> PutResult:
        try:
            etag = self._put_object(bucket, key, data, content_type or content_type_for(key))
        except StoreErrors as exc:
            return self._put_failed(key, exc)
        return PutResult(key=key, ok=True, etag=etag)

    def get(self, bucket: str, key: str) -> GetResult:
        try:
            data = self._get_object(bucket, key)
        except StoreErrors as exc:
            return self._get_failed(key, exc)
        return GetResult(key=key, ok=True, data=data)

    def delete(self, bucket: str, key: str) -> DeleteResult:
        try:
            self._delete_object(bucket, key)
        except StoreErrors as exc:
            return self._delete_failed(key, exc)
        return DeleteResult(key=key, ok=True)

    # -- async API (worker thread + retry policy) --------------------------

    async def put_async(
        self, bucket: str, key: str, data: bytes, content_type: str | None = None
    ) -> PutResult:
        resolved = content_type or content_type_for(key)
        try:
            etag = await call_with_retry(
                lambda: asyncio.to_thread(self._put_object, bucket, key, data, resolved),
                policy=self.retry_policy,
                operation=f"put:{key}",
            )
        except StoreErrors as exc:
            return self._put_failed(key, exc)
        return PutResult(key=key, ok=True, etag=etag)

    async def get_async(self, bucket: str, key: str) -> GetResult:
        try:
            data = await call_with_retry(
                lambda: asyncio.to_thread(self._get_object, bucket, key),
                policy=self.retry_policy,
                operation=f"get:{key}",
            )
        except StoreErrors as exc:
            return self._get_failed(key, exc)
        return GetResult(key=key, ok=True, data=data)

    async def delete_async(self, bucket: str, key: str) -> DeleteResult:
        try:
            await call_with_retry(
                lambda: asyncio.to_thread(self._delete_object, bucket, key),
                policy=self.retry_policy,
                operation=f"delete:{key}",
            )
        except StoreErrors as exc:
            return self._delete_failed(key, exc)
        return DeleteResult(key=key, ok=True)
