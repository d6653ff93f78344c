
from __future__ import annotations

import asyncio
import io
import logging
from typing import Any, BinaryIO, List, Optional, Sequence
from urllib.parse import quote

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from ..contracts import ObjectSummary, PaginatedListing, StoredObject
from ..errors import (
    BackendUnavailable,
    BucketAlreadyExists,
    BucketNotEmpty,
    BucketNotFound,
    GatewayError,
    ObjectNotFound,
    OperationTimeout,
    UpstreamError,
)
from ..pagination import extension_of, human_size
from ..ports import ObjectStorePort
from ..streams import ObjectStream

log = logging.getLogger("objectgateway.s3")

DELETE_BATCH = 1000
_NOT_FOUND_CODES = {"404", "NotFound", "NoSuchKey"}
_UNAVAILABLE_CODES = {"ServiceUnavailable", "SlowDown", "InternalError", "503", "500"}


def _status(e: ClientError) -> Optional[int]:
    return e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")


def _code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


def translate_error(e: Exception, op: str, bucket: str, key: Optional[str] = None) -> GatewayError:
    """Map a botocore failure onto the gateway error taxonomy."""
    ctx = {"op": op, "bucket": bucket, "key": key}
    if isinstance(e, ClientError):
        code, status = _code(e), _status(e)
        if code == "NoSuchBucket":
            return BucketNotFound(f"bucket {bucket!r} not found", **ctx)
        if code in _NOT_FOUND_CODES or status == 404:
            if key is None:
                return BucketNotFound(f"bucket {bucket!r} not found", **ctx)
            return ObjectNotFound(f"object {key!r} not found", **ctx)
        if code in ("BucketAlreadyExists", "BucketAlreadyOwnedByYou"):
            return BucketAlreadyExists(f"bucket {bucket!r} already exists", **ctx)
        if code == "BucketNotEmpty":
            return BucketNotEmpty(f"bucket {bucket!r} is not empty", **ctx)
        if code == "RequestTimeout":
            return OperationTimeout(f"{op} timed out at the backend", **ctx)
        if code in _UNAVAILABLE_CODES or (status is not None and status >= 500):
            return BackendUnavailable(f"{op} failed: {code or status}", **ctx)
        return UpstreamError(f"{op} failed: {code or status}", **ctx)
    if isinstance(e, ReadTimeoutError):
        return OperationTimeout(f"{op} timed out reading from backend", **ctx)
    if isinstance(e, (EndpointConnectionError, ConnectionClosedError)):
        return BackendUnavailable(f"{op} failed: {e}", **ctx)
    return UpstreamError(f"{op} failed: {e}", **ctx)


def _close_abandoned_body(call: "asyncio.Future") -> None:
    if call.cancelled() or call.exception() is not None:
        return
    call.result()["Body"].close()
    log.debug("s3.get_object body closed after caller gave up")


class S3ObjectStore(ObjectStorePort):
    name = "s3"

    def __init__(
        self,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        force_path_style: bool = False,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        client: Any = None,
    ):
        self.region = region
        self.endpoint_url = endpoint_url
        self.s3 = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=BotoConfig(
                signature_version="s3v4",
                s3={"addressing_style": "path" if force_path_style else "auto"},
            ),
        )

    def locator_for(self, bucket: str, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{bucket}/{quote(key)}"
        if self.region:
            return f"https://{bucket}.s3.{self.region}.amazonaws.com/{quote(key)}"
        return f"https://{bucket}.s3.amazonaws.com/{quote(key)}"

    async def put_object(self, bucket: str, key: str, stream: BinaryIO, content_type: str) -> StoredObject:
        def upload():
            try:
                stream.seek(0, io.SEEK_END)
                size = stream.tell()
                stream.seek(0)
                self.s3.put_object(
                    Bucket=bucket, Key=key, Body=stream, ContentLength=size, ContentType=content_type
                )
                # The backend's view of the object is authoritative.
                return self.s3.head_object(Bucket=bucket, Key=key)
            finally:
                stream.close()

        try:
            head = await asyncio.to_thread(upload)
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, "put_object", bucket, key) from e

        return StoredObject(
            bucket=bucket,
            key=key,
            size_bytes=int(head.get("ContentLength", 0)),
            content_type=head.get("ContentType") or content_type,
            locator=self.locator_for(bucket, key),
            last_modified=head.get("LastModified"),
        )

    async def open_object(self, bucket: str, key: str) -> ObjectStream:
        call = asyncio.ensure_future(asyncio.to_thread(self.s3.get_object, Bucket=bucket, Key=key))
        try:
            # Shielded so a caller deadline cannot orphan a body the thread already opened.
            obj = await asyncio.shield(call)
        except asyncio.CancelledError:
            call.add_done_callback(_close_abandoned_body)
            raise
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, "get_object", bucket, key) from e

        body = obj["Body"]

        async def read_chunk(n: int) -> bytes:
            try:
                return await asyncio.to_thread(body.read, n)
            except (ClientError, BotoCoreError) as e:
                raise translate_error(e, "get_object", bucket, key) from e

        async def close() -> None:
            body.close()

        size = obj.get("ContentLength")
        return ObjectStream(
            read_chunk,
            close,
            bucket=bucket,
            key=key,
            content_type=obj.get("ContentType"),
            size_bytes=int(size) if size is not None else None,
        )

    async def delete_object(self, bucket: str, key: str) -> None:
        try:
            await asyncio.to_thread(self.s3.delete_object, Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            err = translate_error(e, "delete_object", bucket, key)
            if isinstance(err, ObjectNotFound):
                return
            raise err from e

    async def delete_objects(self, bucket: str, keys: Sequence[str]) -> int:
        deleted = 0
        for start in range(0, len(keys), DELETE_BATCH):
            batch = list(keys[start:start + DELETE_BATCH])
            try:
                resp = await asyncio.to_thread(
                    self.s3.delete_objects,
                    Bucket=bucket,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
                )
            except (ClientError, BotoCoreError) as e:
                raise translate_error(e, "delete_objects", bucket) from e
            errors = resp.get("Errors", []) or []
            for err in errors:
                log.warning("s3.delete_objects key failed bucket=%s key=%s code=%s",
                            bucket, err.get("Key"), err.get("Code"))
            deleted += len(batch) - len(errors)
        return deleted

    async def list_objects(
        self, bucket: str, prefix: str = "", token: Optional[str] = None, limit: int = 100
    ) -> PaginatedListing:
        kwargs = {"Bucket": bucket, "MaxKeys": limit}
        if prefix:
            kwargs["Prefix"] = prefix
        if token:
            kwargs["ContinuationToken"] = token

        try:
            resp = await asyncio.to_thread(self.s3.list_objects_v2, **kwargs)
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, "list_objects", bucket) from e

        items: List[ObjectSummary] = []
        for c in resp.get("Contents", []) or []:
            size = int(c.get("Size", 0))
            items.append(
                ObjectSummary(
                    key=c["Key"],
                    size_bytes=size,
                    size_human=human_size(size),
                    extension=extension_of(c["Key"]),
                    storage_class=c.get("StorageClass"),
                    last_modified=c.get("LastModified"),
                )
            )
        next_token = resp.get("NextContinuationToken") if resp.get("IsTruncated") else None
        return PaginatedListing(bucket=bucket, prefix=prefix, items=items, continuation_token=next_token)

    async def presign_get(self, bucket: str, key: str, expires_seconds: int) -> str:
        # Signed locally; no request reaches the backend.
        try:
            return await asyncio.to_thread(
                self.s3.generate_presigned_url,
                ClientMethod="get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=int(expires_seconds),
            )
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, "presign_get", bucket, key) from e

    async def bucket_exists(self, bucket: str) -> bool:
        try:
            await asyncio.to_thread(self.s3.head_bucket, Bucket=bucket)
        except (ClientError, BotoCoreError) as e:
            err = translate_error(e, "head_bucket", bucket)
            if isinstance(err, BucketNotFound):
                return False
            raise err from e
        return True

    async def create_bucket(self, bucket: str) -> None:
        kwargs = {"Bucket": bucket}
        if self.region and self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            await asyncio.to_thread(self.s3.create_bucket, **kwargs)
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, "create_bucket", bucket) from e

    async def delete_bucket(self, bucket: str) -> None:
        try:
            await asyncio.to_thread(self.s3.delete_bucket, Bucket=bucket)
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, "delete_bucket", bucket) from e
