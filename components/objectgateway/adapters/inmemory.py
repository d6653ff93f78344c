from __future__ import annotations

import asyncio
import base64
import binascii
import io
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, Dict, List, Optional, Sequence
from urllib.parse import quote

from ..contracts import ObjectSummary, PaginatedListing, StoredObject
from ..errors import BucketAlreadyExists, BucketNotEmpty, BucketNotFound, ObjectNotFound, UpstreamError
from ..pagination import extension_of, human_size
from ..ports import ObjectStorePort
from ..streams import ObjectStream


@dataclass
class _Blob:
    data: bytes
    content_type: str
    last_modified: datetime


def _encode_token(last_key: str) -> str:
    return base64.urlsafe_b64encode(last_key.encode("utf-8")).decode("ascii")


def _decode_token(token: str) -> str:
    try:
        return base64.urlsafe_b64decode(token.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        raise UpstreamError("malformed continuation token", op="list_objects")


class InMemoryObjectStore(ObjectStorePort):
    """
    Deterministic, test-friendly backend.
    Storage: { bucket: { key: _Blob } }, listed in lexical key order.
    """

    name = "memory"

    def __init__(self) -> None:
        self._buckets: Dict[str, Dict[str, _Blob]] = {}

    def _bucket(self, bucket: str, op: str) -> Dict[str, _Blob]:
        objects = self._buckets.get(bucket)
        if objects is None:
            raise BucketNotFound(f"bucket {bucket!r} not found", op=op, bucket=bucket)
        return objects

    # -------- Port methods --------

    def locator_for(self, bucket: str, key: str) -> str:
        return f"memory://{bucket}/{quote(key)}"

    async def put_object(self, bucket: str, key: str, stream: BinaryIO, content_type: str) -> StoredObject:
        try:
            objects = self._bucket(bucket, "put_object")
            data = stream.read()
        finally:
            stream.close()
        # Yield once so concurrent uploads interleave as they would over a network.
        await asyncio.sleep(0)
        blob = _Blob(data=data, content_type=content_type, last_modified=datetime.now(timezone.utc))
        objects[key] = blob
        return StoredObject(
            bucket=bucket,
            key=key,
            size_bytes=len(data),
            content_type=content_type,
            locator=self.locator_for(bucket, key),
            last_modified=blob.last_modified,
        )

    async def open_object(self, bucket: str, key: str) -> ObjectStream:
        blob = self._bucket(bucket, "get_object").get(key)
        if blob is None:
            raise ObjectNotFound(f"object {key!r} not found", op="get_object", bucket=bucket, key=key)
        body = io.BytesIO(blob.data)

        async def read_chunk(n: int) -> bytes:
            return body.read(n)

        async def close() -> None:
            body.close()

        return ObjectStream(
            read_chunk, close, bucket=bucket, key=key, content_type=blob.content_type, size_bytes=len(blob.data)
        )

    async def delete_object(self, bucket: str, key: str) -> None:
        self._bucket(bucket, "delete_object").pop(key, None)

    async def delete_objects(self, bucket: str, keys: Sequence[str]) -> int:
        objects = self._bucket(bucket, "delete_objects")
        deleted = 0
        for key in keys:
            if objects.pop(key, None) is not None:
                deleted += 1
        return deleted

    async def list_objects(
        self, bucket: str, prefix: str = "", token: Optional[str] = None, limit: int = 100
    ) -> PaginatedListing:
        objects = self._bucket(bucket, "list_objects")
        if token is not None and token == "":
            # Real backends reject an empty continuation token.
            raise UpstreamError("malformed continuation token", op="list_objects", bucket=bucket)
        start_after = _decode_token(token) if token else None

        keys = sorted(k for k in objects if k.startswith(prefix) and (start_after is None or k > start_after))
        page_keys = keys[:limit]
        items: List[ObjectSummary] = []
        for k in page_keys:
            blob = objects[k]
            items.append(
                ObjectSummary(
                    key=k,
                    size_bytes=len(blob.data),
                    size_human=human_size(len(blob.data)),
                    extension=extension_of(k),
                    storage_class="STANDARD",
                    last_modified=blob.last_modified,
                )
            )
        next_token = _encode_token(page_keys[-1]) if len(keys) > limit else None
        return PaginatedListing(bucket=bucket, prefix=prefix, items=items, continuation_token=next_token)

    async def presign_get(self, bucket: str, key: str, expires_seconds: int) -> str:
        signature = secrets.token_hex(16)
        return f"{self.locator_for(bucket, key)}?X-Amz-Expires={int(expires_seconds)}&X-Amz-Signature={signature}"

    async def bucket_exists(self, bucket: str) -> bool:
        return bucket in self._buckets

    async def create_bucket(self, bucket: str) -> None:
        if bucket in self._buckets:
            raise BucketAlreadyExists(f"bucket {bucket!r} already exists", op="create_bucket", bucket=bucket)
        self._buckets[bucket] = {}

    async def delete_bucket(self, bucket: str) -> None:
        objects = self._bucket(bucket, "delete_bucket")
        if objects:
            raise BucketNotEmpty(f"bucket {bucket!r} is not empty", op="delete_bucket", bucket=bucket)
        del self._buckets[bucket]
