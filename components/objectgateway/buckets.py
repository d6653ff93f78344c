from __future__ import annotations

import logging

from .contracts import BucketStats
from .errors import BucketAlreadyExists
from .pagination import human_size, iter_pages
from .ports import ObjectStorePort

log = logging.getLogger("objectgateway.buckets")

# S3 DeleteObjects accepts at most 1000 keys per call.
DELETE_BATCH = 1000


class BucketManager:
    """Bucket lifecycle on top of the store port. Callers validate names."""

    def __init__(self, port: ObjectStorePort, page_size: int = DELETE_BATCH) -> None:
        self.port = port
        self.page_size = min(page_size, DELETE_BATCH)

    async def exists(self, bucket: str) -> bool:
        return await self.port.bucket_exists(bucket)

    async def create(self, bucket: str) -> None:
        # Check-then-create: two concurrent creators can both pass the check.
        if await self.port.bucket_exists(bucket):
            raise BucketAlreadyExists(f"bucket {bucket!r} already exists", op="create_bucket", bucket=bucket)
        await self.port.create_bucket(bucket)

    async def stats(self, bucket: str) -> BucketStats:
        count = 0
        total = 0
        async for page in iter_pages(self.port, bucket, limit=self.page_size):
            count += len(page.items)
            total += sum(item.size_bytes for item in page.items)
        return BucketStats(bucket=bucket, object_count=count, total_size_bytes=total, total_size_human=human_size(total))

    async def empty(self, bucket: str) -> int:
        """Delete every object in ``bucket``; returns the number removed."""
        deleted = 0
        async for page in iter_pages(self.port, bucket, limit=self.page_size):
            keys = [item.key for item in page.items]
            if keys:
                deleted += await self.port.delete_objects(bucket, keys)
        log.info("bucket.empty bucket=%s deleted=%s", bucket, deleted)
        return deleted

    async def delete(self, bucket: str) -> None:
        # Backends that refuse non-empty buckets surface their own error.
        await self.port.delete_bucket(bucket)
