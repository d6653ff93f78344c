
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import BinaryIO, Optional, Sequence

from .contracts import PaginatedListing, StoredObject
from .streams import ObjectStream


class ObjectStorePort(ABC):
    """Backend-facing interface. Implementations translate one call into one
    backend request (no retries) and map failures onto the gateway errors."""

    name: str = "abstract"

    @abstractmethod
    def locator_for(self, bucket: str, key: str) -> str: ...

    @abstractmethod
    async def put_object(self, bucket: str, key: str, stream: BinaryIO, content_type: str) -> StoredObject:
        """Persist ``stream`` under ``key``; the stream is closed whatever the outcome."""

    @abstractmethod
    async def open_object(self, bucket: str, key: str) -> ObjectStream: ...

    @abstractmethod
    async def delete_object(self, bucket: str, key: str) -> None:
        """Idempotent: an absent key is not an error."""

    @abstractmethod
    async def delete_objects(self, bucket: str, keys: Sequence[str]) -> int:
        """Best-effort bulk delete; returns how many keys were removed."""

    @abstractmethod
    async def list_objects(
        self, bucket: str, prefix: str = "", token: Optional[str] = None, limit: int = 100
    ) -> PaginatedListing: ...

    @abstractmethod
    async def presign_get(self, bucket: str, key: str, expires_seconds: int) -> str: ...

    @abstractmethod
    async def bucket_exists(self, bucket: str) -> bool: ...

    @abstractmethod
    async def create_bucket(self, bucket: str) -> None: ...

    @abstractmethod
    async def delete_bucket(self, bucket: str) -> None: ...
