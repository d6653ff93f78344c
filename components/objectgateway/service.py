
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import contextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterator, List, Optional, Sequence, TypeVar

from opentelemetry import trace

from .buckets import BucketManager
from .config import GatewaySettings
from .contracts import BucketStats, ObjectSummary, PaginatedListing, PresignedLocator, UploadRequest
from .errors import GatewayError, InvalidRequest, OperationTimeout, ValidationFailed
from .keys import KeyGenerator
from .naming import validate_bucket_name
from .pagination import iter_pages, normalize_extension, normalize_token
from .ports import ObjectStorePort
from .sniffing import sniff_stream, validate
from .streams import ObjectStream

log = logging.getLogger("objectgateway")
tracer = trace.get_tracer("objectgateway")

T = TypeVar("T")
MAX_LIST_LIMIT = 1000


@contextmanager
def _observe(op: str, **attrs: Any) -> Iterator[Dict[str, Any]]:
    """Span + duration + one log line per operation.

    The body may add fields to the yielded dict; they are logged on success.
    """
    t0 = time.perf_counter()
    fields: Dict[str, Any] = {k: v for k, v in attrs.items() if v is not None}
    with tracer.start_as_current_span(f"gateway.{op}") as span:
        for k, v in fields.items():
            span.set_attribute(f"gateway.{k}", str(v))
        try:
            yield fields
        except ValidationFailed as e:
            dur_ms = int((time.perf_counter() - t0) * 1000)
            log.warning("gateway.%s rejected code=%s %s dur_ms=%s", op, e.code, _kv(fields), dur_ms)
            raise
        except GatewayError as e:
            dur_ms = int((time.perf_counter() - t0) * 1000)
            span.set_attribute("gateway.error", e.code)
            log.error("gateway.%s err code=%s msg=%s %s dur_ms=%s", op, e.code, e.message, _kv(fields), dur_ms)
            raise
        except asyncio.CancelledError:
            log.info("gateway.%s cancelled %s", op, _kv(fields))
            raise
        except Exception:
            dur_ms = int((time.perf_counter() - t0) * 1000)
            log.exception("gateway.%s err %s dur_ms=%s", op, _kv(fields), dur_ms)
            raise
        dur_ms = int((time.perf_counter() - t0) * 1000)
        log.info("gateway.%s ok %s dur_ms=%s", op, _kv(fields), dur_ms)


def _kv(fields: Dict[str, Any]) -> str:
    return " ".join(f"{k}={v}" for k, v in fields.items())


def _require_key(key: str, op: str, bucket: str) -> str:
    if not key or not key.strip():
        raise InvalidRequest("object key must not be empty", op=op, bucket=bucket)
    return key


def _deadline(timeout: Optional[float], default: float) -> float:
    return default if timeout is None else timeout


class ObjectGatewayService:
    """
    Policy layer over an object store: validate -> name -> persist.

    Validation failures never reach the backend. Every backend call runs
    under a deadline; nothing is retried here.
    """

    def __init__(
        self,
        port: ObjectStorePort,
        settings: Optional[GatewaySettings] = None,
        keys: Optional[KeyGenerator] = None,
        now: Optional[Callable[[], float]] = None,
    ) -> None:
        self.port = port
        self.settings = settings or GatewaySettings()
        self.keys = keys or KeyGenerator()
        self.buckets = BucketManager(port)
        self._now = now or time.time

    async def _bounded(
        self, aw: Awaitable[T], timeout: float, op: str, bucket: str, key: Optional[str] = None
    ) -> T:
        try:
            return await asyncio.wait_for(aw, timeout)
        except asyncio.TimeoutError as e:
            raise OperationTimeout(f"{op} exceeded {timeout}s deadline", op=op, bucket=bucket, key=key) from e

    # ---------- Uploads ----------

    async def upload_one(self, bucket: str, request: UploadRequest, timeout: Optional[float] = None) -> str:
        with _observe("upload", bucket=bucket, filename=request.filename) as obs:
            try:
                validate_bucket_name(bucket)
                detected = sniff_stream(request.stream, self.settings.SNIFF_WINDOW_BYTES)
                request.content_type = validate(detected, self.settings.ALLOWED_MEDIA_TYPES)
                key = self.keys.new_key(request.filename)
                obs["key"] = key
                stored = await self._bounded(
                    self.port.put_object(bucket, key, request.stream, request.content_type),
                    _deadline(timeout, self.settings.UPLOAD_TIMEOUT_SECONDS),
                    "upload", bucket, key,
                )
            finally:
                request.close()
            request.stored = stored
            obs["size"] = stored.size_bytes
            return stored.locator

    async def upload_many(
        self, bucket: str, requests: Sequence[UploadRequest], timeout: Optional[float] = None
    ) -> List[str]:
        """Upload all requests concurrently; all-or-nothing at this layer.

        The first failure cancels the uploads still in flight and is raised.
        Writes that already completed are not rolled back; their requests
        keep ``stored`` set so the caller can clean up. Results follow input
        order.
        """
        with _observe("upload_many", bucket=bucket, count=len(requests)):
            if not requests:
                return []
            tasks = [asyncio.ensure_future(self.upload_one(bucket, r, timeout=timeout)) for r in requests]
            try:
                await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
                for index, task in enumerate(tasks):
                    if task.done() and not task.cancelled() and task.exception() is not None:
                        log.warning("gateway.upload_many abort bucket=%s failed_index=%s filename=%s",
                                    bucket, index, requests[index].filename)
                        raise task.exception()
                return [task.result() for task in tasks]
            finally:
                for task in tasks:
                    if not task.done():
                        task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                # Tasks cancelled before they started never reached their own cleanup.
                for r in requests:
                    r.close()

    # ---------- Reads ----------

    async def download_one(self, bucket: str, key: str, timeout: Optional[float] = None) -> ObjectStream:
        """Open ``key`` for streaming; the caller must close the returned stream."""
        with _observe("download", bucket=bucket, key=key) as obs:
            validate_bucket_name(bucket)
            _require_key(key, "download", bucket)
            stream = await self._bounded(
                self.port.open_object(bucket, key),
                _deadline(timeout, self.settings.REQUEST_TIMEOUT_SECONDS),
                "download", bucket, key,
            )
            obs["size"] = stream.size_bytes
            return stream

    async def presigned_url(self, bucket: str, key: str) -> PresignedLocator:
        with _observe("presign", bucket=bucket, key=key) as obs:
            validate_bucket_name(bucket)
            _require_key(key, "presign", bucket)
            expires = min(self.settings.PRESIGN_EXPIRY_SECONDS, self.settings.PRESIGN_MAX_EXPIRY_SECONDS)
            url = await self.port.presign_get(bucket, key, expires)
            obs["expires_s"] = expires
            return PresignedLocator(
                url=url, expires_in_seconds=expires, expires_at_epoch_s=int(self._now()) + expires
            )

    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        extension: Optional[str] = None,
        token: Optional[str] = None,
        limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> PaginatedListing:
        """One backend page, optionally narrowed to an extension.

        Filtering happens after the backend call, so a page may hold fewer
        items than ``limit`` (even none) while the token still points further.
        """
        with _observe("list", bucket=bucket, prefix=prefix or None, ext=extension) as obs:
            validate_bucket_name(bucket)
            limit = limit or self.settings.LIST_PAGE_SIZE
            if not (1 <= limit <= MAX_LIST_LIMIT):
                raise InvalidRequest(f"limit must be between 1 and {MAX_LIST_LIMIT}", op="list", bucket=bucket)
            page = await self._bounded(
                self.port.list_objects(bucket, prefix=prefix, token=normalize_token(token), limit=limit),
                _deadline(timeout, self.settings.REQUEST_TIMEOUT_SECONDS),
                "list", bucket,
            )
            wanted = normalize_extension(extension)
            if wanted:
                page = page.model_copy(update={"items": [i for i in page.items if i.extension == wanted]})
            obs["count"] = len(page.items)
            return page

    async def walk_objects(
        self, bucket: str, prefix: str = "", extension: Optional[str] = None
    ) -> AsyncIterator[ObjectSummary]:
        """Every object in ``bucket`` one at a time, paging underneath."""
        validate_bucket_name(bucket)
        wanted = normalize_extension(extension)
        async for page in iter_pages(self.port, bucket, prefix=prefix, limit=self.settings.LIST_PAGE_SIZE):
            for item in page.items:
                if not wanted or item.extension == wanted:
                    yield item

    # ---------- Deletes ----------

    async def delete_one(self, bucket: str, key: str, timeout: Optional[float] = None) -> None:
        with _observe("delete", bucket=bucket, key=key):
            validate_bucket_name(bucket)
            _require_key(key, "delete", bucket)
            await self._bounded(
                self.port.delete_object(bucket, key),
                _deadline(timeout, self.settings.DELETE_TIMEOUT_SECONDS),
                "delete", bucket, key,
            )

    # ---------- Buckets ----------

    async def bucket_exists(self, bucket: str, timeout: Optional[float] = None) -> bool:
        with _observe("bucket_exists", bucket=bucket) as obs:
            validate_bucket_name(bucket)
            exists = await self._bounded(
                self.buckets.exists(bucket), _deadline(timeout, self.settings.REQUEST_TIMEOUT_SECONDS), "bucket_exists", bucket
            )
            obs["exists"] = exists
            return exists

    async def create_bucket(self, bucket: str, timeout: Optional[float] = None) -> None:
        with _observe("create_bucket", bucket=bucket):
            validate_bucket_name(bucket)
            await self._bounded(
                self.buckets.create(bucket), _deadline(timeout, self.settings.REQUEST_TIMEOUT_SECONDS), "create_bucket", bucket
            )

    async def bucket_stats(self, bucket: str, timeout: Optional[float] = None) -> BucketStats:
        with _observe("bucket_stats", bucket=bucket) as obs:
            validate_bucket_name(bucket)
            stats = await self._bounded(
                self.buckets.stats(bucket), _deadline(timeout, self.settings.REQUEST_TIMEOUT_SECONDS), "bucket_stats", bucket
            )
            obs["objects"] = stats.object_count
            obs["bytes"] = stats.total_size_bytes
            return stats

    async def empty_bucket(self, bucket: str, timeout: Optional[float] = None) -> int:
        with _observe("empty_bucket", bucket=bucket) as obs:
            validate_bucket_name(bucket)
            deleted = await self._bounded(
                self.buckets.empty(bucket), _deadline(timeout, self.settings.REQUEST_TIMEOUT_SECONDS), "empty_bucket", bucket
            )
            obs["deleted"] = deleted
            return deleted

    async def delete_bucket(self, bucket: str, timeout: Optional[float] = None) -> None:
        """Delete ``bucket``. Emptying it first is the caller's job."""
        with _observe("delete_bucket", bucket=bucket):
            validate_bucket_name(bucket)
            await self._bounded(
                self.buckets.delete(bucket), _deadline(timeout, self.settings.REQUEST_TIMEOUT_SECONDS), "delete_bucket", bucket
            )
