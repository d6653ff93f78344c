import io

import pytest

from components.objectgateway.adapters.inmemory import InMemoryObjectStore
from components.objectgateway.buckets import BucketManager
from components.objectgateway.errors import (
    BucketAlreadyExists,
    BucketNotEmpty,
    BucketNotFound,
    ObjectNotFound,
    UpstreamError,
)
from components.objectgateway.pagination import human_size, iter_objects, iter_pages, normalize_token


async def _fill(store, bucket, n, size=10):
    for i in range(n):
        await store.put_object(bucket, f"obj-{i:04d}.bin", io.BytesIO(b"x" * size), "application/octet-stream")


class RecordingStore(InMemoryObjectStore):
    def __init__(self):
        super().__init__()
        self.tokens_seen = []

    async def list_objects(self, bucket, prefix="", token=None, limit=100):
        self.tokens_seen.append(token)
        return await super().list_objects(bucket, prefix=prefix, token=token, limit=limit)


@pytest.mark.asyncio
async def test_put_open_delete_roundtrip():
    store = InMemoryObjectStore()
    await store.create_bucket("media")
    stream = io.BytesIO(b"hello world" * 100)
    stored = await store.put_object("media", "k1.bin", stream, "application/octet-stream")
    assert stream.closed
    assert stored.size_bytes == 1100
    assert stored.locator == "memory://media/k1.bin"
    assert stored.last_modified is not None

    body = await store.open_object("media", "k1.bin")
    assert await body.read_all() == b"hello world" * 100
    assert body.closed

    await store.delete_object("media", "k1.bin")
    await store.delete_object("media", "k1.bin")
    with pytest.raises(ObjectNotFound):
        await store.open_object("media", "k1.bin")


@pytest.mark.asyncio
async def test_put_into_missing_bucket_closes_stream():
    store = InMemoryObjectStore()
    stream = io.BytesIO(b"data")
    with pytest.raises(BucketNotFound):
        await store.put_object("nope", "k", stream, "image/png")
    assert stream.closed


@pytest.mark.asyncio
async def test_pagination_237_objects_in_5_pages():
    store = RecordingStore()
    await store.create_bucket("pages")
    await _fill(store, "pages", 237)

    pages = [p async for p in iter_pages(store, "pages", limit=50)]
    assert [len(p.items) for p in pages] == [50, 50, 50, 50, 37]
    assert pages[-1].continuation_token is None
    assert all(p.continuation_token for p in pages[:-1])
    assert sum(len(p.items) for p in pages) == 237
    # first call carries no token and an empty token is never sent
    assert store.tokens_seen[0] is None
    assert "" not in store.tokens_seen

    keys = [o.key async for o in iter_objects(store, "pages", limit=50)]
    assert keys == sorted(keys)
    assert len(set(keys)) == 237


@pytest.mark.asyncio
async def test_backend_rejects_literal_empty_token():
    store = InMemoryObjectStore()
    await store.create_bucket("pages")
    with pytest.raises(UpstreamError):
        await store.list_objects("pages", token="")
    assert normalize_token("") is None
    assert normalize_token("abc") == "abc"


@pytest.mark.asyncio
async def test_listing_prefix_and_summary_fields():
    store = InMemoryObjectStore()
    await store.create_bucket("docs")
    await store.put_object("docs", "a/one.PDF", io.BytesIO(b"x" * 2048), "application/pdf")
    await store.put_object("docs", "b/two.png", io.BytesIO(b"x"), "image/png")
    page = await store.list_objects("docs", prefix="a/")
    assert [i.key for i in page.items] == ["a/one.PDF"]
    item = page.items[0]
    assert item.extension == "pdf"
    assert item.size_human == "2.0 KiB"
    assert item.storage_class == "STANDARD"


def test_human_size():
    assert human_size(0) == "0 B"
    assert human_size(1023) == "1023 B"
    assert human_size(1536) == "1.5 KiB"
    assert human_size(5 * 1024 ** 3) == "5.0 GiB"


@pytest.mark.asyncio
async def test_bucket_manager_lifecycle():
    store = InMemoryObjectStore()
    mgr = BucketManager(store, page_size=7)

    assert await mgr.exists("life") is False
    await mgr.create("life")
    assert await mgr.exists("life") is True
    with pytest.raises(BucketAlreadyExists):
        await mgr.create("life")

    await _fill(store, "life", 23, size=100)
    stats = await mgr.stats("life")
    assert stats.object_count == 23
    assert stats.total_size_bytes == 2300

    with pytest.raises(BucketNotEmpty):
        await mgr.delete("life")

    assert await mgr.empty("life") == 23
    assert await mgr.empty("life") == 0
    assert (await mgr.stats("life")).object_count == 0

    await mgr.delete("life")
    assert await mgr.exists("life") is False
    with pytest.raises(BucketNotFound):
        await mgr.delete("life")


@pytest.mark.asyncio
async def test_create_checks_existence_before_creating():
    class AlwaysThere(InMemoryObjectStore):
        created = False

        async def bucket_exists(self, bucket):
            return True

        async def create_bucket(self, bucket):
            self.created = True

    store = AlwaysThere()
    with pytest.raises(BucketAlreadyExists):
        await BucketManager(store).create("dup")
    assert store.created is False


@pytest.mark.asyncio
async def test_presign_echoes_expiry():
    store = InMemoryObjectStore()
    url = await store.presign_get("media", "k.png", 321)
    assert url.startswith("memory://media/k.png?")
    assert "X-Amz-Expires=321" in url
