from __future__ import annotations

from typing import AsyncIterator, Optional

from .contracts import ObjectSummary, PaginatedListing
from .ports import ObjectStorePort

_UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB")


def normalize_token(token: Optional[str]) -> Optional[str]:
    """An empty continuation token means "no token"; never send '' to a backend."""
    return token or None


def human_size(size: int) -> str:
    value = float(size)
    for unit in _UNITS:
        if value < 1024 or unit == _UNITS[-1]:
            if unit == "B":
                return f"{int(value)} B"
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"  # pragma: no cover


def extension_of(key: str) -> str:
    base = key.rsplit("/", 1)[-1]
    if "." not in base.strip("."):
        return ""
    return base.rsplit(".", 1)[-1].lower()


def normalize_extension(ext: Optional[str]) -> str:
    return (ext or "").strip().lstrip(".").lower()


async def iter_pages(
    port: ObjectStorePort, bucket: str, prefix: str = "", limit: int = 100
) -> AsyncIterator[PaginatedListing]:
    """Walk a listing page by page until the backend stops returning a token."""
    token: Optional[str] = None
    while True:
        page = await port.list_objects(bucket, prefix=prefix, token=token, limit=limit)
        yield page
        token = normalize_token(page.continuation_token)
        if token is None:
            return


async def iter_objects(
    port: ObjectStorePort, bucket: str, prefix: str = "", limit: int = 100
) -> AsyncIterator[ObjectSummary]:
    async for page in iter_pages(port, bucket, prefix=prefix, limit=limit):
        for item in page.items:
            yield item
