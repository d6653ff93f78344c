from __future__ import annotations

from typing import AsyncIterator, Awaitable, Callable, Optional

CHUNK_SIZE = 64 * 1024

ReadChunk = Callable[[int], Awaitable[bytes]]
CloseFn = Callable[[], Awaitable[None]]


class ObjectStream:
    """Body of a stored object, pulled from the backend chunk by chunk.

    The caller owns it and must close it (``aclose`` or ``async with``) on
    every exit path. Iteration ends, and the stream closes, at EOF.
    """

    def __init__(
        self,
        read_chunk: ReadChunk,
        close: CloseFn,
        *,
        bucket: str,
        key: str,
        content_type: Optional[str] = None,
        size_bytes: Optional[int] = None,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        self._read_chunk = read_chunk
        self._close = close
        self.bucket = bucket
        self.key = key
        self.content_type = content_type
        self.size_bytes = size_bytes
        self.chunk_size = chunk_size
        self.closed = False

    async def chunks(self) -> AsyncIterator[bytes]:
        try:
            while not self.closed:
                data = await self._read_chunk(self.chunk_size)
                if not data:
                    break
                yield data
        finally:
            await self.aclose()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.chunks()

    async def read_all(self) -> bytes:
        parts = []
        async for chunk in self.chunks():
            parts.append(chunk)
        return b"".join(parts)

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self._close()

    async def __aenter__(self) -> "ObjectStream":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
