"""Content-based media type detection.

The verdict depends only on the leading bytes of the content; filenames and
client-declared types are never consulted.
"""
from __future__ import annotations

import logging
from typing import BinaryIO, Iterable, Optional

from .errors import UnseekableStream, UnsupportedMediaType

log = logging.getLogger("objectgateway.sniffing")

SNIFF_WINDOW = 512
OCTET_STREAM = "application/octet-stream"

# (prefix, media type); order matters where prefixes overlap.
_EXACT_SIGNATURES = (
    (b"%PDF-", "application/pdf"),
    (b"%!PS-Adobe-", "application/postscript"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"\x00\x00\x02\x00", "image/x-icon"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"Rar!\x1a\x07", "application/x-rar-compressed"),
    (b"OggS\x00", "application/ogg"),
    (b"ID3", "audio/mpeg"),
    (b"\x1a\x45\xdf\xa3", "video/webm"),
    (b"\xfe\xff", "text/plain; charset=utf-16be"),
    (b"\xff\xfe", "text/plain; charset=utf-16le"),
    (b"\xef\xbb\xbf", "text/plain; charset=utf-8"),
)

_HTML_TAGS = (
    b"<!DOCTYPE HTML", b"<HTML", b"<HEAD", b"<SCRIPT", b"<IFRAME", b"<H1", b"<DIV",
    b"<FONT", b"<TABLE", b"<A", b"<STYLE", b"<TITLE", b"<B", b"<BODY", b"<BR", b"<P", b"<!--",
)

_WHITESPACE = b"\t\n\x0c\r "
# Control bytes that never appear in text content.
_BINARY_BYTES = frozenset(list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20)))


def _riff(head: bytes) -> Optional[str]:
    if len(head) < 12 or head[:4] != b"RIFF":
        return None
    form = head[8:12]
    if form == b"WEBP" and head[12:14] == b"VP":
        return "image/webp"
    if form == b"WAVE":
        return "audio/wave"
    if form == b"AVI ":
        return "video/avi"
    return None


def _mp4(head: bytes) -> Optional[str]:
    # ISO base media: [box size][ftyp][major brand]...
    if len(head) < 12 or head[4:8] != b"ftyp":
        return None
    box_size = int.from_bytes(head[:4], "big")
    if box_size < 12 or box_size % 4 != 0 or len(head) < box_size:
        return None
    brands = [head[8:11]] + [head[i:i + 3] for i in range(16, box_size, 4)]
    if b"mp4" in brands:
        return "video/mp4"
    return None


def _markup(head: bytes) -> Optional[str]:
    body = head.lstrip(_WHITESPACE)
    if body.startswith(b"<?xml"):
        return "text/xml; charset=utf-8"
    upper = body[:16].upper()
    for tag in _HTML_TAGS:
        if upper.startswith(tag):
            if tag == b"<!--":
                return "text/html; charset=utf-8"
            terminator = body[len(tag):len(tag) + 1]
            if terminator in (b" ", b">"):
                return "text/html; charset=utf-8"
    return None


def classify(head: bytes) -> str:
    """Classify content by its first bytes (only the first 512 are considered)."""
    head = bytes(head[:SNIFF_WINDOW])
    if not head:
        return "text/plain; charset=utf-8"

    for prefix, media_type in _EXACT_SIGNATURES:
        if head.startswith(prefix):
            return media_type

    media_type = _riff(head) or _mp4(head) or _markup(head)
    if media_type:
        return media_type

    if any(b in _BINARY_BYTES for b in head):
        return OCTET_STREAM
    return "text/plain; charset=utf-8"


def essence(media_type: str) -> str:
    return media_type.split(";", 1)[0].strip().lower()


def validate(media_type: str, allowed: Iterable[str]) -> str:
    """Accept ``media_type`` if its essence is in ``allowed``; return the essence."""
    base = essence(media_type)
    if base not in {essence(a) for a in allowed}:
        log.debug("sniffing.reject detected=%s", media_type)
        raise UnsupportedMediaType()
    return base


def sniff_stream(stream: BinaryIO, window: int = SNIFF_WINDOW) -> str:
    """Classify a stream's leading bytes, then rewind it to offset zero."""
    seekable = getattr(stream, "seekable", None)
    if seekable is not None:
        ok = seekable()
    else:
        # SpooledTemporaryFile only grew seekable() in Python 3.11.
        ok = hasattr(stream, "seek") and hasattr(stream, "tell")
    if not ok:
        raise UnseekableStream("stream must support seeking")
    stream.seek(0)
    head = stream.read(window) or b""
    stream.seek(0)
    return classify(head)
