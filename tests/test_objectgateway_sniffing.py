import io

import pytest

from components.objectgateway.errors import UnseekableStream, UnsupportedMediaType
from components.objectgateway.sniffing import classify, essence, sniff_stream, validate

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x00" * 64
JPEG = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x01" * 64
PDF = b"%PDF-1.7\n%\xe2\xe3\xcf\xd3\n1 0 obj\n"
WEBP = b"RIFF\x24\x00\x00\x00WEBPVP8 " + b"\x00" * 32
GIF = b"GIF89a" + b"\x01\x00\x01\x00"


@pytest.mark.parametrize(
    "data,expected",
    [
        (PNG, "image/png"),
        (JPEG, "image/jpeg"),
        (PDF, "application/pdf"),
        (WEBP, "image/webp"),
        (GIF, "image/gif"),
        (b"PK\x03\x04rest", "application/zip"),
        (b"  <!DOCTYPE html><html></html>", "text/html; charset=utf-8"),
        (b"<?xml version='1.0'?><a/>", "text/xml; charset=utf-8"),
        (b"just some words\n", "text/plain; charset=utf-8"),
        (b"\x00\x01\x02\x03binary", "application/octet-stream"),
    ],
)
def test_classify_known_signatures(data, expected):
    assert classify(data) == expected


def test_short_input_is_still_classified():
    assert classify(b"\xff\xd8\xff") == "image/jpeg"
    assert classify(b"%PDF-") == "application/pdf"
    assert classify(b"") == "text/plain; charset=utf-8"


def test_only_first_512_bytes_matter():
    data = b"plain text " * 50 + b"\x00\x01\x02"
    assert len(data) > 512
    assert classify(data) == classify(data[:512])


@pytest.mark.parametrize("claimed", ["photo.png", "photo.txt", "photo", "photo.exe"])
def test_classification_ignores_claimed_name(claimed):
    # Nothing but bytes is passed in, so the claimed name cannot matter.
    stream = io.BytesIO(PNG)
    assert sniff_stream(stream) == "image/png"


def test_sniff_stream_rewinds():
    stream = io.BytesIO(PDF)
    stream.read(3)
    assert sniff_stream(stream) == "application/pdf"
    assert stream.tell() == 0
    assert stream.read() == PDF


class _NoSeek(io.RawIOBase):
    def readable(self):
        return True

    def seekable(self):
        return False


def test_sniff_stream_requires_seekable():
    with pytest.raises(UnseekableStream):
        sniff_stream(_NoSeek())


def test_validate_allow_list():
    allowed = ["image/png", "application/pdf"]
    assert validate("image/png", allowed) == "image/png"
    assert essence("text/plain; charset=utf-8") == "text/plain"
    with pytest.raises(UnsupportedMediaType) as ei:
        validate("text/plain; charset=utf-8", allowed)
    assert str(ei.value) == "unsupported media type"
