import asyncio
import io
from urllib.parse import unquote

from fastapi.testclient import TestClient

from components.objectgateway.adapters.inmemory import InMemoryObjectStore
from components.objectgateway.app import create_app
from components.objectgateway.config import GatewaySettings
from components.objectgateway.service import ObjectGatewayService

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 40
PDF = b"%PDF-1.4\n" + b"1 0 obj\n" * 5


def _client(store=None):
    svc = ObjectGatewayService(store or InMemoryObjectStore(), settings=GatewaySettings())
    return TestClient(create_app(service=svc))


def test_bucket_create_conflict_and_invalid_name():
    c = _client()
    r = c.post("/v1/buckets/photos")
    assert r.status_code == 201
    assert r.headers["x-request-id"]

    r2 = c.post("/v1/buckets/photos")
    assert r2.status_code == 409
    assert r2.json()["error"]["code"] == "BUCKET_ALREADY_EXISTS"

    r3 = c.post("/v1/buckets/Bad_Name")
    assert r3.status_code == 400
    err = r3.json()["error"]
    assert err["type"] == "VALIDATION"
    assert err["details"]["rule"] == "charset"


def test_upload_list_download_presign_delete():
    c = _client()
    c.post("/v1/buckets/photos")

    r = c.post(
        "/v1/buckets/photos/objects",
        files=[("files", ("cat.png", PNG, "image/png")), ("files", ("doc.pdf", PDF, "text/plain"))],
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert len(body["locators"]) == 2
    png_obj, pdf_obj = body["objects"]
    assert png_obj["content_type"] == "image/png"
    assert pdf_obj["content_type"] == "application/pdf"
    assert png_obj["key"].endswith(".png")

    listing = c.get("/v1/buckets/photos/objects").json()
    assert len(listing["items"]) == 2
    assert listing["continuation_token"] is None
    only_pdf = c.get("/v1/buckets/photos/objects", params={"ext": "pdf"}).json()
    assert [i["key"] for i in only_pdf["items"]] == [pdf_obj["key"]]

    d = c.get(f"/v1/buckets/photos/objects/{png_obj['key']}")
    assert d.status_code == 200
    assert d.content == PNG
    assert d.headers["content-type"] == "image/png"

    p = c.get(f"/v1/buckets/photos/presign/{png_obj['key']}")
    assert p.status_code == 200
    assert "X-Amz-Expires=900" in p.json()["url"]
    assert p.json()["expires_in_seconds"] == 900

    assert c.delete(f"/v1/buckets/photos/objects/{png_obj['key']}").status_code == 204
    assert c.delete(f"/v1/buckets/photos/objects/{png_obj['key']}").status_code == 204
    missing = c.get(f"/v1/buckets/photos/objects/{png_obj['key']}")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "OBJECT_NOT_FOUND"


def test_upload_rejects_unsupported_content():
    c = _client()
    c.post("/v1/buckets/photos")
    r = c.post(
        "/v1/buckets/photos/objects",
        files=[("files", ("ok.png", PNG, "image/png")), ("files", ("fake.png", b"hello there", "image/png"))],
    )
    assert r.status_code == 415
    assert r.json()["error"]["message"] == "unsupported media type"


def test_stats_empty_and_delete_bucket():
    c = _client()
    c.post("/v1/buckets/photos")
    c.post("/v1/buckets/photos/objects", files=[("files", ("a.png", PNG, "image/png"))])

    stats = c.get("/v1/buckets/photos").json()
    assert stats["object_count"] == 1
    assert stats["total_size_bytes"] == len(PNG)

    assert c.delete("/v1/buckets/photos").status_code == 409
    assert c.post("/v1/buckets/photos/empty").json()["deleted"] == 1
    assert c.delete("/v1/buckets/photos").status_code == 204
    assert c.get("/v1/buckets/photos").status_code == 404


def test_download_non_ascii_and_quoted_keys():
    store = InMemoryObjectStore()
    c = _client(store)
    c.post("/v1/buckets/photos")
    for key in ("fotó.png", 'albums/say "hi".png'):
        asyncio.run(store.put_object("photos", key, io.BytesIO(PNG), "image/png"))

    r = c.get("/v1/buckets/photos/objects/fotó.png")
    assert r.status_code == 200
    assert r.content == PNG
    disposition = r.headers["content-disposition"]
    assert 'filename="fot_.png"' in disposition
    assert unquote(disposition.split("filename*=UTF-8''", 1)[1]) == "fotó.png"

    r2 = c.get('/v1/buckets/photos/objects/albums/say "hi".png')
    assert r2.status_code == 200
    disposition = r2.headers["content-disposition"]
    assert 'filename="say _hi_.png"' in disposition
    assert unquote(disposition.split("filename*=UTF-8''", 1)[1]) == 'say "hi".png'
