from __future__ import annotations

from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, FastAPI, File, Query, Request, Response, UploadFile, status
from fastapi.responses import JSONResponse, StreamingResponse

from .contracts import BucketStats, ErrorPayload, PaginatedListing, PresignedLocator, UploadRequest
from .errors import GatewayError
from .service import ObjectGatewayService


# ---- Dependency: the service is composed at startup and parked on app.state ----
def get_service(request: Request) -> ObjectGatewayService:
    return request.app.state.object_gateway


def content_disposition(filename: str) -> str:
    # RFC 6266: quoted ASCII fallback plus the exact name as filename*.
    fallback = "".join(c if " " <= c <= "~" and c not in '"\\' else "_" for c in filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def error_payload(exc: GatewayError) -> ErrorPayload:
    return ErrorPayload(type=exc.type, code=exc.code, message=exc.message, details=exc.context() or None)


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": error_payload(exc).model_dump()})


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GatewayError, gateway_error_handler)


# ---- Router ----
router = APIRouter(prefix="/buckets", tags=["buckets"])


@router.post("/{bucket}", status_code=status.HTTP_201_CREATED)
async def create_bucket(bucket: str, svc: ObjectGatewayService = Depends(get_service)):
    await svc.create_bucket(bucket)
    return {"bucket": bucket, "created": True}


@router.get("/{bucket}", response_model=BucketStats)
async def bucket_stats(bucket: str, svc: ObjectGatewayService = Depends(get_service)):
    return await svc.bucket_stats(bucket)


@router.delete("/{bucket}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bucket(bucket: str, svc: ObjectGatewayService = Depends(get_service)):
    await svc.delete_bucket(bucket)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{bucket}/empty")
async def empty_bucket(bucket: str, svc: ObjectGatewayService = Depends(get_service)):
    deleted = await svc.empty_bucket(bucket)
    return {"bucket": bucket, "deleted": deleted}


@router.post("/{bucket}/objects", status_code=status.HTTP_201_CREATED)
async def upload_objects(
    bucket: str,
    files: List[UploadFile] = File(...),
    svc: ObjectGatewayService = Depends(get_service),
):
    requests = [UploadRequest(f.filename or "upload", f.file) for f in files]
    locators = await svc.upload_many(bucket, requests)
    return {
        "locators": locators,
        "objects": [r.stored.model_dump(mode="json") for r in requests],
    }


@router.get("/{bucket}/objects", response_model=PaginatedListing)
async def list_objects(
    bucket: str,
    prefix: str = "",
    ext: Optional[str] = None,
    token: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    svc: ObjectGatewayService = Depends(get_service),
):
    return await svc.list_objects(bucket, prefix=prefix, extension=ext, token=token, limit=limit)


@router.get("/{bucket}/objects/{key:path}")
async def download_object(bucket: str, key: str, svc: ObjectGatewayService = Depends(get_service)):
    stream = await svc.download_one(bucket, key)
    headers = {"Content-Disposition": content_disposition(key.rsplit("/", 1)[-1])}
    if stream.size_bytes is not None:
        headers["Content-Length"] = str(stream.size_bytes)
    # chunks() closes the backend body when the response finishes or aborts.
    return StreamingResponse(
        stream.chunks(), media_type=stream.content_type or "application/octet-stream", headers=headers
    )


@router.delete("/{bucket}/objects/{key:path}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_object(bucket: str, key: str, svc: ObjectGatewayService = Depends(get_service)):
    await svc.delete_one(bucket, key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{bucket}/presign/{key:path}", response_model=PresignedLocator)
async def presign_object(bucket: str, key: str, svc: ObjectGatewayService = Depends(get_service)):
    return await svc.presigned_url(bucket, key)
