"""
ObjectGateway package export surface.
"""
from __future__ import annotations

from typing import Optional

from .contracts import (
    BucketStats,
    ErrorPayload,
    ObjectSummary,
    PaginatedListing,
    PresignedLocator,
    StoredObject,
    UploadRequest,
)
from .errors import (
    BackendUnavailable,
    BucketAlreadyExists,
    BucketNotEmpty,
    BucketNotFound,
    GatewayError,
    InvalidBucketName,
    InvalidRequest,
    NotFound,
    ObjectNotFound,
    OperationTimeout,
    UnseekableStream,
    UnsupportedMediaType,
    UpstreamError,
    ValidationFailed,
)
from .ports import ObjectStorePort
from .adapters import InMemoryObjectStore, S3ObjectStore
from .config import GatewaySettings
from .service import ObjectGatewayService
from .streams import ObjectStream


def make_store_from_env(cfg: Optional[GatewaySettings] = None) -> ObjectStorePort:
    cfg = cfg or GatewaySettings()
    backend = cfg.GATEWAY_BACKEND.lower()
    if backend == "memory":
        return InMemoryObjectStore()
    if backend == "s3":
        return S3ObjectStore(
            region=cfg.AWS_REGION,
            endpoint_url=cfg.S3_ENDPOINT_URL,
            force_path_style=cfg.S3_FORCE_PATH_STYLE,
            access_key_id=cfg.AWS_ACCESS_KEY_ID,
            secret_access_key=cfg.AWS_SECRET_ACCESS_KEY,
        )
    raise RuntimeError(f"Unknown GATEWAY_BACKEND: {cfg.GATEWAY_BACKEND}")


def make_service_from_env(cfg: Optional[GatewaySettings] = None) -> ObjectGatewayService:
    cfg = cfg or GatewaySettings()
    return ObjectGatewayService(make_store_from_env(cfg), settings=cfg)
