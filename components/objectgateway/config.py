from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_MEDIA_TYPES = ["image/jpeg", "image/png", "image/webp", "application/pdf"]


class GatewaySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    GATEWAY_BACKEND: str = Field(default="memory")  # "memory" | "s3"

    # S3 / S3-compatible (MinIO, R2, ...)
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_REGION: Optional[str] = None
    S3_ENDPOINT_URL: Optional[str] = None
    S3_FORCE_PATH_STYLE: bool = False

    # Timeouts (seconds)
    UPLOAD_TIMEOUT_SECONDS: float = Field(default=60.0, gt=0)
    DELETE_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)
    REQUEST_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    # Presigned links
    PRESIGN_EXPIRY_SECONDS: int = Field(default=900, gt=0)           # 15 minutes
    PRESIGN_MAX_EXPIRY_SECONDS: int = Field(default=7 * 24 * 3600, gt=0)

    # Listing / validation
    LIST_PAGE_SIZE: int = Field(default=100, ge=1, le=1000)
    SNIFF_WINDOW_BYTES: int = Field(default=512, ge=1)
    ALLOWED_MEDIA_TYPES: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_MEDIA_TYPES))

    @field_validator("ALLOWED_MEDIA_TYPES")
    @classmethod
    def _lower_media_types(cls, v: List[str]) -> List[str]:
        return [m.strip().lower() for m in v if m.strip()]

    @model_validator(mode="after")
    def _bound_presign_expiry(self) -> "GatewaySettings":
        if self.PRESIGN_EXPIRY_SECONDS > self.PRESIGN_MAX_EXPIRY_SECONDS:
            raise ValueError("PRESIGN_EXPIRY_SECONDS exceeds PRESIGN_MAX_EXPIRY_SECONDS")
        return self
