
from __future__ import annotations

from datetime import datetime
from typing import Any, BinaryIO, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, conint, constr, field_validator

# ---------- Wire error shape (HTTP boundary) ----------

class ErrorPayload(BaseModel):
    type: Literal["VALIDATION", "NOT_FOUND", "CONFLICT", "TIMEOUT", "UPSTREAM", "INTERNAL"]
    code: constr(strip_whitespace=True, min_length=1)
    message: constr(strip_whitespace=True, min_length=1)
    details: Optional[Dict[str, Any]] = None

# ---------- Objects ----------

class StoredObject(BaseModel):
    bucket: str
    key: constr(min_length=1)
    size_bytes: conint(ge=0)
    content_type: str
    locator: str
    last_modified: Optional[datetime] = None

class ObjectSummary(BaseModel):
    key: str
    size_bytes: conint(ge=0)
    size_human: str
    extension: str = ""
    storage_class: Optional[str] = None
    last_modified: Optional[datetime] = None

class PaginatedListing(BaseModel):
    bucket: str
    prefix: str = ""
    items: List[ObjectSummary] = Field(default_factory=list)
    continuation_token: Optional[str] = None  # None => final page

    @field_validator("continuation_token")
    @classmethod
    def _empty_token_is_absent(cls, v: Optional[str]) -> Optional[str]:
        return v or None

class BucketStats(BaseModel):
    bucket: str
    object_count: conint(ge=0)
    total_size_bytes: conint(ge=0)
    total_size_human: str

class PresignedLocator(BaseModel):
    url: str
    method: Literal["GET"] = "GET"
    expires_in_seconds: conint(gt=0)
    expires_at_epoch_s: int

# ---------- Upload request ----------

class UploadRequest:
    """A client file on its way into a bucket.

    Owns ``stream`` until the upload finishes; whichever layer holds it is the
    only reader. The stream must be readable and seekable. ``content_type``
    is filled in by sniffing, ``stored``/``locator`` once the backend
    confirms the write.
    """

    def __init__(self, filename: str, stream: BinaryIO) -> None:
        self.filename = filename
        self.stream = stream
        self.content_type: Optional[str] = None
        self.stored: Optional[StoredObject] = None

    @property
    def locator(self) -> Optional[str]:
        return self.stored.locator if self.stored else None

    @property
    def closed(self) -> bool:
        return bool(getattr(self.stream, "closed", False))

    def close(self) -> None:
        if not self.closed:
            self.stream.close()

    def __repr__(self) -> str:
        return f"UploadRequest(filename={self.filename!r}, locator={self.locator!r})"
