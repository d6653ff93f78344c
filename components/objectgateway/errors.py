from __future__ import annotations

from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base class for object gateway errors.

    Carries the operation / bucket / key the failure relates to so it can be
    logged meaningfully. ``type``/``code``/``status_code`` describe how the
    HTTP boundary reports the error kind.
    """

    type: str = "INTERNAL"
    code: str = "GATEWAY_INTERNAL"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        op: Optional[str] = None,
        bucket: Optional[str] = None,
        key: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.op = op
        self.bucket = bucket
        self.key = key

    def context(self) -> Dict[str, Any]:
        return {k: v for k, v in (("op", self.op), ("bucket", self.bucket), ("key", self.key)) if v is not None}


# ---------- Local validation (never reaches the backend) ----------

class ValidationFailed(GatewayError):
    type = "VALIDATION"
    code = "GATEWAY_VALIDATION"
    status_code = 400


class InvalidBucketName(ValidationFailed):
    code = "INVALID_BUCKET_NAME"

    def __init__(self, name: str, rule: str, detail: str) -> None:
        super().__init__(f"invalid bucket name {name!r}: {detail}", bucket=name)
        self.rule = rule

    def context(self) -> Dict[str, Any]:
        ctx = super().context()
        ctx["rule"] = self.rule
        return ctx


class UnsupportedMediaType(ValidationFailed):
    code = "UNSUPPORTED_MEDIA_TYPE"
    status_code = 415

    def __init__(self, **ctx: Any) -> None:
        # Same message whatever the detected type was.
        super().__init__("unsupported media type", **ctx)


class UnseekableStream(ValidationFailed):
    code = "UNSEEKABLE_STREAM"


class InvalidRequest(ValidationFailed):
    code = "INVALID_REQUEST"


# ---------- Backend outcomes ----------

class BucketAlreadyExists(GatewayError):
    type = "CONFLICT"
    code = "BUCKET_ALREADY_EXISTS"
    status_code = 409


class BucketNotEmpty(GatewayError):
    type = "CONFLICT"
    code = "BUCKET_NOT_EMPTY"
    status_code = 409


class NotFound(GatewayError):
    type = "NOT_FOUND"
    code = "NOT_FOUND"
    status_code = 404


class BucketNotFound(NotFound):
    code = "BUCKET_NOT_FOUND"


class ObjectNotFound(NotFound):
    code = "OBJECT_NOT_FOUND"


class OperationTimeout(GatewayError):
    """Deadline exceeded. The backend write may or may not have happened."""

    type = "TIMEOUT"
    code = "OPERATION_TIMEOUT"
    status_code = 504


class UpstreamError(GatewayError):
    """Backend rejected the call for a reason with no dedicated kind."""

    type = "UPSTREAM"
    code = "GATEWAY_UPSTREAM"
    status_code = 502


class BackendUnavailable(UpstreamError):
    """Transport or connection failure talking to the backend."""

    code = "BACKEND_UNAVAILABLE"
    status_code = 503
