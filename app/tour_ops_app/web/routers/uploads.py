from __future__ import annotations

from fastapi import Request

from tour_ops_app.core.env import TOUROPS_IMPORT_MAX_UPLOAD_BYTES, get_env_int
from tour_ops_app.web.http.errors import ERROR_CODE_PAYLOAD_TOO_LARGE, ApiError

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def max_upload_bytes() -> int:
    return get_env_int(TOUROPS_IMPORT_MAX_UPLOAD_BYTES, default=DEFAULT_MAX_UPLOAD_BYTES, min_value=1024)


def _check_size(raw_bytes: bytes) -> bytes:
    limit = max_upload_bytes()
    if len(raw_bytes) > limit:
        raise ApiError(
            status_code=413,
            code=ERROR_CODE_PAYLOAD_TOO_LARGE,
            message=f"Upload exceeds the {limit} byte limit.",
            details={"size": len(raw_bytes), "limit": limit},
        )
    return raw_bytes


async def read_upload_bytes(request: Request) -> tuple[bytes, str]:
    """Body of a multipart ``file`` field, or the raw request body for any other content type."""
    content_type = str(request.headers.get("content-type", "")).lower()
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("file")
        if upload is None or not hasattr(upload, "read"):
            raise ValueError("Upload a file in the 'file' field.")
        return _check_size(await upload.read()), str(getattr(upload, "filename", "") or "").strip()
    return _check_size(await request.body()), ""
