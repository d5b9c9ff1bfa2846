import os
from fastapi import HTTPException, Request


MAX_UPLOAD_MB = int(os.environ.get("MAX_UPLOAD_MB", "20"))


async def enforce_max_upload_size(request: Request) -> None:
    cl = request.headers.get("content-length")
    if not cl:
        return
    try:
        size = int(cl)
    except ValueError:
        return
    if size > MAX_UPLOAD_MB * 1024 * 1024:
        raise HTTPException(status_code=413, detail="Upload too large")


def parse_json_list(raw: str | None, field: str) -> list[str] | None:
    """Decode a JSON string array sent as a multipart form field."""
    import json

    if raw is None or raw == "":
        return None
    try:
        value = json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Field '{field}' must be a JSON array")
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise HTTPException(status_code=400, detail=f"Field '{field}' must be a JSON array of strings")
    return value
