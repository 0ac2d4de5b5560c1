from typing import Any

from fastapi.encoders import jsonable_encoder


def ok(data: Any = None, **extra: Any) -> dict:
    """Success envelope shared by all routers: ``{"success": true, ..., "data": ...}``."""
    body = {"success": True, **jsonable_encoder(extra)}
    if data is not None:
        body["data"] = jsonable_encoder(data)
    return body
