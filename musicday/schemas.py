"""Shared response envelope"""

from typing import Any

from fastapi.encoders import jsonable_encoder


def ok(data: Any = None) -> dict:
    """Wrap a successful result as {success: true, data}"""
    return {"success": True, "data": jsonable_encoder(data)}


def fail(message: str) -> dict:
    return {"success": False, "error": message}
