"""
JSON envelope helpers shared by the /api routes.

Every /api response is `{ok: ...}` and carries the diagnostic headers the
dashboard reads to tell which handler and build answered.
"""
from __future__ import annotations

import json
from typing import Any

from fastapi.responses import JSONResponse

API_VERSION = "2026-01-15_kpi_request_v1"

DIAGNOSTIC_HEADERS = ("x-mc-api", "x-mc-version")


def api_label(path: str) -> str:
    """`x-mc-api` value for a request path; "gateway" outside the /api routes."""
    for name in ("query", "filters"):
        prefix = f"/api/{name}"
        if path == prefix or path.startswith(prefix + "/"):
            return name
    return "gateway"


def reply(status_code: int, body: dict[str, Any], api: str = "query") -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body,
        headers={"x-mc-api": api, "x-mc-version": API_VERSION},
    )


def error(status_code: int, message: str, api: str = "query", **extra: Any) -> JSONResponse:
    body: dict[str, Any] = {"ok": False, "error": message}
    body.update(extra)
    return reply(status_code, body, api=api)


def decode_body(body: Any) -> Any:
    """Accept a parsed JSON body, or raw text/bytes that hold JSON.

    Raises ValueError when text cannot be decoded.
    """
    if isinstance(body, bytes):
        body = body.decode("utf-8")
    if isinstance(body, str):
        return json.loads(body or "{}")
    if body is None:
        return {}
    return body
