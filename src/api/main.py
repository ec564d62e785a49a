"""
FastAPI application entry-point.
"""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.responses import DIAGNOSTIC_HEADERS, api_label, error
from src.api.routers import catalog, filters, query
from src.core.config import get_settings

app = FastAPI(
    title="KPI Query Gateway",
    version="0.1.0",
    description="Compiles dashboard KPI requests to SQL and runs them on a Databricks SQL warehouse",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allowed_origins,
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", *DIAGNOSTIC_HEADERS],
    expose_headers=[*DIAGNOSTIC_HEADERS, "x-mc-origin", "Content-Length"],
    max_age=86400,
)

app.include_router(query.router, prefix="/api/query", tags=["Query"])
app.include_router(filters.router, prefix="/api/filters", tags=["Filters"])
app.include_router(catalog.router, tags=["Catalog"])


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = "Method not allowed" if exc.status_code == 405 else str(exc.detail)
    return error(exc.status_code, message, api=api_label(request.url.path))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error(400, "Request body is not valid JSON", api=api_label(request.url.path))


@app.get("/health")
def health():
    return {"status": "ok"}
