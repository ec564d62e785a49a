"""POST /api/filters -- distinct values for a dashboard filter dropdown."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from src.api.responses import decode_body, error, reply
from src.kpi.service import RequestRejected, list_filter_options
from src.warehouse.statement_client import StatementClient, get_statement_client
from src.core.errors import (
    ConfigurationError,
    ContractViolation,
    ExecutionError,
    SubmissionError,
)
from src.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

_API = "filters"


@router.post("")
def filter_options_endpoint(
    body: Any = Body(None),
    client: StatementClient = Depends(get_statement_client),
) -> JSONResponse:
    try:
        payload = decode_body(body)
    except ValueError:
        return error(400, "Request body is not valid JSON", api=_API)

    if not isinstance(payload, dict):
        return error(400, "Request body must be a JSON object.", api=_API)

    dimension = payload.get("dimension")
    table = payload.get("table")
    if not isinstance(dimension, str) or not isinstance(table, str):
        return error(400, "Invalid dimension or table requested", api=_API)

    try:
        options = list_filter_options(dimension, table, client)
    except RequestRejected as exc:
        return error(400, " ".join(exc.errors), api=_API)
    except SubmissionError as exc:
        return error(exc.status_code, "Databricks submit failed", api=_API,
                     dbx_msg=exc.message, sql=exc.sql)
    except ExecutionError as exc:
        return error(502, "Query timed out or failed", api=_API, state=exc.state)
    except ConfigurationError as exc:
        return error(500, str(exc), api=_API)
    except ContractViolation as exc:
        logger.exception("Filter options got a malformed warehouse response")
        return error(500, "Internal Server Error", api=_API, details=str(exc))
    except Exception as exc:
        logger.exception("Filter options crashed")
        return error(500, "Internal Server Error", api=_API, details=type(exc).__name__)

    return reply(200, {"ok": True, "options": options}, api=_API)
