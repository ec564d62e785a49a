"""POST /api/query -- compile a kpi_request.v1 body, run it, return rows."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from src.api.responses import API_VERSION, decode_body, error, reply
from src.kpi.service import RequestRejected, run_kpi_query
from src.governance.validator import parse_request
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


@router.get("")
def query_status() -> JSONResponse:
    """Transport check for browsers: GET never touches the warehouse."""
    return reply(200, {
        "ok": True,
        "status": "operational",
        "version": API_VERSION,
        "note": "Use POST to query KPIs",
    })


@router.post("")
def query_endpoint(
    body: Any = Body(None),
    client: StatementClient = Depends(get_statement_client),
) -> JSONResponse:
    """Full pipeline: body -> validate -> SQL -> submit -> poll -> rows."""
    try:
        payload = decode_body(body)
    except ValueError:
        return error(400, "Request body is not valid JSON")

    if isinstance(payload, dict) and payload.get("ping") is True:
        return reply(200, {"ok": True, "mode": "ping", "version": API_VERSION})

    req, errors = parse_request(payload)
    if req is None:
        return error(400, " ".join(errors))

    try:
        outcome = run_kpi_query(req, client)
    except RequestRejected as exc:
        return error(400, " ".join(exc.errors))
    except SubmissionError as exc:
        return error(
            exc.status_code, "Databricks submit failed",
            dbx_msg=exc.message, sql=exc.sql,
        )
    except ExecutionError as exc:
        return error(
            502, "Query timed out or failed",
            state=exc.state, dbx_msg=exc.message, sql=exc.sql,
        )
    except ConfigurationError as exc:
        return error(500, str(exc), version=API_VERSION)
    except ContractViolation as exc:
        logger.exception("KPI query got a malformed warehouse response")
        return error(500, "Internal Server Error", details=str(exc))
    except Exception as exc:
        logger.exception("KPI query crashed")
        return error(500, "Internal Server Error", details=type(exc).__name__)

    return reply(200, {
        "ok": True,
        "result": outcome.raw_result,
        "rows": [r.to_dict() for r in outcome.result.rows],
        "version": API_VERSION,
        "meta": outcome.meta,
    })
