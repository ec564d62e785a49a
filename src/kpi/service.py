"""
KPI query service -- orchestrates validate -> assemble -> safety -> execute -> normalise.

Processing is strictly sequential per request and holds no state between
requests beyond the read-only registry.  Failures surface as exceptions from
`src.core.errors`; the API layer turns each one into a single response.
"""
from __future__ import annotations

from typing import Any

from src.kpi.normalizer import QueryResult, normalize_options, normalize_result
from src.kpi.request import KpiRequest, reference_month
from src.kpi.statement import assemble_options_statement, assemble_statement
from src.governance.kpi_registry import load_kpi_registry, KpiRegistry
from src.governance.sql_safety import check_sql_safety
from src.governance.validator import validate_request
from src.warehouse.statement_client import StatementClient, StatementJob, TIMED_OUT
from src.core.config import get_settings
from src.core.errors import ExecutionError, UnsafeStatementError
from src.core.logging import get_logger
from src.core.utils import timer

logger = get_logger(__name__)


class RequestRejected(ValueError):
    """The request failed validation; nothing was sent to the warehouse."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class KpiQueryResult:
    def __init__(
        self,
        request: KpiRequest,
        sql: str,
        job: StatementJob,
        result: QueryResult,
        max_month: str,
        elapsed_ms: int = 0,
    ):
        self.request = request
        self.sql = sql
        self.job = job
        self.result = result
        self.max_month = max_month
        self.elapsed_ms = elapsed_ms

    @property
    def raw_result(self) -> Any:
        return self.job.payload.get("result")

    @property
    def meta(self) -> dict[str, Any]:
        return {
            "sql": self.sql,
            "kpi": self.request.kpi,
            "group_by": self.request.group_by.value,
            "scope": self.request.scope.value,
            "max_month": self.max_month,
            "statement_id": self.job.statement_id,
            "elapsed_ms": self.elapsed_ms,
        }


def build_statement(req: KpiRequest, registry: KpiRegistry | None = None) -> str:
    """Validate *req* and return safety-checked SQL without contacting the warehouse."""
    if registry is None:
        registry = load_kpi_registry()

    errors = validate_request(req, registry)
    if errors:
        raise RequestRejected(errors)

    sql = assemble_statement(req, registry)
    violations = check_sql_safety(sql, registry)
    if violations:
        raise UnsafeStatementError(violations)
    return sql


def _finished_job(client: StatementClient, sql: str) -> StatementJob:
    job = client.execute(sql)
    if job.state == TIMED_OUT:
        raise ExecutionError(TIMED_OUT, sql, "Query timed out")
    if not job.succeeded:
        raise ExecutionError(job.state, sql, job.error_message)
    return job


def run_kpi_query(
    req: KpiRequest,
    client: StatementClient,
    registry: KpiRegistry | None = None,
) -> KpiQueryResult:
    """End-to-end: validated request -> executed statement -> normalised rows.

    Raises
    ------
    RequestRejected
        Unknown KPI or unsupported contract version.
    SubmissionError
        The warehouse refused the statement.
    ExecutionError
        The statement FAILED / was CANCELED, or the local deadline passed.
    ContractViolation
        SUCCEEDED but the result payload was missing or malformed.
    """
    logger.info("KPI query | kpi=%s | group_by=%s | scope=%s",
                req.kpi, req.group_by.value, req.scope.value)

    with timer() as t:
        sql = build_statement(req, registry)
        job = _finished_job(client, sql)
        result = normalize_result(job.payload)

    logger.info("KPI query done | kpi=%s | rows=%d | %d ms",
                req.kpi, len(result.rows), t["elapsed_ms"])
    return KpiQueryResult(
        request=req,
        sql=sql,
        job=job,
        result=result,
        max_month=reference_month(req, get_settings().default_max_month),
        elapsed_ms=t["elapsed_ms"],
    )


def list_filter_options(
    dimension: str,
    table: str,
    client: StatementClient,
    registry: KpiRegistry | None = None,
) -> list[dict[str, str]]:
    """Distinct non-null values of an allowlisted column, for dropdowns."""
    if registry is None:
        registry = load_kpi_registry()

    try:
        sql = assemble_options_statement(dimension, table, registry)
    except ValueError as exc:
        raise RequestRejected([str(exc)]) from exc

    violations = check_sql_safety(sql, registry, max_rows=registry.options.max_rows)
    if violations:
        raise UnsafeStatementError(violations)

    job = _finished_job(client, sql)
    options = normalize_options(job.payload)
    logger.info("Filter options | %s.%s | %d values", table, dimension, len(options))
    return options
