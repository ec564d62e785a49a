"""
Submit-then-poll client for the asynchronous SQL statement service.

The remote service answers a submit call immediately with a statement id and
a state; the work completes out of band.  `StatementClient.execute`:
  1. POSTs the statement once (no retries; submit is not idempotent)
  2. Polls the statement at a fixed interval until the state is terminal
     or the local deadline passes (-> TIMED_OUT)

The local deadline only bounds how long we wait.  A timed-out statement is
not cancelled remotely.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Generator

import httpx

from src.core.config import get_settings, Settings
from src.core.errors import ConfigurationError, ContractViolation, SubmissionError
from src.core.logging import get_logger
from src.warehouse.connection import build_http_client

logger = get_logger(__name__)

STATEMENTS_PATH = "/api/2.0/sql/statements"

PENDING = "PENDING"
RUNNING = "RUNNING"
SUCCEEDED = "SUCCEEDED"
FAILED = "FAILED"
CANCELED = "CANCELED"
CLOSED = "CLOSED"
TIMED_OUT = "TIMED_OUT"  # local only, never reported by the service

TERMINAL_STATES = frozenset({SUCCEEDED, FAILED, CANCELED})


def _state_of(payload: Any) -> str:
    status = payload.get("status") if isinstance(payload, dict) else None
    state = status.get("state") if isinstance(status, dict) else None
    return str(state) if state else PENDING


def _json_or_empty(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


@dataclass
class StatementJob:
    """One submitted statement and its last-known status."""

    statement_id: str | None
    state: str
    deadline: float
    payload: dict[str, Any] = field(default_factory=dict)
    polls: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def succeeded(self) -> bool:
        return self.state == SUCCEEDED

    @property
    def error_message(self) -> str | None:
        status = self.payload.get("status") or {}
        error = status.get("error") if isinstance(status, dict) else None
        if isinstance(error, dict):
            return error.get("message")
        return None

    def expired(self, now: float) -> bool:
        return now >= self.deadline

    def advance(self, payload: dict[str, Any]) -> None:
        """Replace the last-known status with a fresh poll response."""
        self.payload = payload
        self.state = _state_of(payload)
        self.polls += 1

    def time_out(self) -> None:
        self.state = TIMED_OUT


class StatementClient:
    """Drives the submit/poll protocol for one warehouse."""

    def __init__(
        self,
        host: str,
        token: str,
        warehouse_id: str,
        poll_interval: float = 0.35,
        timeout: float = 15.0,
        http_timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.host = host
        self.warehouse_id = warehouse_id
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._token = token
        self._http_timeout = http_timeout
        self._transport = transport
        self._sleep = sleep
        self._clock = clock
        self._http: httpx.Client | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides: Any) -> "StatementClient":
        settings = settings or get_settings()
        kwargs: dict[str, Any] = dict(
            host=settings.databricks_host,
            token=settings.databricks_token,
            warehouse_id=settings.warehouse_id,
            poll_interval=settings.poll_interval_seconds,
            timeout=settings.poll_timeout_seconds,
            http_timeout=settings.http_timeout_seconds,
        )
        kwargs.update(overrides)
        return cls(**kwargs)

    @property
    def configured(self) -> bool:
        return bool(self.host and self._token and self.warehouse_id)

    @property
    def http(self) -> httpx.Client:
        if self._http is None:
            if not self.configured:
                raise ConfigurationError("Server missing Databricks credentials")
            self._http = build_http_client(
                self.host, self._token, self._http_timeout, transport=self._transport,
            )
        return self._http

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            self._http = None

    # ── Protocol ─────────────────────────────────────

    def submit(self, sql: str) -> StatementJob:
        """Submit *sql* once and return the job with its initial status.

        Raises
        ------
        SubmissionError
            If the service answers with a non-2xx status.  No polling happens.
        ContractViolation
            If a non-terminal answer carries no statement id.
        """
        deadline = self._clock() + self.timeout
        resp = self.http.post(
            STATEMENTS_PATH,
            json={"statement": sql, "warehouse_id": self.warehouse_id},
        )
        body = _json_or_empty(resp)

        if not resp.is_success:
            message = body.get("message") or resp.text or None
            logger.warning("Statement submit failed  status=%d  msg=%s", resp.status_code, message)
            raise SubmissionError(resp.status_code, message, sql)

        job = StatementJob(
            statement_id=body.get("statement_id"),
            state=_state_of(body),
            deadline=deadline,
            payload=body,
        )
        if not job.statement_id and not job.is_terminal:
            raise ContractViolation("No statement_id returned")

        logger.info("Statement submitted  id=%s  state=%s", job.statement_id, job.state)
        return job

    def poll(self, job: StatementJob) -> StatementJob:
        """Poll *job* until it is terminal or its deadline passes."""
        while not job.is_terminal:
            now = self._clock()
            if job.expired(now):
                logger.warning(
                    "Statement %s still %s at deadline after %d polls -- giving up",
                    job.statement_id, job.state, job.polls,
                )
                job.time_out()
                break

            self._sleep(min(self.poll_interval, job.deadline - now))

            # A status fetch may not outlive the deadline either.
            remaining = max(job.deadline - self._clock(), 0.001)
            try:
                resp = self.http.get(f"{STATEMENTS_PATH}/{job.statement_id}", timeout=remaining)
            except httpx.TimeoutException:
                if not job.expired(self._clock()):
                    raise
                logger.warning("Status fetch for %s ran into the deadline", job.statement_id)
                job.time_out()
                break
            resp.raise_for_status()
            job.advance(_json_or_empty(resp))
            logger.debug("Poll %d  id=%s  state=%s", job.polls, job.statement_id, job.state)

        logger.info("Statement %s finished  state=%s  polls=%d", job.statement_id, job.state, job.polls)
        return job

    def execute(self, sql: str) -> StatementJob:
        return self.poll(self.submit(sql))


def get_statement_client() -> Generator[StatementClient, None, None]:
    """FastAPI dependency: a client for the configured warehouse, closed after the request."""
    client = StatementClient.from_settings()
    try:
        yield client
    finally:
        client.close()
