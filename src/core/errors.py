"""
Exception types raised by the query pipeline.

Routers translate each of these into exactly one JSON response; nothing
below the API layer knows about HTTP status codes except `SubmissionError`,
which carries the upstream status so it can be mirrored.
"""
from __future__ import annotations


class QueryServiceError(Exception):
    """Base class for pipeline failures."""


class ConfigurationError(QueryServiceError):
    """Warehouse host, token or warehouse id is not configured."""


class SubmissionError(QueryServiceError):
    """The statement service rejected the submit call (non-2xx)."""

    def __init__(self, status_code: int, message: str | None, sql: str):
        super().__init__(f"Statement submission failed with HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.sql = sql


class ExecutionError(QueryServiceError):
    """The statement finished in a non-success state, or we stopped waiting."""

    def __init__(self, state: str, sql: str, message: str | None = None):
        super().__init__(f"Statement ended in state {state}")
        self.state = state
        self.sql = sql
        self.message = message


class ContractViolation(QueryServiceError):
    """The statement service answered with a payload we cannot interpret."""


class UnsafeStatementError(QueryServiceError):
    """An assembled statement failed the deterministic safety gate."""

    def __init__(self, violations: list[str]):
        super().__init__("; ".join(violations))
        self.violations = violations
