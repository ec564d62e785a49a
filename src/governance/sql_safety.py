"""
Deterministic SQL safety checks.

These checks are the final gate before a statement is submitted to the
warehouse.  They operate purely on the SQL text and the KPI registry.
Quoted string literals are blanked out first, so caller-supplied filter
values (which may legitimately contain "--" or "DROP") never trip a check.

Checks performed:
  1. SQL must be a single SELECT statement (no DDL / DML / multi-statement)
  2. No SELECT *
  3. No dangerous keywords (DROP, ALTER, TRUNCATE, INSERT, UPDATE, DELETE, GRANT …)
  4. No comments (--, /*)
  5. Only registry tables may appear after FROM
  6. LIMIT must be present and ≤ the row cap for this kind of statement
"""
from __future__ import annotations

import re

from src.governance.kpi_registry import load_kpi_registry, KpiRegistry
from src.core.logging import get_logger

logger = get_logger(__name__)

# ── Compiled patterns ────────────────────────────────────

_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")

_DANGEROUS_KW = re.compile(
    r"\b(DROP|ALTER|TRUNCATE|INSERT|UPDATE|DELETE|MERGE|GRANT|REVOKE|"
    r"CREATE|REPLACE|EXECUTE|EXEC|CALL|COPY|SET\s+ROLE|RESET\s+ROLE)\b",
    re.IGNORECASE,
)

_MULTI_STMT = re.compile(r";\s*\S")  # semicolon followed by non-whitespace

_COMMENT_INLINE = re.compile(r"--")
_COMMENT_BLOCK = re.compile(r"/\*")

_SELECT_STAR = re.compile(r"\bSELECT\s+\*", re.IGNORECASE)

_LIMIT_RE = re.compile(r"\bLIMIT\s+(\d+)", re.IGNORECASE)

_FROM_RE = re.compile(r"\bFROM\s+([\w.]+)", re.IGNORECASE)


def strip_literals(sql: str) -> str:
    """Replace every quoted literal with an empty one ('')."""
    return _STRING_LITERAL.sub("''", sql)


def check_sql_safety(
    sql: str,
    registry: KpiRegistry | None = None,
    max_rows: int | None = None,
) -> list[str]:
    """Return a list of safety violations (empty list = safe).

    *max_rows* caps the LIMIT; it defaults to the KPI statement cap.  Options
    statements pass ``registry.options.max_rows``.
    """
    if registry is None:
        registry = load_kpi_registry()
    if max_rows is None:
        max_rows = registry.max_rows

    errors: list[str] = []
    bare = strip_literals(sql.strip())

    if not bare.upper().startswith("SELECT"):
        errors.append("SQL must be a SELECT statement.")

    if _MULTI_STMT.search(bare):
        errors.append("Multi-statement SQL is not allowed (found ';' followed by another statement).")

    if _SELECT_STAR.search(bare):
        errors.append("SELECT * is not allowed. Specify explicit columns.")

    m = _DANGEROUS_KW.search(bare)
    if m:
        errors.append(f"Dangerous keyword detected: '{m.group(1).upper()}'.")

    if _COMMENT_INLINE.search(bare):
        errors.append("Inline comments (--) are not allowed.")
    if _COMMENT_BLOCK.search(bare):
        errors.append("Block comments (/* */) are not allowed.")

    allowed = {t.lower() for t in registry.allowed_tables}
    for ref in _FROM_RE.findall(bare):
        if ref.lower() not in allowed:
            errors.append(f"Table '{ref}' is not in the allowed tables list.")

    limit_match = _LIMIT_RE.search(bare)
    if not limit_match:
        errors.append(f"SQL must include a LIMIT clause (max {max_rows}).")
    elif int(limit_match.group(1)) > max_rows:
        errors.append(
            f"LIMIT {limit_match.group(1)} exceeds maximum allowed ({max_rows})."
        )

    if errors:
        logger.warning("SQL safety violations: %s", errors)
    return errors
