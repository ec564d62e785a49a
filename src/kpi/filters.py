"""
Filter compiler -- turns a KpiRequest into an ordered list of WHERE predicates.

Predicates are emitted in a fixed order so the generated SQL is deterministic:
  1. time scope (MTD equality / YTD range on the calendar column)
  2. AO segment exclusion, unless include_ao is literally true
  3. one IN (...) per non-empty dimension filter
  4. channel filter on a KPI without a channel column -> always-false predicate

Column names always come from the registry; caller values are always quoted.
"""
from __future__ import annotations

from src.kpi.request import KpiFilters, KpiRequest, Scope, reference_month
from src.governance.kpi_registry import KpiDescriptor, KpiRegistry
from src.core.config import get_settings

# Request filter key -> registry dimension name, in emission order
_FILTER_DIMENSIONS: tuple[tuple[str, str], ...] = (
    ("megabrand", "megabrand"),
    ("region", "region"),
    ("state", "state"),
    ("wholesaler_id", "wholesaler"),
    ("channel", "channel"),
)

ALWAYS_FALSE = "1 = 0"


def quote_literal(value: str) -> str:
    """Wrap *value* in single quotes, doubling any embedded quote."""
    return "'" + value.replace("'", "''") + "'"


def unquote_literal(literal: str) -> str:
    """Inverse of `quote_literal`."""
    if len(literal) < 2 or literal[0] != "'" or literal[-1] != "'":
        raise ValueError(f"Not a quoted SQL literal: {literal!r}")
    return literal[1:-1].replace("''", "'")


def time_scope_predicate(column: str, scope: Scope, month: str) -> str:
    if scope == Scope.MTD:
        return f"{column} = {int(month)}"
    year_start = int(month[:4] + "01")
    return f"{column} BETWEEN {year_start} AND {int(month)}"


def compile_filters(
    req: KpiRequest,
    kpi: KpiDescriptor,
    registry: KpiRegistry,
) -> list[str]:
    """Return the WHERE predicates for *req*, each safe to join with AND."""
    filters = req.filters or KpiFilters()
    month = reference_month(req, get_settings().default_max_month)

    predicates = [time_scope_predicate(registry.time_column, req.scope, month)]

    if not filters.includes_excluded_segment:
        seg = registry.segment
        predicates.append(f"{seg.column} <> {quote_literal(seg.excluded_value)}")

    for filter_key, dim_name in _FILTER_DIMENSIONS:
        values = filters.values_for(filter_key)
        if not values:
            continue
        if dim_name == "channel" and not kpi.has_channel_dimension:
            predicates.append(ALWAYS_FALSE)
            continue
        column = registry.dimension_column(dim_name)
        if column is None:
            raise ValueError(f"Registry has no column for dimension '{dim_name}'")
        listed = ", ".join(quote_literal(v) for v in values)
        predicates.append(f"{column} IN ({listed})")

    return predicates
