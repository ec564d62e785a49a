"""
Statement assembler -- turns a validated KpiRequest into one aggregate SELECT.

The assembler reads the dataset, value columns, aggregation and grouping
columns entirely from the KPI registry.  It never invents its own table
references, and it never emits joins or more than one statement.

Output columns are always (dimension, value_cy, value_ly), which is the
column order the result normalizer relies on.
"""
from __future__ import annotations

from src.kpi.filters import compile_filters
from src.kpi.request import GroupBy, KpiRequest
from src.governance.kpi_registry import KpiDescriptor, KpiRegistry, load_kpi_registry
from src.core.logging import get_logger

logger = get_logger(__name__)

TOTAL_LABEL = "Total"
ALL_CHANNELS_LABEL = "All Channels"


def _grouping(
    group_by: GroupBy,
    kpi: KpiDescriptor,
    registry: KpiRegistry,
) -> tuple[str, str | None, str | None]:
    """Return (dimension expression, GROUP BY column, ORDER BY clause)."""
    if group_by == GroupBy.TIME:
        col = registry.time_column
        return col, col, f"{col} ASC"

    if group_by == GroupBy.TOTAL:
        return f"'{TOTAL_LABEL}'", None, None

    if group_by == GroupBy.CHANNEL and not kpi.has_channel_dimension:
        return f"'{ALL_CHANNELS_LABEL}'", None, None

    if group_by == GroupBy.WHOLESALER:
        col = kpi.geography_column
    else:
        col = registry.dimension_column(group_by.value)
        if col is None:
            raise ValueError(f"Registry has no column for dimension '{group_by.value}'")
    return col, col, "value_cy DESC"


def assemble_statement(req: KpiRequest, registry: KpiRegistry | None = None) -> str:
    """Build the aggregate SQL for *req*.

    Raises
    ------
    ValueError
        If the KPI is not registered.
    """
    if registry is None:
        registry = load_kpi_registry()

    kpi = registry.resolve(req.kpi)
    if kpi is None:
        raise ValueError(f"Unknown KPI '{req.kpi}'")

    dimension_expr, group_col, order_clause = _grouping(req.group_by, kpi, registry)
    predicates = compile_filters(req, kpi, registry)

    agg = kpi.aggregation
    select_parts = [
        f"{dimension_expr} AS dimension",
        f"{agg}({kpi.current_column}) AS value_cy",
        f"{agg}({kpi.prior_column}) AS value_ly",
    ]

    sql_lines: list[str] = ["SELECT"]
    sql_lines.append("  " + ",\n  ".join(select_parts))
    sql_lines.append(f"FROM {kpi.dataset}")
    sql_lines.append("WHERE " + "\n  AND ".join(predicates))
    if group_col:
        sql_lines.append(f"GROUP BY {group_col}")
    if order_clause:
        sql_lines.append(f"ORDER BY {order_clause}")
    sql_lines.append(f"LIMIT {registry.max_rows}")

    sql = "\n".join(sql_lines)
    logger.info("Generated SQL:\n%s", sql)
    return sql


def assemble_options_statement(
    dimension: str,
    table: str,
    registry: KpiRegistry | None = None,
) -> str:
    """Build the DISTINCT query that feeds a filter dropdown.

    Both identifiers must be on the registry's options allowlist.
    """
    if registry is None:
        registry = load_kpi_registry()

    opts = registry.options
    if dimension not in opts.columns or table not in opts.tables:
        raise ValueError("Invalid dimension or table requested")

    sql = "\n".join([
        f"SELECT DISTINCT {dimension} AS label",
        f"FROM {opts.schema}.{table}",
        f"WHERE {dimension} IS NOT NULL",
        f"ORDER BY {dimension} ASC",
        f"LIMIT {opts.max_rows}",
    ])
    logger.info("Generated options SQL:\n%s", sql)
    return sql
