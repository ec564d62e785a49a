"""
Reshape the statement service's JSON_ARRAY result into typed rows.

The service returns every cell as a string (or null), in SELECT order.  KPI
statements always select (dimension, value_cy, value_ly).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.core.errors import ContractViolation


@dataclass(frozen=True)
class ResultRow:
    dimension: str
    current_value: float | None
    prior_value: float | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "dimension": self.dimension,
            "current_value": self.current_value,
            "prior_value": self.prior_value,
        }


@dataclass(frozen=True)
class QueryResult:
    rows: list[ResultRow] = field(default_factory=list)


def _to_number(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ContractViolation(f"Expected a numeric cell, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ContractViolation(f"Expected a numeric cell, got {value!r}") from exc


def _data_array(payload: dict[str, Any] | None) -> list[Any]:
    """Pull `result.data_array` out of a SUCCEEDED payload."""
    result = payload.get("result") if isinstance(payload, dict) else None
    if not isinstance(result, dict):
        raise ContractViolation("SUCCEEDED statement carried no result payload")

    data = result.get("data_array")
    if data is None and result.get("row_count") == 0:
        return []
    if not isinstance(data, list):
        raise ContractViolation("Result payload has no data_array")
    return data


def normalize_result(payload: dict[str, Any] | None) -> QueryResult:
    """Map a SUCCEEDED statement payload onto QueryResult; all rows or nothing."""
    rows: list[ResultRow] = []
    for i, raw in enumerate(_data_array(payload)):
        if not isinstance(raw, (list, tuple)) or len(raw) < 3:
            raise ContractViolation(f"Result row {i} does not have 3 columns")
        dimension = "" if raw[0] is None else str(raw[0])
        rows.append(ResultRow(dimension, _to_number(raw[1]), _to_number(raw[2])))
    return QueryResult(rows=rows)


def normalize_options(payload: dict[str, Any] | None) -> list[dict[str, str]]:
    """Map a DISTINCT-label result onto dropdown options."""
    options: list[dict[str, str]] = []
    for i, raw in enumerate(_data_array(payload)):
        if not isinstance(raw, (list, tuple)) or not raw:
            raise ContractViolation(f"Result row {i} is empty")
        label = "" if raw[0] is None else str(raw[0])
        options.append({"label": label, "value": label})
    return options
