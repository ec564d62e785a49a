"""
KpiRequest -- the versioned JSON contract posted by the dashboard.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

CONTRACT_VERSION = "kpi_request.v1"

_MONTH_RE = re.compile(r"^\d{4}(0[1-9]|1[0-2])$")


class GroupBy(str, Enum):
    TIME = "time"
    MEGABRAND = "megabrand"
    REGION = "region"
    STATE = "state"
    WHOLESALER = "wholesaler"
    CHANNEL = "channel"
    TOTAL = "total"


class Scope(str, Enum):
    MTD = "MTD"
    YTD = "YTD"


class KpiFilters(BaseModel):
    """Dimension -> allowed values, plus the AO segment toggle."""

    model_config = ConfigDict(extra="ignore")

    megabrand: list[str] | None = None
    region: list[str] | None = None
    state: list[str] | None = None
    wholesaler_id: list[str] | None = None
    channel: list[str] | None = None
    # Left untyped: only a literal JSON `true` opts in, anything else excludes.
    include_ao: Any = None

    @property
    def includes_excluded_segment(self) -> bool:
        return self.include_ao is True

    def values_for(self, name: str) -> list[str]:
        return list(getattr(self, name) or [])


class KpiRequest(BaseModel):
    """Parsed `kpi_request.v1` body."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    contract_version: str = Field(CONTRACT_VERSION, description="Must be 'kpi_request.v1'")
    kpi: str = Field(..., min_length=1, description="Registered KPI key, e.g. 'volume'")
    group_by: GroupBy = Field(GroupBy.TIME, alias="groupBy")
    scope: Scope = Field(Scope.YTD)
    max_month: str | int | None = Field(None, description="Reference month as YYYYMM")
    filters: KpiFilters | None = None


def is_valid_month(token: Any) -> bool:
    return isinstance(token, str) and bool(_MONTH_RE.match(token))


def reference_month(req: KpiRequest, default: str) -> str:
    """Return the request's YYYYMM month, or *default* when absent or malformed."""
    token = req.max_month
    if isinstance(token, int) and not isinstance(token, bool):
        token = str(token)
    if is_valid_month(token):
        return token  # type: ignore[return-value]
    return default
