"""
Loads, parses, and caches the KPI registry YAML into strongly-typed objects.

The registry is the single source of truth for:
  - registered KPIs   (dataset, value column, aggregation, channel support)
  - dimension columns (request dimension -> backing column)
  - the calendar and segment-exclusion columns
  - the tables/columns the filter-options endpoint may read
  - the row cap appended to every statement

Every identifier that ends up in generated SQL comes from here, never from
the caller.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Mapping

import yaml

_REGISTRY_PATH = Path(__file__).resolve().parents[2] / "semantic_layer" / "kpi_registry.yml"

_AGGREGATIONS = ("SUM", "AVG")


# ── Typed domain objects ─────────────────────────────────

@dataclass(frozen=True)
class KpiDescriptor:
    key: str
    dataset: str
    value_column: str
    aggregation: str  # SUM | AVG
    has_channel_dimension: bool
    geography_column: str
    description: str = ""

    @property
    def current_column(self) -> str:
        return f"{self.value_column}_CY"

    @property
    def prior_column(self) -> str:
        return f"{self.value_column}_LY"


@dataclass(frozen=True)
class SegmentRule:
    column: str = "sgmnt_cd"
    excluded_value: str = "AO"


@dataclass(frozen=True)
class OptionsRules:
    schema: str = ""
    columns: tuple[str, ...] = ()
    tables: tuple[str, ...] = ()
    max_rows: int = 2000


@dataclass(frozen=True)
class KpiRegistry:
    """Fully parsed, read-only KPI registry."""

    version: int
    kpis: Mapping[str, KpiDescriptor]
    dimensions: Mapping[str, str]
    time_column: str
    segment: SegmentRule = field(default_factory=SegmentRule)
    options: OptionsRules = field(default_factory=OptionsRules)
    max_rows: int = 1000

    # ── Convenience look-ups ─────────────────────────

    def resolve(self, key: str) -> KpiDescriptor | None:
        """Exact, case-sensitive KPI lookup."""
        return self.kpis.get(key)

    def dimension_column(self, name: str) -> str | None:
        return self.dimensions.get(name)

    def get_kpi_names(self) -> list[str]:
        return list(self.kpis.keys())

    @property
    def allowed_tables(self) -> set[str]:
        """Every fully-qualified table a generated statement may read."""
        tables = {k.dataset for k in self.kpis.values()}
        tables.update(f"{self.options.schema}.{t}" for t in self.options.tables)
        return tables


# ── Parsing ──────────────────────────────────────────────

def _parse_kpi(raw: dict[str, Any]) -> KpiDescriptor:
    aggregation = str(raw.get("aggregation", "SUM")).upper()
    if aggregation not in _AGGREGATIONS:
        raise ValueError(f"KPI '{raw['key']}' has unsupported aggregation '{aggregation}'")
    return KpiDescriptor(
        key=raw["key"],
        dataset=raw["dataset"],
        value_column=raw["value_column"],
        aggregation=aggregation,
        has_channel_dimension=bool(raw.get("has_channel_dimension", False)),
        geography_column=raw["geography_column"],
        description=raw.get("description", ""),
    )


def _parse_options(raw: dict[str, Any] | None) -> OptionsRules:
    if not raw:
        return OptionsRules()
    return OptionsRules(
        schema=raw.get("schema", ""),
        columns=tuple(raw.get("columns") or ()),
        tables=tuple(raw.get("tables") or ()),
        max_rows=raw.get("max_rows", 2000),
    )


def _parse_registry(raw_yaml: dict[str, Any]) -> KpiRegistry:
    kpis = {k["key"]: _parse_kpi(k) for k in raw_yaml.get("kpis", [])}
    segment_raw = raw_yaml.get("segment") or {}
    security = raw_yaml.get("security") or {}
    return KpiRegistry(
        version=raw_yaml.get("version", 1),
        kpis=MappingProxyType(kpis),
        dimensions=MappingProxyType(dict(raw_yaml.get("dimensions") or {})),
        time_column=raw_yaml.get("time_column", "cal_yr_mo_nbr"),
        segment=SegmentRule(
            column=segment_raw.get("column", "sgmnt_cd"),
            excluded_value=segment_raw.get("excluded_value", "AO"),
        ),
        options=_parse_options(raw_yaml.get("options")),
        max_rows=security.get("max_rows", 1000),
    )


# ── Public API ───────────────────────────────────────────

@lru_cache
def load_kpi_registry() -> KpiRegistry:
    """Load and cache the KPI registry from YAML."""
    with open(_REGISTRY_PATH) as f:
        raw = yaml.safe_load(f)
    return _parse_registry(raw)


def resolve(key: str) -> KpiDescriptor | None:
    return load_kpi_registry().resolve(key)


def get_kpi_names() -> list[str]:
    return load_kpi_registry().get_kpi_names()
