"""
GET /kpis, GET /kpis/detail, GET /catalog -- registry metadata endpoints.
"""
from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from src.kpi.request import CONTRACT_VERSION, GroupBy, Scope
from src.governance.kpi_registry import load_kpi_registry

router = APIRouter()



class KpiItem(BaseModel):
    key: str
    description: str
    aggregation: str
    has_channel_dimension: bool


class OptionsSource(BaseModel):
    columns: list[str]
    tables: list[str]


class CatalogResponse(BaseModel):
    contract_version: str
    kpis: list[KpiItem]
    group_by: list[str]
    scopes: list[str]
    dimensions: dict[str, str]
    filter_options: OptionsSource
    max_rows: int



def _kpi_items() -> list[KpiItem]:
    registry = load_kpi_registry()
    return [
        KpiItem(
            key=k.key,
            description=k.description,
            aggregation=k.aggregation,
            has_channel_dimension=k.has_channel_dimension,
        )
        for k in registry.kpis.values()
    ]


@router.get("/kpis")
def list_kpis() -> dict:
    """Return registered KPI keys (lightweight)."""
    return {"kpis": load_kpi_registry().get_kpi_names()}


@router.get("/kpis/detail", response_model=list[KpiItem])
def list_kpis_detail() -> list[KpiItem]:
    return _kpi_items()


@router.get("/catalog", response_model=CatalogResponse)
def full_catalog() -> CatalogResponse:
    """Everything the dashboard needs to build a valid kpi_request.v1."""
    registry = load_kpi_registry()
    return CatalogResponse(
        contract_version=CONTRACT_VERSION,
        kpis=_kpi_items(),
        group_by=[g.value for g in GroupBy],
        scopes=[s.value for s in Scope],
        dimensions=dict(registry.dimensions),
        filter_options=OptionsSource(
            columns=list(registry.options.columns),
            tables=list(registry.options.tables),
        ),
        max_rows=registry.max_rows,
    )
