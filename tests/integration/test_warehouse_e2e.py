"""
Integration tests — full KPI pipeline against a live Databricks SQL warehouse.

These tests require DATABRICKS_HOST, DATABRICKS_TOKEN and WAREHOUSE_ID and
read access to the commercial_dev.capabilities tables.  They are skipped
automatically when credentials are not configured.
"""
from __future__ import annotations

import pytest

from src.core.config import get_settings

pytestmark = pytest.mark.skipif(
    not get_settings().has_credentials,
    reason="Databricks credentials not configured",
)

from src.kpi.request import KpiRequest
from src.kpi.service import run_kpi_query, list_filter_options
from src.warehouse.statement_client import StatementClient


@pytest.fixture
def warehouse():
    client = StatementClient.from_settings()
    yield client
    client.close()


def test_volume_by_month(warehouse):
    outcome = run_kpi_query(KpiRequest(kpi="volume", max_month="202506"), warehouse)
    assert outcome.job.succeeded
    months = [r.dimension for r in outcome.result.rows]
    assert months == sorted(months)


def test_share_total(warehouse):
    req = KpiRequest(kpi="share", groupBy="total", scope="MTD", max_month="202501")
    outcome = run_kpi_query(req, warehouse)
    assert len(outcome.result.rows) <= 1


def test_channel_filter_on_share_is_empty(warehouse):
    req = KpiRequest.model_validate({
        "kpi": "share", "groupBy": "megabrand", "filters": {"channel": ["On Premise"]},
    })
    assert run_kpi_query(req, warehouse).result.rows == []


def test_state_options(warehouse):
    options = list_filter_options("mktng_st_cd", "mbmc_actuals_volume", warehouse)
    assert all(o["label"] == o["value"] for o in options)
