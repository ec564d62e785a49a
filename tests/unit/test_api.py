"""
API tests -- FastAPI endpoints via TestClient with a scripted warehouse.
"""
import httpx
import pytest
from fastapi.testclient import TestClient

from src.api.main import app
from src.warehouse.statement_client import StatementClient, get_statement_client
from tests.unit.fakes import ScriptedService, status, succeeded

client = TestClient(app)


@pytest.fixture
def warehouse(make_client):
    """Route the API's statement client to a ScriptedService; yields a setter."""

    def _use(service: ScriptedService, **overrides):
        app.dependency_overrides[get_statement_client] = lambda: make_client(service, **overrides)
        return service

    yield _use
    app.dependency_overrides.clear()


@pytest.fixture
def unconfigured():
    app.dependency_overrides[get_statement_client] = lambda: StatementClient("", "", "")
    yield
    app.dependency_overrides.clear()



def test_health():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_get_query_is_status():
    resp = client.get("/api/query")
    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is True
    assert data["status"] == "operational"
    assert resp.headers["x-mc-api"] == "query"
    assert "x-mc-version" in resp.headers


def test_wrong_method():
    resp = client.put("/api/query", json={})
    assert resp.status_code == 405
    assert resp.json() == {"ok": False, "error": "Method not allowed"}
    assert resp.headers["x-mc-api"] == "query"


def test_wrong_method_on_filters_labelled_filters():
    resp = client.put("/api/filters", json={})
    assert resp.status_code == 405
    assert resp.headers["x-mc-api"] == "filters"


def test_unknown_path_not_labelled_as_query():
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json()["ok"] is False
    assert resp.headers["x-mc-api"] == "gateway"


def test_ping_needs_no_credentials(unconfigured):
    resp = client.post("/api/query", json={"ping": True})
    assert resp.status_code == 200
    assert resp.json()["mode"] == "ping"


def test_ping_as_text_body(unconfigured):
    resp = client.post("/api/query", content='{"ping": true}', headers={"Content-Type": "text/plain"})
    assert resp.status_code == 200
    assert resp.json()["mode"] == "ping"



def test_invalid_json(unconfigured):
    resp = client.post("/api/query", content="{nope", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json()["ok"] is False


def test_missing_kpi(warehouse):
    service = warehouse(ScriptedService((200, succeeded([]))))
    resp = client.post("/api/query", json={"contract_version": "kpi_request.v1"})
    assert resp.status_code == 400
    assert "kpi" in resp.json()["error"]
    assert service.submitted == []


def test_unknown_kpi(warehouse):
    service = warehouse(ScriptedService((200, succeeded([]))))
    resp = client.post("/api/query", json={"kpi": "margin"})
    assert resp.status_code == 400
    assert resp.json() == {
        "ok": False,
        "error": "KPI 'margin' is not yet implemented. Allowed: volume, revenue, share, distro",
    }
    assert service.submitted == []


def test_missing_credentials(unconfigured):
    resp = client.post("/api/query", json={"kpi": "volume"})
    assert resp.status_code == 500
    assert resp.json()["error"] == "Server missing Databricks credentials"



def test_success(warehouse):
    service = warehouse(ScriptedService(
        (200, status("PENDING")),
        [status("RUNNING"), succeeded([["Bud Light", "10.5", "9"]])],
    ))
    resp = client.post("/api/query", json={
        "contract_version": "kpi_request.v1",
        "kpi": "volume",
        "groupBy": "megabrand",
        "scope": "YTD",
        "max_month": "202506",
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is True
    assert data["result"]["data_array"] == [["Bud Light", "10.5", "9"]]
    assert data["rows"] == [{"dimension": "Bud Light", "current_value": 10.5, "prior_value": 9.0}]
    sql = data["meta"]["sql"]
    assert sql == service.submitted[0]["statement"]
    assert "GROUP BY megabrand" in sql
    assert "SUM(STRs_CY)" in sql and "SUM(STRs_LY)" in sql
    assert "cal_yr_mo_nbr BETWEEN 202501 AND 202506" in sql
    assert "sgmnt_cd <> 'AO'" in sql
    assert "ORDER BY value_cy DESC" in sql
    assert "LIMIT 1000" in sql


def test_share_total_mtd(warehouse):
    warehouse(ScriptedService((200, succeeded([["Total", "0.41", "0.39"]]))))
    resp = client.post("/api/query", json={
        "kpi": "share", "groupBy": "total", "scope": "MTD", "max_month": "202501",
    })
    assert resp.status_code == 200
    sql = resp.json()["meta"]["sql"]
    assert "AVG(share_pct_CY)" in sql
    assert "'Total' AS dimension" in sql
    assert "cal_yr_mo_nbr = 202501" in sql
    assert "GROUP BY" not in sql and "ORDER BY" not in sql


def test_submission_failure_mirrors_status(warehouse):
    service = warehouse(ScriptedService((400, {"message": "PARSE_SYNTAX_ERROR"})))
    resp = client.post("/api/query", json={"kpi": "volume"})
    assert resp.status_code == 400
    data = resp.json()
    assert data["ok"] is False
    assert data["error"] == "Databricks submit failed"
    assert data["dbx_msg"] == "PARSE_SYNTAX_ERROR"
    assert "FROM commercial_dev.capabilities.mbmc_actuals_volume" in data["sql"]
    assert service.poll_paths == []


def test_submission_5xx_mirrored(warehouse):
    warehouse(ScriptedService((503, {"message": "warehouse stopped"})))
    resp = client.post("/api/query", json={"kpi": "volume"})
    assert resp.status_code == 503


def test_failed_statement_is_502(warehouse):
    warehouse(ScriptedService((200, status("PENDING")), [status("FAILED")]))
    resp = client.post("/api/query", json={"kpi": "volume"})
    assert resp.status_code == 502
    data = resp.json()
    assert data["ok"] is False
    assert data["state"] == "FAILED"


def test_timeout_is_502(warehouse):
    warehouse(ScriptedService((200, status("PENDING")), [status("RUNNING")]), timeout=1.0)
    resp = client.post("/api/query", json={"kpi": "volume"})
    assert resp.status_code == 502
    assert resp.json()["state"] == "TIMED_OUT"


def test_contract_violation_is_500(warehouse):
    warehouse(ScriptedService((200, status("SUCCEEDED"))))
    resp = client.post("/api/query", json={"kpi": "volume"})
    assert resp.status_code == 500
    data = resp.json()
    assert data["error"] == "Internal Server Error"
    assert "details" in data


def test_missing_statement_id_is_logged(warehouse, caplog):
    warehouse(ScriptedService((200, {"status": {"state": "PENDING"}})))
    with caplog.at_level("ERROR", logger="src.api.routers.query"):
        resp = client.post("/api/query", json={"kpi": "volume"})
    assert resp.status_code == 500
    assert any(r.exc_info and "statement_id" in str(r.exc_info[1]) for r in caplog.records)


def test_unexpected_fault_does_not_echo_workspace_url(warehouse):
    def handler(request):
        if request.method == "POST":
            return httpx.Response(200, json=status("PENDING"))
        return httpx.Response(503, json={"message": "unavailable"})

    warehouse(ScriptedService((200, {})), transport=httpx.MockTransport(handler))
    resp = client.post("/api/query", json={"kpi": "volume"})
    assert resp.status_code == 500
    assert resp.json()["error"] == "Internal Server Error"
    assert "adb-123" not in resp.text



def test_filter_options(warehouse):
    warehouse(ScriptedService((200, succeeded([["01"], ["02"]]))))
    resp = client.post("/api/filters", json={"dimension": "wslr_nbr", "table": "mbmc_actuals_volume"})
    assert resp.status_code == 200
    assert resp.json() == {
        "ok": True,
        "options": [{"label": "01", "value": "01"}, {"label": "02", "value": "02"}],
    }
    assert resp.headers["x-mc-api"] == "filters"


def test_filter_options_rejects_identifier(warehouse):
    service = warehouse(ScriptedService((200, succeeded([]))))
    resp = client.post("/api/filters", json={"dimension": "1; DROP TABLE x", "table": "mbmc_actuals_volume"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid dimension or table requested"
    assert service.submitted == []



def test_kpis_list():
    resp = client.get("/kpis")
    assert resp.status_code == 200
    assert resp.json()["kpis"] == ["volume", "revenue", "share", "distro"]


def test_catalog():
    resp = client.get("/catalog")
    assert resp.status_code == 200
    data = resp.json()
    assert data["contract_version"] == "kpi_request.v1"
    assert "wholesaler" in data["group_by"]
    assert data["scopes"] == ["MTD", "YTD"]
    assert data["max_rows"] == 1000
    share = next(k for k in data["kpis"] if k["key"] == "share")
    assert share["has_channel_dimension"] is False


def test_cors_preflight_localhost():
    resp = client.options(
        "/api/query",
        headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "POST"},
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"


def test_validation_runs_before_credentials(unconfigured):
    resp = client.post("/api/query", json={"kpi": "margin"})
    assert resp.status_code == 400
