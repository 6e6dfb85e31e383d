"""
Endpoint tests through FastAPI's TestClient with the service swapped for one
backed by an in-memory source.
"""

import pytest
from fastapi.testclient import TestClient

import main
from dashboard_service import DashboardService

from conftest import FakeDataSource, utc


@pytest.fixture
def source(scenario_records):
    return FakeDataSource(scenario_records)


@pytest.fixture
def client(source):
    service = DashboardService(source, page_size=2, clock=lambda: utc(2024, 1, 27))
    main.app.dependency_overrides[main.get_service] = lambda: service
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


class TestMeta:
    def test_root(self, client):
        assert client.get("/").json() == {"message": "P/L Dashboard API v1.0"}

    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "ok"
        assert body["cache"] in ("redis", "memory")


class TestSummaryEndpoint:
    def test_all_time(self, client):
        resp = client.get("/api/summary")

        assert resp.status_code == 200
        assert resp.json() == {
            "total_profit": 300.0, "win_rate": 67, "total_trades": 3,
            "wins": 2, "losses": 1,
        }

    def test_last_week(self, client):
        body = client.get("/api/summary", params={"range": "7d"}).json()
        assert body["total_trades"] == 2
        assert body["total_profit"] == 50.0

    def test_unknown_range(self, client):
        resp = client.get("/api/summary", params={"range": "30d"})
        assert resp.status_code == 400

    def test_data_source_failure(self, client, source):
        source.fail = "permission denied for table settled_positions"

        resp = client.get("/api/summary")

        assert resp.status_code == 502
        assert resp.json()["detail"] == "permission denied for table settled_positions"


class TestPerformanceEndpoint:
    def test_monthly_and_cumulative(self, client):
        body = client.get("/api/performance").json()

        assert [b["month"] for b in body["monthly"]][:3] == ["Jan", "Feb", "Mar"]
        assert body["monthly"][0]["total_pnl"] == 200.0
        assert body["monthly"][1]["period_key"] == "2024-Feb"
        assert body["monthly"][1]["label"] == "$100.00"
        assert body["cumulative"][-1]["cumulative_pnl"] == 300.0
        assert body["total_pnl_display"] == "$300"
        assert body["axis_max"] == 200


class TestTradesEndpoint:
    def test_first_page_by_default(self, client):
        body = client.get("/api/trades").json()

        assert body["window"]["page_index"] == 1
        assert body["window"]["total_pages"] == 2
        assert body["window"]["page_buttons"] == [1, 2]
        assert [r["ticker"] for r in body["records"]] == ["AAPLAR", "FEDJUL"]
        assert body["records"][1]["pnl"] == -50.0
        assert body["records"][1]["outcome"] == "Loss"
        assert body["rejected"] is False

    def test_explicit_page_and_size(self, client):
        body = client.get("/api/trades", params={"page": 1, "size": 3}).json()
        assert len(body["records"]) == 3
        assert body["window"]["total_pages"] == 1

    def test_out_of_range_keeps_page(self, client):
        client.get("/api/trades", params={"page": 2})

        body = client.get("/api/trades", params={"page": 9}).json()

        assert body["rejected"] is True
        assert body["window"]["page_index"] == 2
        assert [r["ticker"] for r in body["records"]] == ["BTC60K"]

    def test_size_is_validated(self, client):
        assert client.get("/api/trades", params={"page": 1, "size": 0}).status_code == 422

    def test_failure(self, client, source):
        source.fail = "timeout"
        resp = client.get("/api/trades", params={"page": 1})
        assert resp.status_code == 502
        assert resp.json()["detail"] == "timeout"


class TestOverviewEndpoint:
    def test_overview(self, client):
        body = client.get("/api/overview").json()

        assert body["range"] == "all"
        assert body["summary"]["win_rate"] == 67
        assert len(body["performance"]["monthly"]) == 12
        assert body["trades"]["window"]["page_index"] == 1
