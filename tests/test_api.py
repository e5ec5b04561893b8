from __future__ import annotations

import time
from datetime import timedelta

import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient

from src.main import validation_exception_handler
from src.routers import counter as counter_router, stats as stats_router
from src.services.counter_store import CounterStore
from src.services.ingestion_service import IngestionService
from src.services.stats_service import StatsService


@pytest.fixture()
def client(store: CounterStore, ingestion: IngestionService, stats: StatsService) -> TestClient:
    app = FastAPI()
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(counter_router.router, prefix="/api")
    app.include_router(stats_router.router, prefix="/api")
    app.state.counter_store = store
    app.state.ingestion_service = ingestion
    app.state.stats_service = stats
    return TestClient(app)


def test_get_count_increments_and_returns_camel_case(client: TestClient) -> None:
    client.get("/api/count/example.com")
    r = client.get("/api/count/example.com", params={"page": "/about"})

    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["domain"] == "example.com"
    assert data["page"] == "/about"
    assert data["count"] == 2
    assert data["todayCount"] == 2
    assert data["pageCount"] == 1
    assert data["timestamp"].startswith("2026-10-18T12:00:00")


def test_get_count_reads_page_header(client: TestClient, store: CounterStore) -> None:
    r = client.get("/api/count/example.com", headers={"X-Page-Path": "/blog"})

    assert r.status_code == 200
    assert r.json()["page"] == "/blog"
    assert dict(store.get_counter("example.com").page_counts) == {"/blog": 1}


def test_get_count_jsonp(client: TestClient) -> None:
    r = client.get("/api/count/example.com", params={"callback": "visitCounter_123"})

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/javascript")
    assert r.text.startswith("visitCounter_123({")
    assert '"pageCount":1' in r.text
    assert r.text.endswith(");")


def test_get_count_rejects_bad_callback(client: TestClient, store: CounterStore) -> None:
    r = client.get("/api/count/example.com", params={"callback": "alert(1)//"})

    assert r.status_code == 400
    assert store.get_counter("example.com") is None


def test_get_count_short_domain_is_400(client: TestClient, store: CounterStore) -> None:
    r = client.get("/api/count/ab")

    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "invalid_domain"
    assert store.get_counter("ab") is None


def test_post_count(client: TestClient) -> None:
    r = client.post("/api/count", json={"domain": "example.com", "page": "/about"})

    assert r.status_code == 200
    assert r.json()["count"] == 1
    assert r.json()["pageCount"] == 1


def test_post_count_validation_errors(client: TestClient, store: CounterStore) -> None:
    assert client.post("/api/count", json={}).status_code == 400
    r = client.post("/api/count", json={"domain": "example.com", "page": "/" + "p" * 250})
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "invalid_path"
    assert store.domain_count() == 0


def test_site_stats_endpoint(client: TestClient) -> None:
    for _ in range(3):
        client.get("/api/count/example.com", params={"page": "/"})
    client.get("/api/count/example.com", params={"page": "/about"})

    r = client.get("/api/stats/example.com")

    assert r.status_code == 200
    data = r.json()
    assert data["totalVisits"] == 4
    assert data["activeDays"] == 1
    assert data["visitsToday"] == 4
    assert data["visitsThisWeek"] == 4
    assert data["visitsThisMonth"] == 4
    assert data["pageCounts"] == {"/": 3, "/about": 1}
    assert data["dailyCounts"] == {"2026-10-18": 4}


def test_site_stats_unknown_domain_is_404(client: TestClient) -> None:
    r = client.get("/api/stats/missing.com")

    assert r.status_code == 404
    assert r.json()["detail"]["error"] == "not_found"


def test_sites_listing_order(client: TestClient) -> None:
    for _ in range(5):
        client.post("/api/count", json={"domain": "a.com"})
    for _ in range(10):
        client.post("/api/count", json={"domain": "b.com"})

    data = client.get("/api/sites").json()

    assert data["totalSites"] == 2
    assert [(s["domain"], s["totalVisits"]) for s in data["sites"]] == [("b.com", 10), ("a.com", 5)]


def test_visits_by_date_endpoint(client: TestClient, store: CounterStore, clock) -> None:
    store.record_hit("example.com", "/", clock.now - timedelta(days=1))
    client.get("/api/count/example.com")

    r = client.get("/api/stats/visits-by-date", params={"domain": "example.com", "days": 7})

    assert r.status_code == 200
    data = r.json()
    assert data["days"] == 7
    assert len(data["visits"]) == 7
    assert data["visits"][-1] == {"date": "2026-10-18", "visits": 1}
    assert data["visits"][-2] == {"date": "2026-10-17", "visits": 1}


def test_visits_by_date_default_window_and_bad_window(client: TestClient) -> None:
    assert len(client.get("/api/stats/visits-by-date").json()["visits"]) == 30
    assert client.get("/api/stats/visits-by-date", params={"days": 0}).status_code == 400


def test_health_reports_ready_and_site_count(store: CounterStore) -> None:
    from src import main

    store.record_hit("example.com", "/", main.utc_now())
    store.mark_ready()
    main.app.state.counter_store = store
    main.app.state.persistence = None
    main.app.state.started_at = time.monotonic()

    r = TestClient(main.app).get("/api/health")

    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["ready"] is True
    assert data["totalSites"] == 1
    assert data["database"] is None


def test_malformed_requests_are_400_with_error_body(client: TestClient, store: CounterStore) -> None:
    responses = [
        client.post("/api/count", json={"domain": 12345}),
        client.post("/api/count", content=b"domain=example.com", headers={"Content-Type": "application/json"}),
        client.get("/api/stats/visits-by-date", params={"days": "abc"}),
    ]

    for r in responses:
        assert r.status_code == 400
        assert r.json()["detail"]["error"] == "invalid_request"
    assert store.domain_count() == 0


def test_health_while_starting(store: CounterStore) -> None:
    from src import main

    main.app.state.counter_store = store
    main.app.state.persistence = None
    main.app.state.started_at = time.monotonic()

    r = TestClient(main.app).get("/api/health")

    assert r.status_code == 200
    assert r.json()["status"] == "starting"
    assert r.json()["ready"] is False


def test_startup_with_broken_visit_log_starts_empty(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    from src import main

    class BrokenLog:
        def load_snapshot(self):
            raise RuntimeError("no such table: visits")

        def apply_delta(self, domain, path, timestamp) -> None:
            pass

        def start(self) -> None:
            pass

        def close(self) -> None:
            pass

        def health_check(self) -> dict:
            return {"status": "error"}

    monkeypatch.setattr(main, "build_persistence", lambda settings, tz: BrokenLog())

    with TestClient(main.app) as client:
        r = client.get("/api/health")

    assert r.status_code == 200
    data = r.json()
    assert data["ready"] is True
    assert data["totalSites"] == 0
    assert data["database"] == {"status": "error"}
    assert "Error al cargar el log de visitas" in caplog.text
