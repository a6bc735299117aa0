from __future__ import annotations

from typing import TYPE_CHECKING

from helix.db.models import EntityKind
from helix.services.record_store import RecordStore
from tests.helpers import case_payload, source_payload, update_payload

if TYPE_CHECKING:
    from fastapi.testclient import TestClient


def seed_sources(client: TestClient, *specs: tuple[str, str, int]) -> None:
    for source_id, region, target in specs:
        response = client.post("/api/data-sources", json=source_payload(source_id, region, target))
        assert response.status_code == 201, response.text


def test_health_endpoints(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "healthy"}

    ready = client.get("/api/health/ready")
    assert ready.status_code == 200
    assert ready.json()["checks"]["database"]["status"] == "ok"
    assert ready.json()["checks"]["records"] == {
        "status": "degraded",
        "legalCases": 0,
        "regulatoryUpdates": 0,
        "activeDataSources": 0,
    }


def test_readiness_reports_record_counts(client: TestClient) -> None:
    seed_sources(client, ("us_courts", "US", 3))
    client.post("/api/sync/all")

    records = client.get("/api/health/ready").json()["checks"]["records"]

    assert records["status"] == "ok"
    assert records["legalCases"] == 3
    assert records["activeDataSources"] == 1


def test_correlation_id_is_echoed(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})
    assert response.headers["X-Correlation-ID"] == "abc-123"

    generated = client.get("/health").headers["X-Correlation-ID"]
    assert generated and generated != "abc-123"


def test_create_and_list_legal_cases(client: TestClient) -> None:
    created = client.post("/api/legal-cases", json=case_payload("us-manual-001"))

    assert created.status_code == 201
    body = created.json()
    assert body["caseNumber"] == "CN-us-manual-001"
    assert body["jurisdiction"] == "US"
    assert body["impactLevel"] == "high"

    listed = client.get("/api/legal-cases").json()
    assert [c["id"] for c in listed] == ["us-manual-001"]
    assert client.get("/api/legal-cases", params={"jurisdiction": "de"}).json() == []
    assert len(client.get("/api/legal-cases/jurisdiction/us").json()) == 1
    assert client.get("/api/legal-cases/us-manual-001").json()["title"] == "Smith v. Device Corp"


def test_snake_case_and_alias_input_is_accepted(client: TestClient) -> None:
    payload = {
        "id": "snake-1",
        "case_number": "S-1",
        "title": "Snake",
        "court": "Court",
        "jurisdiction": "uk",
        "impact": "LOW",
        "date": "2022-02-02",
    }

    body = client.post("/api/legal-cases", json=payload).json()

    assert body["impactLevel"] == "low"
    assert body["decisionDate"].startswith("2022-02-02")


def test_unknown_impact_level_reported_as_unspecified(client: TestClient) -> None:
    body = client.post("/api/legal-cases", json=case_payload("x", impactLevel="apocalyptic")).json()

    assert body["impactLevel"] == "unspecified"


def test_validation_errors_are_400(client: TestClient) -> None:
    response = client.post("/api/legal-cases", json={"id": "x", "title": "no court"})

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Invalid request"
    assert "caseNumber" in body["fields"]

    response = client.post("/api/legal-cases", json=case_payload("y", decisionDate="not-a-date"))
    assert response.status_code == 400


def test_duplicate_create_is_409(client: TestClient) -> None:
    assert client.post("/api/legal-cases", json=case_payload("dup")).status_code == 201

    response = client.post("/api/legal-cases", json=case_payload("dup"))

    assert response.status_code == 409
    assert "already exists" in response.json()["message"]


def test_missing_record_is_404(client: TestClient) -> None:
    response = client.get("/api/legal-cases/ghost")

    assert response.status_code == 404
    assert response.json() == {"message": "legal_case ghost not found"}
    assert client.patch("/api/data-sources/ghost", json={"name": "x"}).status_code == 404


def test_regulatory_updates_recent_is_wrapped(client: TestClient) -> None:
    for record_id, published in [("a", "2021-01-01"), ("b", "2024-01-01"), ("c", "2023-01-01")]:
        response = client.post("/api/regulatory-updates", json=update_payload(record_id, publishedAt=published))
        assert response.status_code == 201

    recent = client.get("/api/regulatory-updates/recent", params={"limit": 2}).json()

    assert [u["id"] for u in recent["data"]] == ["b", "c"]
    assert [u["id"] for u in client.get("/api/regulatory-updates").json()] == ["b", "c", "a"]
    assert client.get("/api/regulatory-updates/a").json()["priority"] == "high"
    assert client.get("/api/regulatory-updates", params={"priority": "low"}).json() == []


def test_data_source_patch_and_last_sync_monotonic(client: TestClient) -> None:
    seed_sources(client, ("us_courts", "US", 3))

    patched = client.patch("/api/data-sources/us_courts", json={"isActive": False, "lastSync": "2024-05-01T00:00:00Z"})
    assert patched.status_code == 200
    assert patched.json()["isActive"] is False
    assert patched.json()["lastSync"].startswith("2024-05-01")

    assert client.get("/api/data-sources/active").json() == []
    assert len(client.get("/api/data-sources").json()) == 1

    backwards = client.patch("/api/data-sources/us_courts", json={"lastSync": "2020-01-01T00:00:00Z"})
    assert backwards.status_code == 400
    assert "last_sync_at" in backwards.json()["fields"]

    cleared = client.patch("/api/data-sources/us_courts", json={"lastSync": None})
    assert cleared.status_code == 400
    assert client.get("/api/data-sources/us_courts").json()["lastSync"].startswith("2024-05-01")


def test_historical_sources_are_those_already_synced(client: TestClient) -> None:
    seed_sources(client, ("us_courts", "US", 2), ("de_courts", "DE", 2), ("fr_courts", "FR", 2))
    client.patch("/api/data-sources/de_courts", json={"lastSync": "2024-01-01T00:00:00Z"})
    client.patch("/api/data-sources/fr_courts", json={"lastSync": "2024-06-01T00:00:00Z"})

    historical = client.get("/api/data-sources/historical")

    assert historical.status_code == 200
    assert [s["id"] for s in historical.json()] == ["fr_courts", "de_courts"]


def test_data_source_patch_rejects_null_for_required_flags(client: TestClient) -> None:
    seed_sources(client, ("us_courts", "US", 3))

    response = client.patch("/api/data-sources/us_courts", json={"isActive": None})

    assert response.status_code == 400
    assert response.json()["fields"] == {"is_active": "cannot be null"}
    assert client.get("/api/data-sources/us_courts").json()["isActive"] is True


def test_sync_all_reconciles_active_sources(client: TestClient) -> None:
    seed_sources(client, ("fda", "FDA", 10), ("ema", "EMA", 10))

    summary = client.post("/api/sync/all").json()

    assert summary["success"] is True
    assert summary["totalSources"] == 2
    assert summary["successCount"] == 2
    assert summary["mode"] == "incremental"
    assert len(client.get("/api/legal-cases").json()) == 20

    again = client.post("/api/sync/all", json={}).json()
    assert [r["recordsAffected"] for r in again["results"]] == [0, 0]


def test_sync_all_with_subset_mode_and_targets(client: TestClient) -> None:
    seed_sources(client, ("a", "US", 3), ("b", "DE", 3))
    client.post("/api/sync/all")

    summary = client.post(
        "/api/sync/all",
        json={"mode": "rebuild", "sourceIds": ["b"], "targets": {"b": 1}},
    ).json()

    assert summary["totalSources"] == 1
    assert summary["results"][0]["finalCount"] == 1
    assert len(client.get("/api/legal-cases/jurisdiction/DE").json()) == 1
    assert len(client.get("/api/legal-cases/jurisdiction/US").json()) == 3


def test_sync_all_rejects_bad_mode(client: TestClient) -> None:
    response = client.post("/api/sync/all", json={"mode": "sideways"})

    assert response.status_code == 400


def test_sync_single_source(client: TestClient) -> None:
    seed_sources(client, ("a", "US", 2))

    result = client.post("/api/data-sources/a/sync").json()

    assert result["status"] == "success"
    assert result["recordsAffected"] == 2
    assert client.get("/api/data-sources/a").json()["lastSync"] is not None
    assert client.post("/api/data-sources/ghost/sync").status_code == 404


def test_sync_stats(client: TestClient) -> None:
    seed_sources(client, ("a", "US", 2), ("b", "DE", 2))
    client.patch("/api/data-sources/b", json={"isActive": False})
    client.post("/api/regulatory-updates", json=update_payload("u1"))

    before = client.get("/api/sync/stats").json()
    assert before["activeSources"] == 1
    assert before["totalSources"] == 2
    assert before["lastSync"] is None
    assert before["newUpdates"] == 1
    assert before["runningSyncs"] == 0

    client.post("/api/sync/all")
    assert client.get("/api/sync/stats").json()["lastSync"] is not None


def test_dashboard_stats(client: TestClient, session_factory) -> None:
    seed_sources(client, ("a", "US", 3))
    client.post("/api/sync/all")
    client.post("/api/regulatory-updates", json=update_payload("u1", priority="bogus"))

    stats = client.get("/api/dashboard/stats").json()

    assert stats["totalLegalCases"] == 3
    assert stats["totalUpdates"] == 1
    assert stats["totalDataSources"] == 1
    assert stats["activeDataSources"] == 1
    assert stats["casesByJurisdiction"] == {"US": 3}
    assert stats["casesByImpact"] == {"high": 1, "medium": 1, "low": 1, "unspecified": 0}
    assert stats["updatesByPriority"]["unspecified"] == 1

    with session_factory() as db:
        assert RecordStore(db).count_where(EntityKind.regulatory_update, priority="unspecified") == 1
