"""
Test Suite: HTTP API

Exercises the FastAPI routes with the service graph wired to the in-process
fakes and a throwaway SQLite database.
"""

import json

import pytest
from fastapi.testclient import TestClient

from api.dependencies import build_services, get_services
from api.main import app
from schemaforge.integrations import ProviderError, ProviderErrorKind
from schemaforge.pipeline import EventBus
from schemaforge.utils.config import Settings

from conftest import FakeAnalyzer, FakeProvider, make_candidate


URL = "https://example.org/blog/widgets"
HEADERS = {"X-Account-Id": "acct-api"}


@pytest.fixture
def make_client(session_factory):
    """Builder for a TestClient whose services use the given provider."""

    def build(provider=None, balance: int = 5):
        services = build_services(
            Settings(BATCH_PACING_SECONDS=0),
            session_factory,
            provider=provider or FakeProvider(),
            analyzer=FakeAnalyzer(),
        )
        # Library updates run as background tasks; keep them out of request loops
        services.orchestrator.events = EventBus()
        services.ledger.open_account("acct-api", initial_balance=balance)
        app.dependency_overrides[get_services] = lambda: services
        return TestClient(app), services

    yield build
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client):
    return make_client()[0]


def generate(client, schema_type="Article", url=URL):
    return client.post(
        "/api/schemas/generate",
        json={"url": url, "schema_type": schema_type},
        headers=HEADERS,
    )


class TestHealthAndCredits:
    """Test unauthenticated health and the credits endpoint."""

    def test_root(self, client):
        assert client.get("/").json()["status"] == "ok"

    def test_missing_account_header(self, client):
        response = client.get("/api/credits")

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "missing_account"

    def test_credits(self, client):
        data = client.get("/api/credits", headers=HEADERS).json()

        assert data["credit_balance"] == 5
        assert data["billing_policy"] == "metered"

    def test_unknown_account(self, client):
        response = client.get("/api/credits", headers={"X-Account-Id": "acct-nobody"})

        assert response.status_code == 404


class TestGenerateEndpoint:
    """Test status codes for generation outcomes."""

    def test_success(self, make_client):
        client, services = make_client()

        response = generate(client)

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["success"]
        assert data["final_type"] == "Article"
        assert data["credits_used"] == 1
        assert '<script type="application/ld+json">' in data["html_script_tags"]
        assert services.ledger.balance("acct-api") == 4

    def test_content_mismatch_is_422(self, make_client):
        client, services = make_client()

        response = generate(client, schema_type="FAQPage")

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["failure_reason"] == "content_mismatch"
        assert detail["suggested_types"], "Mismatch should suggest alternatives"
        assert services.ledger.balance("acct-api") == 5

    def test_insufficient_credits_is_402(self, make_client):
        client, _ = make_client(balance=0)

        response = generate(client)

        assert response.status_code == 402
        assert response.json()["detail"]["failure_reason"] == "insufficient_credits"

    def test_duplicate_type_is_400(self, client):
        assert generate(client).status_code == 200

        response = generate(client)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "duplicate_schema_type"

    def test_invalid_url_is_400(self, client):
        response = generate(client, url="ftp://example.org/file")

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_request"

    def test_provider_failure_is_refunded(self, make_client):
        client, services = make_client(
            provider=FakeProvider(error=ProviderError("429", ProviderErrorKind.RATE_LIMIT))
        )

        response = generate(client)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["failure_reason"] == "rate_limit"
        assert "429" not in detail["message"], "Raw provider text must not leak"
        assert services.ledger.balance("acct-api") == 5


class TestRecordEndpoints:
    """Test get, refine, rescore and delete on stored records."""

    def test_get_record(self, client):
        record_id = generate(client).json()["record_id"]

        data = client.get(f"/api/schemas/{record_id}", headers=HEADERS).json()

        assert data["id"] == record_id
        assert data["status"] == "success"

    def test_get_unknown_record(self, client):
        assert client.get("/api/schemas/missing", headers=HEADERS).status_code == 404

    def test_get_other_accounts_record(self, make_client):
        client, services = make_client()
        record_id = generate(client).json()["record_id"]
        services.ledger.open_account("acct-other", initial_balance=1)

        response = client.get(f"/api/schemas/{record_id}", headers={"X-Account-Id": "acct-other"})

        assert response.status_code == 403

    def test_refine(self, make_client):
        client, services = make_client()
        record_id = generate(client).json()["record_id"]

        response = client.post(f"/api/schemas/{record_id}/refine", json={}, headers=HEADERS)

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["refinement_count"] == 1
        assert data["remaining_refinements"] == 1
        assert "Added keywords" in data["change_summary"]
        assert services.ledger.balance("acct-api") == 4, "Refinement must not be billed"

    def test_rescore(self, client):
        record_id = generate(client).json()["record_id"]
        edited = make_candidate("Article", url=URL, keywords=["widgets"])

        response = client.post(
            f"/api/schemas/{record_id}/score", json={"candidates": [edited]}, headers=HEADERS
        )

        assert response.status_code == 200
        assert 0 <= response.json()["score"]["overall_score"] <= 100

    def test_delete_allows_regeneration(self, client):
        record_id = generate(client).json()["record_id"]

        response = client.delete(f"/api/schemas/{record_id}", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["record"]["is_deleted"]
        assert generate(client).status_code == 200


class TestStatelessEndpoints:
    """Test scoring preview and validation (no billing)."""

    def test_score_preview(self, client):
        response = client.post(
            "/api/schemas/score/preview",
            json={"candidate": make_candidate("Article", url=URL), "error_count": 1},
        )

        assert response.status_code == 200
        assert "overall_score" in response.json()

    def test_score_preview_rejects_negative_counts(self, client):
        response = client.post(
            "/api/schemas/score/preview",
            json={"candidate": make_candidate(), "warning_count": -1},
        )

        assert response.status_code == 422

    def test_validate(self, client):
        response = client.post(
            "/api/schemas/validate",
            json={"candidates": [make_candidate(), {"name": "untyped"}]},
        )

        summary = response.json()["summary"]
        assert summary["total_schemas"] == 2
        assert summary["valid_schemas"] == 1

    def test_extract(self, client):
        data = client.post("/api/schemas/extract", json={"url": URL}).json()

        assert data["count"] == 1


class TestHistoryEndpoints:
    """Test history, stats and failure grouping."""

    def test_history_and_stats(self, client):
        generate(client)
        generate(client, schema_type="FAQPage")

        history = client.get("/api/schemas/history", headers=HEADERS).json()
        stats = client.get("/api/schemas/stats", headers=HEADERS).json()

        assert history["total"] == 1, "Content mismatch creates no record"
        assert stats["successful"] == 1
        assert stats["credits_used"] == 1

    def test_failures_grouped(self, make_client):
        client, _ = make_client(
            provider=FakeProvider(error=ProviderError("timeout", ProviderErrorKind.TIMEOUT))
        )
        generate(client)

        data = client.get("/api/schemas/failures", headers=HEADERS).json()

        assert data["total_failures"] == 1
        assert data["by_reason"] == {"timeout": 1}
        assert data["by_stage"] == {"ai_generation": 1}


class TestBatchEndpoints:
    """Test batch and streamed batch generation."""

    def test_batch(self, client):
        urls = [URL, "https://example.org/blog/gears"]

        data = client.post("/api/schemas/batch", json={"urls": urls}, headers=HEADERS).json()

        assert data["successful"] == 2
        assert data["credits_used"] == 2

    def test_batch_too_large(self, client):
        urls = [f"https://example.org/page/{i}" for i in range(11)]

        response = client.post("/api/schemas/batch", json={"urls": urls}, headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "batch_too_large"

    def test_batch_stream(self, client):
        response = client.post(
            "/api/schemas/batch/stream",
            json={"urls": [URL, "not a url"]},
            headers=HEADERS,
        )

        assert response.status_code == 200
        events = [
            json.loads(line[len("data: "):])
            for line in response.text.splitlines()
            if line.startswith("data: ")
        ]
        assert [e["type"] for e in events] == ["processing", "success", "processing", "failed", "summary"]
