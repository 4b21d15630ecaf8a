"""Integration tests for API endpoints"""

import base64
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, inspect

from royalty_service.api.main import create_app
from royalty_service.config import Settings
from royalty_service.domain.exceptions import MailboxAPIError
from royalty_service.domain.models import HarvestSummary

OTHER_USER = {"X-User-ID": "user_other"}


def _upload(client: TestClient, headers: dict, csv: str, file_name: str = "statement.csv"):
    return client.post("/v1/statements", json={"csv_content": csv, "file_name": file_name}, headers=headers)


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "royalty-service"}


def test_startup_creates_tables_when_configured(tmp_path, settings: Settings):
    """Test the lifespan hook creates the schema on startup"""
    database_url = f"sqlite:///{tmp_path / 'startup.db'}"
    app = create_app(settings.model_copy(update={"database_url": database_url, "create_tables_on_startup": True}))

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200

    assert "raw_statements" in inspect(create_engine(database_url)).get_table_names()


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "royalty_statements_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    """Test X-Request-ID is propagated to the response"""
    response = client.get("/health", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"


def test_user_header_is_required(client: TestClient):
    """Test /v1 routes reject requests without X-User-ID"""
    response = client.get("/v1/statements")
    assert response.status_code == 422


def test_upload_statement(client: TestClient, auth_headers: dict, distrokid_csv: str):
    """Test POST /v1/statements creates statement and entries"""
    response = _upload(client, auth_headers, distrokid_csv, "distrokid.csv")

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["entries_created"] == 3
    assert data["parser"] == "distrokid"

    listing = client.get("/v1/statements", headers=auth_headers).json()
    assert len(listing["statements"]) == 1
    assert listing["statements"][0]["file_name"] == "distrokid.csv"
    assert listing["statements"][0]["parsed_entries_count"] == 3


def test_upload_with_bad_rows_returns_422(client: TestClient, auth_headers: dict):
    """Test parse failures return the first error and the full list"""
    csv = "Sale Month,Store,Title,Earnings (USD)\n2024-01,Spotify,A,x\n2024-01,Spotify,B,y\n"
    response = _upload(client, auth_headers, csv)

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["error"] == "Failed to parse CSV: Invalid amount: x"
    assert len(detail["parse_errors"]) == 2


def test_upload_unknown_format_returns_422(client: TestClient, auth_headers: dict):
    """Test unsupported CSV layouts are rejected"""
    response = _upload(client, auth_headers, "foo,bar\n1,2\n")

    assert response.status_code == 422
    assert "Unable to detect CSV format" in response.json()["detail"]["error"]


def test_upload_too_large_returns_413(client: TestClient, auth_headers: dict, settings):
    """Test uploads over the configured size limit are refused"""
    client.app.state.settings = settings.model_copy(update={"max_csv_bytes": 10})
    response = _upload(client, auth_headers, "source_type,amount,period_start,period_end\n")

    assert response.status_code == 413


def test_preview_does_not_persist(client: TestClient, auth_headers: dict, template_csv: str):
    """Test POST /v1/statements/preview returns the parse envelope only"""
    response = client.post("/v1/statements/preview", json={"csv_content": template_csv}, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["metadata"]["parser"] == "template"
    assert data["metadata"]["total_rows"] == 2
    assert data["entries"][0]["amount"] == 120.5

    assert client.get("/v1/statements", headers=auth_headers).json()["statements"] == []


def test_get_statement_detail_and_isolation(client: TestClient, auth_headers: dict, template_csv: str):
    """Test a statement is visible to its owner only"""
    statement_id = _upload(client, auth_headers, template_csv).json()["statement_id"]

    response = client.get(f"/v1/statements/{statement_id}", headers=auth_headers)
    assert response.status_code == 200
    assert len(response.json()["entries"]) == 2

    assert client.get(f"/v1/statements/{statement_id}", headers=OTHER_USER).status_code == 404
    assert client.get("/v1/statements", headers=OTHER_USER).json()["statements"] == []


def test_delete_statement(client: TestClient, auth_headers: dict, template_csv: str):
    """Test DELETE /v1/statements/{id} removes the statement and its income"""
    statement_id = _upload(client, auth_headers, template_csv).json()["statement_id"]

    assert client.delete(f"/v1/statements/{statement_id}", headers=OTHER_USER).status_code == 404
    assert client.delete(f"/v1/statements/{statement_id}", headers=auth_headers).status_code == 204
    assert client.delete(f"/v1/statements/{statement_id}", headers=auth_headers).status_code == 404
    assert client.get("/v1/income", headers=auth_headers).json()["entries"] == []


def test_reprocess_statement(client: TestClient, auth_headers: dict, template_csv: str):
    """Test POST /v1/statements/{id}/reprocess rebuilds entries"""
    statement_id = _upload(client, auth_headers, template_csv).json()["statement_id"]

    response = client.post(f"/v1/statements/{statement_id}/reprocess", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["entries_created"] == 2
    assert len(client.get("/v1/income", headers=auth_headers).json()["entries"]) == 2


def test_reprocess_unknown_statement(client: TestClient, auth_headers: dict):
    """Test reprocessing a missing statement returns 404"""
    response = client.post(
        "/v1/statements/00000000-0000-0000-0000-000000000000/reprocess",
        headers=auth_headers,
    )
    assert response.status_code == 404


def test_income_listing_filters_and_summary(client: TestClient, auth_headers: dict, template_csv: str):
    """Test ledger filters and per-source totals"""
    _upload(client, auth_headers, template_csv)

    all_entries = client.get("/v1/income", headers=auth_headers).json()
    assert all_entries["total"] == 135.75

    pro_only = client.get("/v1/income", params={"source_type": "pro"}, headers=auth_headers).json()
    assert [e["source_type"] for e in pro_only["entries"]] == ["pro"]

    large = client.get("/v1/income", params={"min_amount": "100"}, headers=auth_headers).json()
    assert [e["amount"] for e in large["entries"]] == [120.5]

    summary = client.get("/v1/income/summary", headers=auth_headers).json()
    assert summary["total"] == 135.75
    assert summary["by_source"][0] == {"source_type": "pro", "label": "PRO", "total": 120.5}


def test_manual_income_entry(client: TestClient, auth_headers: dict):
    """Test POST and DELETE /v1/income for manual entries"""
    response = client.post(
        "/v1/income",
        json={
            "source_type": "sync",
            "amount": 500,
            "period_start": "2024-06-01",
            "period_end": "2024-06-30",
            "notes": "Indie film placement",
        },
        headers=auth_headers,
    )
    assert response.status_code == 201
    entry = response.json()
    assert entry["statement_id"] is None

    assert client.delete(f"/v1/income/{entry['id']}", headers=OTHER_USER).status_code == 404
    assert client.delete(f"/v1/income/{entry['id']}", headers=auth_headers).status_code == 204


def test_manual_income_validation(client: TestClient, auth_headers: dict):
    """Test unknown sources and inverted periods are rejected"""
    bad_source = {"source_type": "lottery", "amount": 5, "period_start": "2024-01-01", "period_end": "2024-01-31"}
    inverted = {"source_type": "pro", "amount": 5, "period_start": "2024-02-01", "period_end": "2024-01-31"}

    assert client.post("/v1/income", json=bad_source, headers=auth_headers).status_code == 422
    assert client.post("/v1/income", json=inverted, headers=auth_headers).status_code == 422


def test_profile_roundtrip(client: TestClient, auth_headers: dict):
    """Test GET/PUT /v1/profile"""
    assert client.get("/v1/profile", headers=auth_headers).status_code == 404

    response = client.put(
        "/v1/profile",
        json={"writes_own_songs": True, "monthly_streams": 60000, "artist_name": "Test Artist"},
        headers=auth_headers,
    )
    assert response.status_code == 200

    profile = client.get("/v1/profile", headers=auth_headers).json()
    assert profile["monthly_streams"] == 60000
    assert profile["writes_own_songs"] is True


def test_missing_money_endpoint(client: TestClient, auth_headers: dict, distrokid_csv: str):
    """Test estimates reflect the profile and collected sources"""
    client.put("/v1/profile", json={"writes_own_songs": True, "monthly_streams": 60000}, headers=auth_headers)
    _upload(client, auth_headers, distrokid_csv)

    data = client.get("/v1/insights/missing-money", headers=auth_headers).json()

    sources = {e["source"]: e for e in data["estimates"]}
    assert "youtube" not in sources  # collected via DistroKid
    assert sources["pro"]["estimated_annual"] == 252
    assert sources["pro"]["confidence"] == 90  # streaming income collected
    assert data["has_collected_income"] is True
    assert data["has_trend_data"] is True
    assert data["total_estimated"] == sum(e["estimated_annual"] for e in data["estimates"])


def test_missing_money_without_profile(client: TestClient, auth_headers: dict):
    """Test users without a profile get conservative defaults"""
    data = client.get("/v1/insights/missing-money", headers=auth_headers).json()

    assert [e["source"] for e in data["estimates"]] == ["neighbouring", "youtube"]
    assert data["has_collected_income"] is False


def test_trends_endpoint(client: TestClient, auth_headers: dict):
    """Test GET /v1/insights/trends flags a streaming dropoff"""
    csv = (
        "source_type,amount,period_start,period_end\n"
        "streaming,100,2024-01-01,2024-01-31\n"
        "streaming,100,2024-02-01,2024-02-29\n"
        "streaming,100,2024-03-01,2024-03-31\n"
        "streaming,70,2024-04-01,2024-04-30\n"
        "streaming,70,2024-05-01,2024-05-31\n"
    )
    _upload(client, auth_headers, csv)

    trends = client.get("/v1/insights/trends", headers=auth_headers).json()["trends"]

    assert trends == [{"source": "streaming", "has_dropoff": True, "dropoff_percentage": 30, "last_amount": 70.0}]


def test_harvest_attachments_endpoint(client: TestClient, auth_headers: dict, distrokid_csv: str):
    """Test POST /v1/harvest/attachments ingests base64 content once"""
    payload = {
        "attachments": [
            {
                "message_id": "m1",
                "attachment_id": "a1",
                "filename": "earnings.csv",
                "content_base64": base64.b64encode(distrokid_csv.encode()).decode(),
            }
        ]
    }

    first = client.post("/v1/harvest/attachments", json=payload, headers=auth_headers).json()
    second = client.post("/v1/harvest/attachments", json=payload, headers=auth_headers).json()

    assert first["statements_created"] == 1
    assert first["entries_created"] == 3
    assert second["duplicates_skipped"] == 1
    assert second["success"] is True


def test_harvest_attachments_rejects_bad_base64(client: TestClient, auth_headers: dict):
    """Test undecodable content is a client error"""
    payload = {"attachments": [{"message_id": "m1", "filename": "x.csv", "content_base64": "***"}]}

    response = client.post("/v1/harvest/attachments", json=payload, headers=auth_headers)
    assert response.status_code == 422


@patch("royalty_service.services.harvest.HarvestService.harvest_mailbox", new_callable=AsyncMock)
def test_harvest_gmail_endpoint(mock_harvest: AsyncMock, client: TestClient, auth_headers: dict):
    """Test POST /v1/harvest/gmail returns the harvest summary"""
    mock_harvest.return_value = HarvestSummary(statements_created=2, entries_created=9, duplicates_skipped=1)

    response = client.post("/v1/harvest/gmail", json={"access_token": "token"}, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["statements_created"] == 2
    assert data["entries_created"] == 9
    assert data["success"] is True
    mock_harvest.assert_awaited_once_with("user_artist")


@patch("royalty_service.services.harvest.HarvestService.harvest_mailbox", new_callable=AsyncMock)
def test_harvest_gmail_unavailable(mock_harvest: AsyncMock, client: TestClient, auth_headers: dict):
    """Test an unconfigured mailbox maps to 503"""
    mock_harvest.side_effect = MailboxAPIError("No mailbox client configured")

    response = client.post("/v1/harvest/gmail", json={"access_token": "token"}, headers=auth_headers)

    assert response.status_code == 503
