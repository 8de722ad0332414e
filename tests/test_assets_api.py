from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from registry_api.app import app, get_asset_service
from registry_api.entities import AssetRecord
from registry_api.service import AssetService


@pytest.mark.anyio
async def test_create_and_get_asset(client):
    payload = {"gmrVmrNo": "GMR-101", "caseNo": "C-7/2024", "description": "Seized laptop"}
    resp = await client.post("/api/assets", json=payload)
    assert resp.status_code == 201
    created = resp.json()
    assert created["gmrVmrNo"] == "GMR-101"
    assert created["caseNo"] == "C-7/2024"
    assert created["location"] is None
    assert "createdAt" in created and "updatedAt" in created

    fetched = await client.get("/api/assets/GMR-101")
    assert fetched.status_code == 200
    assert fetched.json()["description"] == "Seized laptop"


@pytest.mark.anyio
async def test_duplicate_business_key_is_distinct_400(client):
    payload = {"gmrVmrNo": "GMR-1", "caseNo": "C-1"}
    assert (await client.post("/api/assets", json=payload)).status_code == 201

    resp = await client.post("/api/assets", json={"gmrVmrNo": "GMR-1", "caseNo": "C-2"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == {"message": "Asset with gmrVmrNo GMR-1 already exists"}

    listed = (await client.get("/api/assets")).json()
    assert len(listed["assets"]) == 1


@pytest.mark.anyio
async def test_validation_failure_lists_fields(client):
    resp = await client.post("/api/assets", json={"gmrVmrNo": "  ", "remarks": "no case"})
    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["fields"] == ["gmrVmrNo", "caseNo"]
    assert detail["message"].startswith("Invalid asset fields")


@pytest.mark.anyio
async def test_list_assets_newest_first(client, db_session):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for offset, key in enumerate(["A-1", "A-2", "A-3"]):
        db_session.add(AssetRecord(gmr_vmr_no=key, case_no="C", created_at=base + timedelta(days=offset)))
    db_session.commit()

    resp = await client.get("/api/assets")
    assert resp.status_code == 200
    assert [asset["gmrVmrNo"] for asset in resp.json()["assets"]] == ["A-3", "A-2", "A-1"]


@pytest.mark.anyio
async def test_get_unknown_asset_returns_404(client):
    resp = await client.get("/api/assets/missing")
    assert resp.status_code == 404
    assert resp.json()["detail"]["message"] == "Asset missing not found"


@pytest.mark.anyio
async def test_database_failure_returns_500(client, db_session):
    class BrokenSession:
        def execute(self, *args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection refused"))

    app.dependency_overrides[get_asset_service] = lambda: AssetService(BrokenSession())
    resp = await client.get("/api/assets")
    assert resp.status_code == 500
    detail = resp.json()["detail"]
    assert detail["message"] == "Error fetching assets"
    assert "connection refused" in detail["error"]


@pytest.mark.anyio
async def test_create_asset_without_body_lists_required_fields(client):
    resp = await client.post("/api/assets")
    assert resp.status_code == 400
    assert resp.json()["detail"]["fields"] == ["gmrVmrNo", "caseNo"]


@pytest.mark.anyio
async def test_create_asset_with_non_object_body_returns_400(client):
    resp = await client.post("/api/assets", json="GMR-1")
    assert resp.status_code == 400
    assert resp.json()["detail"]["message"] == "Invalid request body"
