"""Demo pointer endpoint tests."""

import pytest


@pytest.mark.asyncio
async def test_no_demo_is_public(test_client):
    resp = await test_client.get("/api/v1/demo")

    assert resp.status_code == 200
    assert resp.json()["hasDemo"] is False


@pytest.mark.asyncio
async def test_admin_sets_demo(test_client, admin, auth_headers_for, project_factory):
    project = project_factory(owner_id=admin.user_id)

    resp = await test_client.post(
        "/api/v1/demo",
        json={"projectId": project.id, "displayName": "City block"},
        headers=auth_headers_for(admin),
    )
    assert resp.status_code == 200
    assert resp.json()["projectId"] == project.id

    resp = await test_client.get("/api/v1/demo")
    body = resp.json()
    assert body["hasDemo"] is True
    assert body["projectId"] == project.id
    assert body["displayName"] == "City block"
    assert body["setAt"]


@pytest.mark.asyncio
async def test_non_admin_cannot_set_demo(test_client, owner, auth_headers_for, project_factory):
    project = project_factory(owner_id=owner.user_id)

    resp = await test_client.post(
        "/api/v1/demo",
        json={"projectId": project.id, "displayName": "Mine"},
        headers=auth_headers_for(owner),
    )

    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_set_demo_for_missing_project_is_404(test_client, admin, auth_headers_for):
    resp = await test_client.post(
        "/api/v1/demo",
        json={"projectId": "nope", "displayName": "Ghost"},
        headers=auth_headers_for(admin),
    )

    assert resp.status_code == 404
    assert (await test_client.get("/api/v1/demo")).json()["hasDemo"] is False


@pytest.mark.asyncio
async def test_demo_stays_after_project_deleted(
    test_client, admin, auth_headers_for, project_factory
):
    project = project_factory(owner_id=admin.user_id)
    headers = auth_headers_for(admin)
    await test_client.post(
        "/api/v1/demo",
        json={"projectId": project.id, "displayName": "Gone later"},
        headers=headers,
    )

    resp = await test_client.delete(f"/api/v1/clouds/{project.id}", headers=headers)
    assert resp.status_code == 200

    body = (await test_client.get("/api/v1/demo")).json()
    assert body["hasDemo"] is True
    assert body["projectId"] == project.id
