"""
Integration tests for visit requests and listing reports.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from tests.conftest import auth_headers, error_body

API = "/api/v1"


def _future(days: int = 3) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


async def _request_visit(client: AsyncClient, property_id, user, **overrides):
    payload = {"visit_date": _future(), "message": "Can I come by on the weekend?"}
    payload.update(overrides)
    return await client.post(f"{API}/properties/{property_id}/visits", json=payload, headers=auth_headers(user))


class TestVisitEndpoints:
    """Requesting and answering visits."""

    @pytest.mark.asyncio
    async def test_request_visit(self, async_client: AsyncClient, test_seeker, published_property):
        response = await _request_visit(async_client, published_property.id, test_seeker)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["user_id"] == str(test_seeker.id)
        assert data["property_id"] == str(published_property.id)

        mine = await async_client.get(f"{API}/visits/my", headers=auth_headers(test_seeker))
        assert [visit["id"] for visit in mine.json()] == [data["id"]]

    @pytest.mark.asyncio
    async def test_visit_in_the_past(self, async_client: AsyncClient, test_seeker, published_property):
        response = await _request_visit(async_client, published_property.id, test_seeker, visit_date=_future(-1))

        assert response.status_code == 422
        assert error_body(response)["message"] == "Visit date must be in the future"

    @pytest.mark.asyncio
    async def test_owner_cannot_visit_own_property(self, async_client: AsyncClient, test_owner, published_property):
        response = await _request_visit(async_client, published_property.id, test_owner)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_draft_cannot_be_visited(self, async_client: AsyncClient, test_seeker, draft_property):
        response = await _request_visit(async_client, draft_property.id, test_seeker)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_owner_answers_request(self, async_client: AsyncClient, test_owner, test_seeker, published_property):
        visit = (await _request_visit(async_client, published_property.id, test_seeker)).json()

        listing = await async_client.get(
            f"{API}/properties/{published_property.id}/visits?status=pending", headers=auth_headers(test_owner)
        )
        assert [item["id"] for item in listing.json()] == [visit["id"]]

        approved = await async_client.put(
            f"{API}/visits/{visit['id']}/status", json={"status": "approved"}, headers=auth_headers(test_owner)
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"

        again = await async_client.put(
            f"{API}/visits/{visit['id']}/status", json={"status": "rejected"}, headers=auth_headers(test_owner)
        )
        assert again.status_code == 400
        assert error_body(again)["message"] == "Visit is already approved"

    @pytest.mark.asyncio
    async def test_requester_cannot_approve(self, async_client: AsyncClient, test_seeker, published_property):
        visit = (await _request_visit(async_client, published_property.id, test_seeker)).json()

        response = await async_client.put(
            f"{API}/visits/{visit['id']}/status", json={"status": "approved"}, headers=auth_headers(test_seeker)
        )
        assert response.status_code == 403

        cancelled = await async_client.put(
            f"{API}/visits/{visit['id']}/status", json={"status": "cancelled"}, headers=auth_headers(test_seeker)
        )
        assert cancelled.json()["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_other_users_cannot_see_property_visits(
        self, async_client: AsyncClient, test_seeker, published_property
    ):
        response = await async_client.get(
            f"{API}/properties/{published_property.id}/visits", headers=auth_headers(test_seeker)
        )
        assert response.status_code == 403


class TestReportEndpoints:
    """Reporting listings."""

    @pytest.mark.asyncio
    async def test_report_property(self, async_client: AsyncClient, test_seeker, published_property):
        url = f"{API}/properties/{published_property.id}/reports"
        response = await async_client.post(
            url, json={"reason": "Already_Sold", "description": "Sold last month"}, headers=auth_headers(test_seeker)
        )

        assert response.status_code == 201
        assert response.json()["reason"] == "already_sold"
        assert response.json()["status"] == "open"

        duplicate = await async_client.post(url, json={"reason": "fraud"}, headers=auth_headers(test_seeker))
        assert duplicate.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_reason(self, async_client: AsyncClient, test_seeker, published_property):
        response = await async_client.post(
            f"{API}/properties/{published_property.id}/reports",
            json={"reason": "ugly"},
            headers=auth_headers(test_seeker),
        )

        assert response.status_code == 422
        assert error_body(response)["details"][0]["field"] == "body -> reason"
