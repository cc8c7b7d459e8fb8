"""
API tests through the FastAPI application.
Exercises authentication, role checks, the error envelope and the main
renting and notification endpoints.
"""

import pytest
import uuid
from typing import Dict

from httpx import AsyncClient

from rental_api.models.notification import NotificationChannel
from rental_api.models.property import Property
from rental_api.models.user import User
from tests.conftest import RecordingDispatcher

API = "/api/v1"


class TestHealth:
    """Test health and info endpoints."""

    @pytest.mark.asyncio
    async def test_root(self, client: AsyncClient):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["api_prefix"] == API

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client: AsyncClient):
        response = await client.get("/", headers={"X-Request-ID": "abc12345"})
        assert response.headers["X-Request-ID"] == "abc12345"

    @pytest.mark.asyncio
    async def test_request_id_generated(self, client: AsyncClient):
        response = await client.get("/")
        assert len(response.headers["X-Request-ID"]) == 8


class TestAuthEndpoints:
    """Test registration, login and the current user endpoint."""

    @pytest.mark.asyncio
    async def test_register_and_login(self, client: AsyncClient):
        payload = {
            "email": "nour@example.com",
            "password": "strongpassword1",
            "full_name": "Nour Saleh",
            "role": "landlord",
        }
        response = await client.post(f"{API}/auth/register", json=payload)
        assert response.status_code == 201
        body = response.json()
        assert body["user"]["email"] == "nour@example.com"
        assert body["access_token"]

        response = await client.post(
            f"{API}/auth/login", json={"email": "nour@example.com", "password": "strongpassword1"}
        )
        assert response.status_code == 200
        token = response.json()["access_token"]

        response = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["role"] == "landlord"

    @pytest.mark.asyncio
    async def test_register_admin_forbidden(self, client: AsyncClient):
        response = await client.post(f"{API}/auth/register", json={
            "email": "boss@example.com",
            "password": "strongpassword1",
            "full_name": "Big Boss",
            "role": "admin",
        })
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient, renter: User):
        response = await client.post(f"{API}/auth/login", json={"email": renter.email, "password": "nope-nope"})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_me_requires_token(self, client: AsyncClient):
        response = await client.get(f"{API}/auth/me")
        assert response.status_code in (401, 403)


class TestErrorEnvelope:
    """Test the structured error format."""

    @pytest.mark.asyncio
    async def test_not_found(self, client: AsyncClient, renter_headers: Dict[str, str]):
        response = await client.get(
            f"{API}/rent-requests/{uuid.uuid4()}",
            headers={**renter_headers, "X-Request-ID": "trace001"},
        )

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "NOT_FOUND"
        assert error["request_id"] == "trace001"
        assert error["timestamp"].endswith("Z")

    @pytest.mark.asyncio
    async def test_validation_details(
        self, client: AsyncClient, renter_headers: Dict[str, str], listing: Property
    ):
        response = await client.post(
            f"{API}/rent-requests",
            json={"property_id": str(listing.id), "months": 0},
            headers=renter_headers,
        )

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert any("months" in detail["field"] for detail in error["details"])


class TestPropertyEndpoints:
    """Test listing creation, role checks and search."""

    def _payload(self) -> dict:
        return {
            "title": "Family house in Khalda",
            "description": "Three-bedroom house with a private garden and a quiet street.",
            "price": 700,
            "city": "Amman",
            "area": "Khalda",
            "address": "18 Wasfi Al Tal Street",
            "bedrooms": 3,
            "bathrooms": 2,
        }

    @pytest.mark.asyncio
    async def test_landlord_creates_listing_pending_verification(
        self, client: AsyncClient, landlord_headers: Dict[str, str]
    ):
        response = await client.post(f"{API}/properties", json=self._payload(), headers=landlord_headers)

        assert response.status_code == 201
        assert response.json()["status"] == "pending_verification"

    @pytest.mark.asyncio
    async def test_renter_cannot_create_listing(self, client: AsyncClient, renter_headers: Dict[str, str]):
        response = await client.post(f"{API}/properties", json=self._payload(), headers=renter_headers)

        assert response.status_code == 403
        assert "error" in response.json()

    @pytest.mark.asyncio
    async def test_admin_verifies_listing(
        self, client: AsyncClient, landlord_headers: Dict[str, str], admin_headers: Dict[str, str],
        renter_headers: Dict[str, str]
    ):
        created = (await client.post(f"{API}/properties", json=self._payload(), headers=landlord_headers)).json()

        response = await client.post(
            f"{API}/properties/{created['id']}/verify", json={"approved": True}, headers=renter_headers
        )
        assert response.status_code == 403

        response = await client.post(
            f"{API}/properties/{created['id']}/verify", json={"approved": True}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "available"

    @pytest.mark.asyncio
    async def test_search_by_city_and_price(self, client: AsyncClient, listing: Property):
        response = await client.get(f"{API}/properties", params={"city": "Amman", "max_price": 500})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["properties"][0]["id"] == str(listing.id)

        response = await client.get(f"{API}/properties", params={"min_price": 600})
        assert response.json()["total"] == 0


class TestRentRequestEndpoints:
    """Test the rent request flow over HTTP."""

    @pytest.mark.asyncio
    async def test_request_accept_and_sign(
        self, client: AsyncClient, dispatcher: RecordingDispatcher, listing: Property,
        renter_headers: Dict[str, str], landlord_headers: Dict[str, str]
    ):
        response = await client.post(
            f"{API}/rent-requests",
            json={"property_id": str(listing.id), "months": 12, "message": "Looking to move in next month."},
            headers=renter_headers,
        )
        assert response.status_code == 201
        request_id = response.json()["id"]
        assert dispatcher.sent(NotificationChannel.EMAIL)

        response = await client.get(f"{API}/rent-requests", headers=landlord_headers)
        assert response.json()["total"] == 1

        response = await client.post(
            f"{API}/rent-requests/{request_id}/respond", json={"status": "accepted"}, headers=renter_headers
        )
        assert response.status_code == 403

        response = await client.post(
            f"{API}/rent-requests/{request_id}/respond", json={"status": "accepted"}, headers=landlord_headers
        )
        assert response.status_code == 200
        contract_id = response.json()["contract_id"]
        assert contract_id

        response = await client.post(f"{API}/contracts/{contract_id}/accept", json={}, headers=renter_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "active"

        response = await client.get(f"{API}/properties/{listing.id}", headers=landlord_headers)
        assert response.json()["status"] == "rented"

    @pytest.mark.asyncio
    async def test_invalid_response_status(
        self, client: AsyncClient, listing: Property, renter_headers: Dict[str, str],
        landlord_headers: Dict[str, str]
    ):
        created = (await client.post(
            f"{API}/rent-requests", json={"property_id": str(listing.id), "months": 6}, headers=renter_headers
        )).json()

        response = await client.post(
            f"{API}/rent-requests/{created['id']}/respond", json={"status": "completed"}, headers=landlord_headers
        )
        assert response.status_code == 422


class TestNotificationEndpoints:
    """Test the notification inbox, preferences and push tokens."""

    async def _message_landlord(self, client: AsyncClient, landlord: User, renter_headers: Dict[str, str]):
        response = await client.post(
            f"{API}/messages",
            json={"receiver_id": str(landlord.id), "content": "Hello, is the flat available?"},
            headers=renter_headers,
        )
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_inbox_and_read(
        self, client: AsyncClient, landlord: User, renter_headers: Dict[str, str],
        landlord_headers: Dict[str, str]
    ):
        await self._message_landlord(client, landlord, renter_headers)
        await self._message_landlord(client, landlord, renter_headers)

        response = await client.get(f"{API}/notifications", headers=landlord_headers)
        body = response.json()
        assert body["total"] == 2
        assert body["unread_count"] == 2
        notification_id = body["notifications"][0]["id"]
        assert body["notifications"][0]["title"] == "New message from Lina Khalil"

        response = await client.patch(f"{API}/notifications/{notification_id}/read", headers=landlord_headers)
        assert response.json()["read"] is True

        response = await client.get(f"{API}/notifications/unread-count", headers=landlord_headers)
        assert response.json() == {"unread_count": 1}

        response = await client.post(f"{API}/notifications/read-all", headers=landlord_headers)
        assert response.json() == {"updated": 1}

        response = await client.get(
            f"{API}/notifications", params={"unread_only": True}, headers=landlord_headers
        )
        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_deliveries_endpoint(
        self, client: AsyncClient, landlord: User, renter_headers: Dict[str, str],
        landlord_headers: Dict[str, str]
    ):
        await self._message_landlord(client, landlord, renter_headers)
        notification_id = (await client.get(f"{API}/notifications", headers=landlord_headers)).json()["notifications"][0]["id"]

        response = await client.get(f"{API}/notifications/{notification_id}/deliveries", headers=landlord_headers)
        statuses = {d["channel"]: d["status"] for d in response.json()}
        assert statuses == {"push": "skipped", "email": "sent", "sms": "skipped"}

        response = await client.get(f"{API}/notifications/{notification_id}/deliveries", headers=renter_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_preferences(
        self, client: AsyncClient, dispatcher: RecordingDispatcher, landlord: User,
        renter_headers: Dict[str, str], landlord_headers: Dict[str, str]
    ):
        response = await client.get(f"{API}/notifications/preferences", headers=landlord_headers)
        assert response.status_code == 200
        assert response.json()["email"] is True
        assert response.json()["categories"]["messages"]["email"] is True

        response = await client.put(
            f"{API}/notifications/preferences",
            json={"quiet_hours_enabled": True, "quiet_hours_start": 23, "quiet_hours_end": 6, "timezone": "Asia/Amman"},
            headers=landlord_headers,
        )
        assert response.status_code == 200
        assert response.json()["timezone"] == "Asia/Amman"

        response = await client.patch(
            f"{API}/notifications/preferences/categories/messages",
            json={"key": "email", "value": False},
            headers=landlord_headers,
        )
        assert response.json()["categories"]["messages"]["email"] is False

        await self._message_landlord(client, landlord, renter_headers)
        assert dispatcher.sent(NotificationChannel.EMAIL) == []

    @pytest.mark.asyncio
    async def test_invalid_timezone(self, client: AsyncClient, landlord_headers: Dict[str, str]):
        response = await client.put(
            f"{API}/notifications/preferences", json={"timezone": "Not/AZone"}, headers=landlord_headers
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_device_tokens(
        self, client: AsyncClient, dispatcher: RecordingDispatcher, landlord: User,
        renter_headers: Dict[str, str], landlord_headers: Dict[str, str]
    ):
        token = "ExponentPushToken[omar-tablet]"
        response = await client.post(
            f"{API}/notifications/device-tokens", json={"token": token, "platform": "android"},
            headers=landlord_headers,
        )
        assert response.status_code == 201

        await self._message_landlord(client, landlord, renter_headers)
        assert dispatcher.sent(NotificationChannel.PUSH)[0].recipients == [token]

        response = await client.delete(f"{API}/notifications/device-tokens/{token}", headers=renter_headers)
        assert response.status_code == 404

        response = await client.delete(f"{API}/notifications/device-tokens/{token}", headers=landlord_headers)
        assert response.status_code == 200
