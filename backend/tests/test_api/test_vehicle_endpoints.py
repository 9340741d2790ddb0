"""Tests for the vehicle catalogue endpoints."""

import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient

from ridebook.models import VehicleAvailability

pytestmark = pytest.mark.asyncio


class TestListVehicles:
    async def test_list_envelope(self, client: AsyncClient, make_vehicle) -> None:
        await make_vehicle(name="Swift Dzire")
        await make_vehicle(name="Innova", vehicle_type="suv")

        response = await client.get("/api/v1/vehicles")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["total"] == 2
        assert {item["name"] for item in body["data"]["items"]} == {"Swift Dzire", "Innova"}

    async def test_filters(self, client: AsyncClient, make_vehicle) -> None:
        await make_vehicle(vehicle_type="suv", price_per_km=Decimal("18.00"))
        await make_vehicle(vehicle_type="sedan", price_per_km=Decimal("11.00"))
        await make_vehicle(vehicle_type="sedan", availability=VehicleAvailability.MAINTENANCE)

        by_type = (await client.get("/api/v1/vehicles", params={"vehicle_type": "suv"})).json()["data"]
        assert by_type["total"] == 1

        available = (await client.get("/api/v1/vehicles", params={"availability": "available"})).json()["data"]
        assert available["total"] == 2

        cheap = (await client.get("/api/v1/vehicles", params={"max_price_per_km": "12"})).json()["data"]
        assert cheap["total"] == 2

    async def test_pagination(self, client: AsyncClient, make_vehicle) -> None:
        for _ in range(3):
            await make_vehicle()
        data = (await client.get("/api/v1/vehicles", params={"skip": 2, "limit": 2})).json()["data"]
        assert data["total"] == 3
        assert len(data["items"]) == 1

    async def test_bad_availability(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/vehicles", params={"availability": "parked"})
        assert response.status_code == 400
        assert response.json()["data"] == {"field": "availability"}


class TestGetVehicle:
    async def test_found(self, client: AsyncClient, test_vehicle) -> None:
        response = await client.get(f"/api/v1/vehicles/{test_vehicle.id}")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == str(test_vehicle.id)
        assert data["availability"] == "available"
        assert data["price_per_km"] == "10.00"

    async def test_not_found(self, client: AsyncClient) -> None:
        response = await client.get(f"/api/v1/vehicles/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Vehicle not found", "data": None}


class TestMaintenance:
    async def test_admin_toggles(self, client: AsyncClient, admin_headers: dict, test_vehicle) -> None:
        response = await client.post(
            f"/api/v1/vehicles/{test_vehicle.id}/maintenance", json={"enabled": True}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["availability"] == "maintenance"
        assert response.json()["message"] == "Vehicle is now maintenance"

        response = await client.post(
            f"/api/v1/vehicles/{test_vehicle.id}/maintenance", json={"enabled": False}, headers=admin_headers
        )
        assert response.json()["data"]["availability"] == "available"

    async def test_customer_forbidden(self, client: AsyncClient, auth_headers: dict, test_vehicle) -> None:
        response = await client.post(
            f"/api/v1/vehicles/{test_vehicle.id}/maintenance", json={"enabled": True}, headers=auth_headers
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Admin access required"

    async def test_unknown_vehicle(self, client: AsyncClient, admin_headers: dict) -> None:
        response = await client.post(
            f"/api/v1/vehicles/{uuid.uuid4()}/maintenance", json={"enabled": True}, headers=admin_headers
        )
        assert response.status_code == 404
