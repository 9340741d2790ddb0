"""Tests for the route quote endpoint."""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from ridebook.errors import RouteNotFound
from ridebook.models import VehicleAvailability

pytestmark = pytest.mark.asyncio


class TestQuote:
    async def test_prices_available_vehicles_cheapest_first(
        self, client: AsyncClient, distance, make_vehicle
    ) -> None:
        await make_vehicle(name="Innova", price_per_km=Decimal("18.00"))
        await make_vehicle(name="Dzire", price_per_km=Decimal("11.00"))
        await make_vehicle(name="Parked", availability=VehicleAvailability.MAINTENANCE)
        await make_vehicle(name="Unpriced", price_per_km=None)

        response = await client.post("/api/v1/quotes", json={"origin": " Pune ", "destination": "Mumbai"})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "2 vehicles available"
        data = body["data"]
        assert data["origin"] == "Pune"
        assert data["distance"]["km"] == "25.00"
        assert data["distance"]["duration_minutes"] == 45
        assert [item["vehicle"]["name"] for item in data["vehicles"]] == ["Dzire", "Innova"]
        assert [item["total_price"] for item in data["vehicles"]] == ["275.00", "450.00"]
        assert data["vehicles"][0]["distance_km"] == "25.00"
        assert data["vehicles"][0]["pricing_model"] == "per-kilometer"
        assert data["total_vehicles"] == 2
        assert data["price_range"] == {"min": "275.00", "max": "450.00"}
        assert distance.calls == [("Pune", "Mumbai")]

    async def test_no_vehicles(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/quotes", json={"origin": "Pune", "destination": "Mumbai"})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "No vehicles available for this route"
        assert body["data"]["vehicles"] == []
        assert body["data"]["price_range"] is None

    async def test_missing_destination(self, client: AsyncClient, distance) -> None:
        response = await client.post("/api/v1/quotes", json={"origin": "Pune"})

        assert response.status_code == 400
        assert response.json()["data"] == {"field": "destination"}
        assert distance.calls == []

    async def test_route_not_found(self, client: AsyncClient, distance) -> None:
        async def no_route(origin: str, destination: str):
            raise RouteNotFound("No route found between these locations")

        distance.distance = no_route
        response = await client.post("/api/v1/quotes", json={"origin": "Pune", "destination": "Honolulu"})

        assert response.status_code == 400
        assert response.json()["message"] == "No route found between these locations"
