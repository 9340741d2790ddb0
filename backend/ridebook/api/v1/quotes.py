"""Route quote API router."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ridebook.api.deps import get_db, get_distance_provider
from ridebook.maps.distance import DistanceProvider
from ridebook.schemas.common import ApiResponse, ok
from ridebook.schemas.quote import QuoteRequest, QuoteResponse
from ridebook.services.quote_service import quote_route

router = APIRouter(prefix="/api/v1/quotes", tags=["quotes"])


@router.post("", response_model=ApiResponse[QuoteResponse], summary="Price every available vehicle for a route")
async def create_quote(
    body: QuoteRequest,
    db: AsyncSession = Depends(get_db),
    distance_provider: DistanceProvider = Depends(get_distance_provider),
) -> dict:
    quote = await quote_route(db, distance_provider, body.origin, body.destination)
    price_range = quote.price_range
    data = {
        "origin": quote.origin,
        "destination": quote.destination,
        "distance": {
            "km": quote.route.km,
            "text": quote.route.text,
            "duration_text": quote.route.duration_text,
            "duration_minutes": quote.route.duration_minutes,
        },
        "vehicles": [
            {
                "vehicle": item.vehicle,
                "rate_per_km": item.rate,
                "distance_km": item.distance_km,
                "total_price": item.total_price,
            }
            for item in quote.vehicles
        ],
        "total_vehicles": len(quote.vehicles),
        "price_range": {"min": price_range[0], "max": price_range[1]} if price_range else None,
    }
    if not quote.vehicles:
        return ok(data, "No vehicles available for this route")
    return ok(data, f"{len(quote.vehicles)} vehicles available")
