"""Seed the database with a demo fleet, a demo customer and an admin.

Idempotent: vehicles are matched by license plate and users by email, so
running it twice leaves one copy of each. Existing reservations are never
touched.

Run inside Docker:
    docker compose exec backend python -m scripts.seed_data
"""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import select

from ridebook.auth.passwords import hash_password
from ridebook.database import async_session_factory, engine
from ridebook.models import User, Vehicle

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

USERS = [
    {"email": "demo@ridebook.example.com", "password": "demo1234", "name": "Demo Rider", "role": "customer"},
    {"email": "admin@ridebook.example.com", "password": "admin1234", "name": "Fleet Admin", "role": "admin"},
]

VEHICLES = [
    {
        "name": "Swift Dzire",
        "brand": "Maruti Suzuki",
        "vehicle_type": "sedan",
        "seats": 4,
        "license_plate": "MH12AB1001",
        "base_location": "Pune",
        "description": "Compact sedan for city rides and airport transfers.",
        "features": ["ac", "music_system", "boot_space"],
        "price_per_km": Decimal("11.00"),
        "price_per_hour": Decimal("180.00"),
    },
    {
        "name": "Innova Crysta",
        "brand": "Toyota",
        "vehicle_type": "suv",
        "seats": 7,
        "license_plate": "MH12AB1002",
        "base_location": "Pune",
        "description": "Seven-seater for family trips and long outstation drives.",
        "features": ["ac", "captain_seats", "luggage_carrier"],
        "price_per_km": Decimal("18.00"),
        "price_per_hour": Decimal("300.00"),
    },
    {
        "name": "Ertiga",
        "brand": "Maruti Suzuki",
        "vehicle_type": "van",
        "seats": 6,
        "license_plate": "MH12AB1003",
        "base_location": "Mumbai",
        "description": "Budget people mover.",
        "features": ["ac", "usb_charging"],
        "price_per_km": Decimal("14.00"),
        "price_per_hour": Decimal("220.00"),
    },
    {
        "name": "Classic 350",
        "brand": "Royal Enfield",
        "vehicle_type": "bike",
        "seats": 2,
        "license_plate": "MH12AB1004",
        "base_location": "Goa",
        "description": "Cruiser for coastal day trips. Helmets included.",
        "features": ["helmets", "saddle_bags"],
        "price_per_km": Decimal("6.00"),
        "price_per_hour": Decimal("90.00"),
    },
    {
        "name": "Fortuner",
        "brand": "Toyota",
        "vehicle_type": "suv",
        "seats": 7,
        "license_plate": "MH12AB1005",
        "base_location": "Mumbai",
        "description": "Premium 4x4 for hill stations.",
        "features": ["ac", "4x4", "sunroof", "gps"],
        "price_per_km": Decimal("24.00"),
        "price_per_hour": Decimal("420.00"),
    },
]


async def seed() -> None:
    """Insert any seed users and vehicles that are not there yet."""
    async with async_session_factory() as session:
        for user_data in USERS:
            result = await session.execute(select(User).where(User.email == user_data["email"]))
            if result.scalar_one_or_none() is not None:
                print(f"   = user {user_data['email']} already exists")
                continue
            session.add(
                User(
                    email=user_data["email"],
                    hashed_password=hash_password(user_data["password"]),
                    name=user_data["name"],
                    role=user_data["role"],
                )
            )
            print(f"✅ Created {user_data['role']} {user_data['email']} / {user_data['password']}")

        created = 0
        for vehicle_data in VEHICLES:
            result = await session.execute(
                select(Vehicle).where(Vehicle.license_plate == vehicle_data["license_plate"])
            )
            if result.scalar_one_or_none() is not None:
                continue
            session.add(Vehicle(**vehicle_data))
            created += 1
            print(f"   🚗 {vehicle_data['brand']} {vehicle_data['name']} ({vehicle_data['price_per_km']}/km)")

        await session.commit()

    await engine.dispose()
    print(f"✅ Created {created} vehicles ({len(VEHICLES) - created} already present)")
    print("🎉 Done! Log in at /api/v1/auth/login")


if __name__ == "__main__":
    asyncio.run(seed())
