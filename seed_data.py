#!/usr/bin/env python3
"""
Seed database with demo buses, routes and trips
"""
import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4
from decimal import Decimal

from app.core.database import async_session, init_db
from app.core.security import create_access_token, ROLE_ADMIN, ROLE_USER
from app.models.bus import Bus, BusStatus
from app.models.route import Route
from app.services.trip_service import trip_service


async def create_demo_buses():
    """Create demo buses"""
    async with async_session() as session:
        buses = [
            Bus(plate_number="BUS-1001", model="Volvo 9700", capacity=40, status=BusStatus.ACTIVE),
            Bus(plate_number="BUS-1002", model="Mercedes Tourismo", capacity=48, status=BusStatus.ACTIVE),
            Bus(plate_number="BUS-1003", model="Setra S 515", capacity=32, status=BusStatus.MAINTENANCE),
        ]
        session.add_all(buses)
        await session.commit()
        print("[OK] Created demo buses")
        return [b.id for b in buses if b.status == BusStatus.ACTIVE]


async def create_demo_routes():
    """Create demo routes"""
    async with async_session() as session:
        routes = [
            Route(departure_city="Lisbon", arrival_city="Porto", distance_km=313),
            Route(departure_city="Porto", arrival_city="Braga", distance_km=55),
            Route(departure_city="Lisbon", arrival_city="Faro", distance_km=278),
        ]
        session.add_all(routes)
        await session.commit()
        print("[OK] Created demo routes")
        return [r.id for r in routes]


async def create_demo_trips(bus_ids, route_ids):
    """Create a week of trips; seats are generated per trip"""
    now = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)
    prices = [Decimal("25.00"), Decimal("12.50"), Decimal("22.00")]
    count = 0
    async with async_session() as session:
        for day in range(1, 8):
            for index, route_id in enumerate(route_ids):
                departure = now + timedelta(days=day, hours=2 * index)
                await trip_service.create_trip(
                    session,
                    route_id=route_id,
                    bus_id=bus_ids[(day + index) % len(bus_ids)],
                    departure_time=departure,
                    arrival_time=departure + timedelta(hours=3),
                    last_booking_time=departure - timedelta(minutes=30),
                    price=prices[index]
                )
                count += 1
    print(f"[OK] Created {count} demo trips")


async def main():
    """Main seeding function"""
    print("Starting database seeding...")

    await init_db()

    bus_ids = await create_demo_buses()
    route_ids = await create_demo_routes()
    await create_demo_trips(bus_ids, route_ids)

    print("\nDatabase seeding completed successfully!")
    print("\nDemo tokens (valid for the configured JWT lifetime):")
    print(f"Admin: {create_access_token(uuid4(), role=ROLE_ADMIN)}")
    print(f"User:  {create_access_token(uuid4(), role=ROLE_USER)}")


if __name__ == "__main__":
    asyncio.run(main())
