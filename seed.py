"""
Seed script -- populates the database with sample stations and bikes.

Run after migrations:
    python seed.py

Creates:
  - 6 stations around a city centre, with mixed capacities
  - a fleet of STANDARD and ELECTRIC bikes docked across them
    (never more bikes than a station's capacity)
"""

import asyncio

from sqlalchemy import text
from geoalchemy2.functions import ST_MakePoint, ST_SetSRID

from bikeshare.infrastructure.database import async_session_factory, engine
from bikeshare.infrastructure.models import BikeModel, StationModel
from bikeshare.domain.enums import BikeType


STATIONS = [
    # id, name, address, lat, lng, capacity, standard, electric
    ("st-central", "Central Square", "1 Central Square", 10.7769, 106.7009, 20, 8, 4),
    ("st-riverside", "Riverside Park", "12 Riverside Walk", 10.7740, 106.7060, 15, 5, 3),
    ("st-market", "Old Market", "45 Market Street", 10.7725, 106.6980, 12, 6, 2),
    ("st-university", "University Gate", "200 College Road", 10.7800, 106.6950, 25, 10, 6),
    ("st-station", "Railway Station", "3 Station Plaza", 10.7820, 106.6770, 18, 4, 4),
    ("st-harbour", "Harbour Front", "88 Quay Side", 10.7680, 106.7070, 10, 3, 1),
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM stations"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Stations ──────────────────────────────────────────────────
        for sid, name, address, lat, lng, capacity, _, _ in STATIONS:
            session.add(
                StationModel(
                    id=sid,
                    name=name,
                    address=address,
                    latitude=lat,
                    longitude=lng,
                    location=ST_SetSRID(ST_MakePoint(lng, lat), 4326),
                    capacity=capacity,
                    is_operational=True,
                )
            )
        await session.flush()
        print(f"  Created {len(STATIONS)} stations")

        # ── Bikes ─────────────────────────────────────────────────────
        number = 0
        for sid, _, _, _, _, capacity, standard, electric in STATIONS:
            assert standard + electric <= capacity, sid
            for bike_type, count in ((BikeType.STANDARD, standard), (BikeType.ELECTRIC, electric)):
                for _ in range(count):
                    number += 1
                    session.add(
                        BikeModel(
                            id=f"bike-{number:04d}",
                            bike_number=f"BK{number:04d}",
                            type=bike_type,
                            battery_level=80 + number % 20 if bike_type is BikeType.ELECTRIC else None,
                            current_station_id=sid,
                        )
                    )
        await session.commit()
        print(f"  Created {number} bikes")

    print("Seed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
