"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 1 verified admin (``superadmin`` / ``admin123``)
  - 4 customers (password ``customer123``)
  - 5 verified drivers around Mumbai airport, each with a cab
    (password ``driver123``)
  - 3 sample trips (SCHEDULED, COMPLETED and CANCELLED)
"""

import asyncio
from datetime import timedelta

from sqlalchemy import text

from src.config import settings
from src.domain.enums import Role, TripStatus
from src.domain.lifecycle import utcnow
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import CabModel, TripModel, UserModel
from src.infrastructure.security import hash_password

# Mumbai airport coordinates (approx)
AIRPORT_LAT, AIRPORT_LNG = 19.0896, 72.8656


CUSTOMERS = [
    {"username": "aarav", "email": "aarav@example.com", "address": "Andheri"},
    {"username": "priya", "email": "priya@example.com", "address": "Bandra"},
    {"username": "rohan", "email": "rohan@example.com", "address": "Powai"},
    {"username": "sneha", "email": "sneha@example.com", "address": "Dadar"},
]

DRIVERS = [
    {"username": "vikram", "licence_no": "MH01-2019-0001", "rating": 4.8,
     "lat": 19.0900, "lng": 72.8660, "car_type": "Sedan", "rate": 15.0, "plate": "MH01AB1234"},
    {"username": "ananya", "licence_no": "MH01-2020-0002", "rating": 4.6,
     "lat": 19.0880, "lng": 72.8640, "car_type": "Sedan", "rate": 15.0, "plate": "MH01AB2345"},
    {"username": "karan", "licence_no": "MH02-2018-0003", "rating": 4.3,
     "lat": 19.0910, "lng": 72.8670, "car_type": "SUV", "rate": 22.0, "plate": "MH02CD3456"},
    {"username": "meera", "licence_no": "MH02-2021-0004", "rating": 4.9,
     "lat": 19.0870, "lng": 72.8630, "car_type": "SUV", "rate": 24.0, "plate": "MH02CD4567"},
    {"username": "arjun", "licence_no": "MH03-2017-0005", "rating": 4.4,
     "lat": 19.0930, "lng": 72.8690, "car_type": "Mini", "rate": 11.0, "plate": "MH03EF5678"},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        rounds = settings.bcrypt_rounds

        # ── Admin ─────────────────────────────────────────────────────
        session.add(
            UserModel(
                role=Role.ADMIN,
                username="superadmin",
                password_hash=hash_password("admin123", rounds),
                email="admin@example.com",
                name="Super Admin",
                verified=True,
                email_verified=True,
            )
        )

        # ── Customers ─────────────────────────────────────────────────
        customers = []
        for c in CUSTOMERS:
            m = UserModel(
                role=Role.CUSTOMER,
                username=c["username"],
                password_hash=hash_password("customer123", rounds),
                email=c["email"],
                address=c["address"],
            )
            session.add(m)
            customers.append(m)
        await session.flush()
        print(f"  Created 1 admin and {len(customers)} customers")

        # ── Drivers and cabs ──────────────────────────────────────────
        drivers, cabs = [], []
        for d in DRIVERS:
            driver = UserModel(
                role=Role.DRIVER,
                username=d["username"],
                password_hash=hash_password("driver123", rounds),
                email=f"{d['username']}@example.com",
                licence_no=d["licence_no"],
                rating=d["rating"],
                total_ratings=10,
                verified=True,
                is_available=True,
                latitude=d["lat"],
                longitude=d["lng"],
            )
            session.add(driver)
            drivers.append(driver)
        await session.flush()

        for driver, d in zip(drivers, DRIVERS):
            cab = CabModel(
                driver_id=driver.id,
                car_type=d["car_type"],
                per_km_rate=d["rate"],
                number_plate=d["plate"],
                is_available=True,
            )
            session.add(cab)
            cabs.append(cab)
        await session.flush()
        print(f"  Created {len(drivers)} drivers with cabs")

        # ── Trips ─────────────────────────────────────────────────────
        now = utcnow()
        session.add_all(
            [
                TripModel(
                    customer_id=customers[0].id,
                    from_location="Mumbai Airport T2",
                    to_location="Andheri East",
                    from_latitude=AIRPORT_LAT,
                    from_longitude=AIRPORT_LNG,
                    car_type="Sedan",
                    scheduled_at=now + timedelta(hours=2),
                    status=TripStatus.SCHEDULED,
                ),
                TripModel(
                    customer_id=customers[1].id,
                    driver_id=drivers[2].id,
                    cab_id=cabs[2].id,
                    from_location="Mumbai Airport T1",
                    to_location="Powai",
                    car_type="SUV",
                    scheduled_at=now - timedelta(days=1, hours=1),
                    from_date_time=now - timedelta(days=1),
                    to_date_time=now - timedelta(days=1) + timedelta(minutes=40),
                    distance_in_km=12.5,
                    bill=12.5 * DRIVERS[2]["rate"],
                    status=TripStatus.COMPLETED,
                    customer_rating=4,
                ),
                TripModel(
                    customer_id=customers[2].id,
                    from_location="Mumbai Airport T2",
                    to_location="Dadar",
                    car_type="Mini",
                    scheduled_at=now - timedelta(hours=3),
                    status=TripStatus.CANCELLED,
                ),
            ]
        )
        await session.flush()
        print("  Created 3 trips")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
