import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

# Allow importing from backend/tripcrew
sys.path.insert(0, str(Path(__file__).parent.parent))

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-secret")

from tripcrew.db import database
from tripcrew.models.trip import ItineraryItem, Trip
from tripcrew.services.reputation import ReputationLedger
from tripcrew.services.trips import TripService
from tripcrew.services.users import ensure_user

HOST_ID = "host-1"
VISITOR_ID = "visitor-1"
OTHER_ID = "visitor-2"


@pytest_asyncio.fixture(autouse=True)
async def mongo_db():
    """Fresh in-memory database per test, with the production indexes."""
    client = AsyncMongoMockClient()
    db = client["tripcrew_test"]
    database.set_database(db, client=None)
    await database.init_indexes()
    try:
        yield db
    finally:
        database.set_database(None)


@pytest.fixture
def ledger():
    return ReputationLedger()


@pytest_asyncio.fixture
async def users():
    await ensure_user(HOST_ID, "Hema Host", "hema@example.com")
    await ensure_user(VISITOR_ID, "Vikram Anand Seth", "vikram@example.com")
    await ensure_user(OTHER_ID, "olivia", "olivia@example.com")
    return {"host": HOST_ID, "visitor": VISITOR_ID, "other": OTHER_ID}


def build_trip(**overrides) -> Trip:
    start = datetime(2025, 7, 12, 6, 0)
    fields = dict(
        name="Monsoon trek",
        destination="Lonavala",
        start_date=start,
        end_date=start + timedelta(days=1),
        budget=2500,
        itinerary=[
            ItineraryItem(id="i1", day="Day 1", start_time=7.0, end_time=11.5, experience_name="Rajmachi trail"),
            ItineraryItem(id="i2", day="Day 1", time_slot="Evening", category="Campfire"),
        ],
        creator_id=HOST_ID,
    )
    fields.update(overrides)
    return Trip(**fields)


@pytest_asyncio.fixture
async def trip(users, ledger):
    """A trip hosted by HOST_ID; creation already granted the +70 host award."""
    return await TripService(ledger).create_trip(HOST_ID, build_trip())


async def score_of(db, user_id: str) -> int:
    doc = await db.users.find_one({"google_id": user_id})
    return doc["reputation_score"]
