"""
Roster and itinerary-participant mutation for accepted join requests.
"""

from __future__ import annotations

from datetime import datetime

from tripcrew.core.locks import KeyedLock, trip_locks
from tripcrew.core.logging import get_logger
from tripcrew.db.database import get_trips_collection
from tripcrew.models.trip import ItineraryParticipant, itinerary_index
from tripcrew.services.trips import get_trip

logger = get_logger(__name__)


class MembershipRegistrar:
    def __init__(self, locks: KeyedLock = trip_locks) -> None:
        self.locks = locks

    async def admit_member(self, trip_id: str, member_id: str, selected_itinerary_ids: list[str]) -> dict:
        """
        Add member to the roster and to each selected itinerary item that still
        exists. Safe to call repeatedly: no duplicate roster entries and at most
        one participant record per (item, member).
        """
        trips = get_trips_collection()
        async with self.locks.hold(trip_id):
            trip_doc = await get_trip(trip_id)

            await trips.update_one(
                {"_id": trip_doc["_id"]},
                {"$addToSet": {"members": member_id}, "$set": {"updated_at": datetime.utcnow()}},
            )

            items = itinerary_index(trip_doc)
            existing = {
                p.get("itinerary_id")
                for p in trip_doc.get("itinerary_participants", [])
                if p.get("user_id") == member_id
            }
            added = []
            for itinerary_id in dict.fromkeys(selected_itinerary_ids or []):
                if itinerary_id not in items or itinerary_id in existing:
                    continue
                record = ItineraryParticipant(itinerary_id=itinerary_id, user_id=member_id)
                await trips.update_one(
                    {"_id": trip_doc["_id"]},
                    {"$push": {"itinerary_participants": record.model_dump()}},
                )
                added.append(itinerary_id)

            logger.info(
                "member_admitted",
                trip_id=trip_id,
                member_id=member_id,
                already_member=member_id in trip_doc.get("members", []),
                itinerary_added=added,
            )
            return await get_trip(trip_id)
