"""
Trip store: creation, lookup, status changes and deletion.
"""

from __future__ import annotations

from datetime import datetime

from bson import ObjectId

from tripcrew.core.errors import AuthorizationError, InvalidOperation, NotFoundError
from tripcrew.core.logging import get_logger
from tripcrew.db.database import get_chat_rooms_collection, get_trips_collection
from tripcrew.models.trip import TRIP_STATUS_TRANSITIONS, Trip, TripStatus
from tripcrew.services.reputation import ReputationLedger

logger = get_logger(__name__)


def to_object_id(trip_id: str) -> ObjectId:
    if not ObjectId.is_valid(trip_id):
        raise NotFoundError(f"Trip {trip_id} not found")
    return ObjectId(trip_id)


def serialize_trip(trip_doc: dict) -> dict:
    """Copy of a trip document with a string trip_id instead of _id."""
    doc = dict(trip_doc)
    doc["trip_id"] = str(doc.pop("_id"))
    return doc


async def get_trip(trip_id: str) -> dict:
    trip_doc = await get_trips_collection().find_one({"_id": to_object_id(trip_id)})
    if not trip_doc:
        raise NotFoundError(f"Trip {trip_id} not found")
    return trip_doc


def require_host(trip_doc: dict, user_id: str, action: str) -> None:
    if trip_doc.get("creator_id") != user_id:
        raise AuthorizationError(f"Not authorized to {action} for this trip")


class TripService:
    def __init__(self, ledger: ReputationLedger | None = None) -> None:
        self.ledger = ledger or ReputationLedger()

    async def create_trip(self, host_id: str, trip: Trip) -> dict:
        """
        Persist a new trip with the host on the roster, then grant the hosting
        award (once per trip, guarded by host_award_granted).
        """
        trip.creator_id = host_id
        trip.members = [host_id]
        trip.itinerary_participants = []
        trip.attendance = []
        trip.attendance_version = 0
        trip.host_award_granted = False
        if not trip.location:
            trip.location = trip.destination
        if trip.end_date < trip.start_date:
            raise InvalidOperation("Trip end date must not be before its start date")
        item_ids = [item.id for item in trip.itinerary]
        if len(item_ids) != len(set(item_ids)):
            raise InvalidOperation("Itinerary item ids must be unique")

        result = await get_trips_collection().insert_one(trip.model_dump())
        trip_id = str(result.inserted_id)
        logger.info("trip_created", trip_id=trip_id, host_id=host_id, items=len(item_ids))

        await self.ledger.award_host_trip(trip_id, host_id)
        return serialize_trip(await get_trip(trip_id))

    async def trips_for_user(self, user_id: str) -> list[dict]:
        """Trips the user hosts or is a member of, newest first."""
        cursor = get_trips_collection().find({"members": user_id}).sort("created_at", -1)
        return [serialize_trip(doc) for doc in await cursor.to_list(length=None)]

    async def update_status(self, trip_id: str, host_id: str, new_status: TripStatus | str) -> dict:
        new_status = TripStatus(new_status)
        trip_doc = await get_trip(trip_id)
        require_host(trip_doc, host_id, "change the status")

        current = TripStatus(trip_doc.get("status", TripStatus.PLANNING.value))
        if new_status not in TRIP_STATUS_TRANSITIONS[current]:
            raise InvalidOperation(f"Cannot move a {current.value} trip to {new_status.value}")

        result = await get_trips_collection().update_one(
            {"_id": trip_doc["_id"], "status": current.value},
            {"$set": {"status": new_status.value, "updated_at": datetime.utcnow()}},
        )
        if not result.matched_count:
            raise InvalidOperation("Trip status changed concurrently, reload and retry")

        logger.info("trip_status_changed", trip_id=trip_id, previous=current.value, new=new_status.value)
        return serialize_trip(await get_trip(trip_id))

    async def delete_trip(self, trip_id: str, host_id: str) -> None:
        """
        Host-only. Join requests are kept for history; the trip's chat rooms are
        deactivated rather than erased.
        """
        trip_doc = await get_trip(trip_id)
        require_host(trip_doc, host_id, "delete this trip")

        await get_trips_collection().delete_one({"_id": trip_doc["_id"]})
        await get_chat_rooms_collection().update_many(
            {"trip_id": trip_id, "is_active": True},
            {"$set": {"is_active": False, "updated_at": datetime.utcnow()}},
        )
        logger.info("trip_deleted", trip_id=trip_id, host_id=host_id)
