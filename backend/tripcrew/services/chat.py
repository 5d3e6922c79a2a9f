"""
Trip chat channels. Message transport belongs to the messaging provider; this
module only mints channel ids and keeps participant membership.
"""

from __future__ import annotations

from datetime import datetime
import uuid

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from tripcrew.core.errors import AuthorizationError, NotFoundError
from tripcrew.core.logging import get_logger
from tripcrew.db.database import get_chat_rooms_collection
from tripcrew.models.chat_room import ChannelSummary, ChatRoom

logger = get_logger(__name__)


def mint_channel_id(trip_id: str) -> str:
    return f"trip_{trip_id}_{uuid.uuid4().hex}"


def serialize_room(room: dict) -> dict:
    doc = dict(room)
    doc["chat_room_id"] = str(doc.pop("_id"))
    return doc


class ChatProvisioner:
    async def ensure_channel(self, trip_id: str, host_id: str, new_member_id: str) -> ChannelSummary:
        """
        Create the trip's active room with {host, member}, or add the member to
        the existing one. The upsert is backed by a unique index on active rooms
        per trip; the loser of a concurrent insert retries once and lands in the
        winner's room.
        """
        try:
            room = await self._upsert_room(trip_id, host_id, new_member_id)
        except DuplicateKeyError:
            logger.info("chat_channel_upsert_retry", trip_id=trip_id, member_id=new_member_id)
            room = await self._upsert_room(trip_id, host_id, new_member_id)

        logger.info(
            "chat_channel_ensured",
            trip_id=trip_id,
            chat_room_id=str(room["_id"]),
            member_id=new_member_id,
            participants=len(room["participants"]),
        )
        return ChannelSummary(
            chat_room_id=str(room["_id"]),
            external_channel_id=room["external_channel_id"],
            participants=room["participants"],
        )

    async def _upsert_room(self, trip_id: str, host_id: str, new_member_id: str) -> dict:
        now = datetime.utcnow()
        fresh = ChatRoom(
            trip_id=trip_id,
            trip_owner_id=host_id,
            external_channel_id=mint_channel_id(trip_id),
            last_message_at=now,
            created_at=now,
            updated_at=now,
        )
        return await get_chat_rooms_collection().find_one_and_update(
            {"trip_id": trip_id, "is_active": True},
            {
                # trip_id and is_active come from the filter, the rest from $addToSet / $set
                "$setOnInsert": fresh.model_dump(exclude={"trip_id", "is_active", "participants", "updated_at"}),
                "$addToSet": {"participants": {"$each": [host_id, new_member_id]}},
                "$set": {"updated_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    async def deactivate(self, chat_room_id: str, actor_id: str) -> dict:
        """Host-only soft delete; history stays with the messaging provider."""
        rooms = get_chat_rooms_collection()
        room = None
        if ObjectId.is_valid(chat_room_id):
            room = await rooms.find_one({"_id": ObjectId(chat_room_id)})
        if not room:
            raise NotFoundError("Chat room not found")
        if room.get("trip_owner_id") != actor_id:
            raise AuthorizationError("Not authorized to delete this chat room")

        room = await rooms.find_one_and_update(
            {"_id": room["_id"]},
            {"$set": {"is_active": False, "updated_at": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        logger.info("chat_channel_deactivated", chat_room_id=chat_room_id, actor_id=actor_id)
        return serialize_room(room)

    async def my_channels(self, user_id: str) -> list[dict]:
        cursor = (
            get_chat_rooms_collection()
            .find({"participants": user_id, "is_active": True})
            .sort("last_message_at", DESCENDING)
        )
        return [serialize_room(room) for room in await cursor.to_list(length=None)]
