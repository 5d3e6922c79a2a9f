import pytest
from pymongo.errors import DuplicateKeyError

from conftest import HOST_ID, OTHER_ID, VISITOR_ID
from tripcrew.core.errors import AuthorizationError, NotFoundError
from tripcrew.services.chat import ChatProvisioner, mint_channel_id


def test_channel_ids_are_unique_and_scoped_by_trip():
    ids = {mint_channel_id("trip-a") for _ in range(50)}
    assert len(ids) == 50
    assert all(i.startswith("trip_trip-a_") for i in ids)


async def test_first_accept_creates_room_then_extends_it(mongo_db):
    chat = ChatProvisioner()

    first = await chat.ensure_channel("t1", HOST_ID, VISITOR_ID)
    second = await chat.ensure_channel("t1", HOST_ID, OTHER_ID)
    again = await chat.ensure_channel("t1", HOST_ID, OTHER_ID)

    assert first.chat_room_id == second.chat_room_id == again.chat_room_id
    assert first.external_channel_id == again.external_channel_id
    assert set(first.participants) == {HOST_ID, VISITOR_ID}
    assert sorted(again.participants) == sorted([HOST_ID, VISITOR_ID, OTHER_ID])
    assert await mongo_db.chat_rooms.count_documents({"trip_id": "t1"}) == 1


async def test_rooms_are_per_trip(mongo_db):
    chat = ChatProvisioner()

    a = await chat.ensure_channel("t1", HOST_ID, VISITOR_ID)
    b = await chat.ensure_channel("t2", HOST_ID, VISITOR_ID)

    assert a.chat_room_id != b.chat_room_id
    assert a.external_channel_id != b.external_channel_id


async def test_deactivate_is_host_only_and_soft(mongo_db):
    chat = ChatProvisioner()
    room = await chat.ensure_channel("t1", HOST_ID, VISITOR_ID)

    with pytest.raises(AuthorizationError):
        await chat.deactivate(room.chat_room_id, VISITOR_ID)
    with pytest.raises(NotFoundError):
        await chat.deactivate("0123456789abcdef01234567", HOST_ID)

    closed = await chat.deactivate(room.chat_room_id, HOST_ID)

    assert closed["is_active"] is False
    assert await mongo_db.chat_rooms.count_documents({}) == 1


async def test_my_channels_excludes_inactive(mongo_db):
    chat = ChatProvisioner()
    kept = await chat.ensure_channel("t1", HOST_ID, VISITOR_ID)
    closed = await chat.ensure_channel("t2", HOST_ID, VISITOR_ID)
    await chat.deactivate(closed.chat_room_id, HOST_ID)

    rooms = await chat.my_channels(VISITOR_ID)

    assert [r["chat_room_id"] for r in rooms] == [kept.chat_room_id]
    assert await chat.my_channels(OTHER_ID) == []


async def test_new_room_after_deactivation(mongo_db):
    chat = ChatProvisioner()
    old = await chat.ensure_channel("t1", HOST_ID, VISITOR_ID)
    await chat.deactivate(old.chat_room_id, HOST_ID)

    new = await chat.ensure_channel("t1", HOST_ID, OTHER_ID)

    assert new.chat_room_id != old.chat_room_id
    assert set(new.participants) == {HOST_ID, OTHER_ID}


async def test_one_active_room_per_trip_is_enforced(mongo_db):
    room = await ChatProvisioner().ensure_channel("t1", HOST_ID, VISITOR_ID)

    with pytest.raises(DuplicateKeyError):
        await mongo_db.chat_rooms.insert_one(
            {"trip_id": "t1", "is_active": True, "external_channel_id": "other", "participants": []}
        )

    await ChatProvisioner().deactivate(room.chat_room_id, HOST_ID)
    await mongo_db.chat_rooms.insert_one(
        {"trip_id": "t1", "is_active": False, "external_channel_id": "archived", "participants": []}
    )
    assert await mongo_db.chat_rooms.count_documents({"trip_id": "t1", "is_active": False}) == 2


class RacingProvisioner(ChatProvisioner):
    """Another accept inserts the trip's room just before this one does."""

    def __init__(self):
        self.attempts = 0

    async def _upsert_room(self, trip_id, host_id, new_member_id):
        self.attempts += 1
        if self.attempts == 1:
            await ChatProvisioner()._upsert_room(trip_id, host_id, OTHER_ID)
            raise DuplicateKeyError("E11000 duplicate key error collection: chat_rooms")
        return await super()._upsert_room(trip_id, host_id, new_member_id)


async def test_losing_a_concurrent_insert_joins_the_winning_room(mongo_db):
    chat = RacingProvisioner()

    room = await chat.ensure_channel("t1", HOST_ID, VISITOR_ID)

    assert chat.attempts == 2
    assert sorted(room.participants) == sorted([HOST_ID, OTHER_ID, VISITOR_ID])
    assert await mongo_db.chat_rooms.count_documents({"trip_id": "t1"}) == 1


async def test_room_document_shape(mongo_db):
    await ChatProvisioner().ensure_channel("t1", HOST_ID, VISITOR_ID)

    stored = await mongo_db.chat_rooms.find_one({"trip_id": "t1"})

    assert stored["trip_owner_id"] == HOST_ID
    assert stored["is_active"] is True
    assert stored["external_channel_id"].startswith("trip_t1_")
    assert {"created_at", "updated_at", "last_message_at"} <= set(stored)
