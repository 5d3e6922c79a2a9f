import asyncio
from datetime import datetime, timedelta

import pytest

from conftest import HOST_ID, OTHER_ID, VISITOR_ID
from tripcrew.core.config import REQUEST_CLAIM_TIMEOUT_SECONDS
from tripcrew.core.errors import AuthorizationError, Conflict, InvalidOperation, NotFoundError
from tripcrew.services.chat import ChatProvisioner
from tripcrew.services.membership import MembershipRegistrar
from tripcrew.services.requests import RequestLedger


@pytest.fixture
def requests_ledger():
    return RequestLedger()


async def test_submit_keeps_only_known_itinerary_items(trip, requests_ledger):
    request = await requests_ledger.submit_request(
        trip["trip_id"], VISITOR_ID, "Count me in", ["i2", "nope", "i1", "i2"]
    )

    assert request["status"] == "pending"
    assert request["requester_id"] == VISITOR_ID
    assert request["trip_owner_id"] == HOST_ID
    assert [s["itinerary_id"] for s in request["selected_itinerary"]] == ["i2", "i1"]
    assert request["selected_itinerary"][0]["label"] == "Campfire"
    assert request["selected_itinerary"][1]["label"] == "Rajmachi trail"
    assert request["selected_itinerary"][1]["start_time"] == 7.0


async def test_host_cannot_request_own_trip(trip, requests_ledger):
    with pytest.raises(InvalidOperation):
        await requests_ledger.submit_request(trip["trip_id"], HOST_ID)


async def test_unknown_trip(users, requests_ledger):
    with pytest.raises(NotFoundError):
        await requests_ledger.submit_request("0123456789abcdef01234567", VISITOR_ID)
    with pytest.raises(NotFoundError):
        await requests_ledger.submit_request("not-an-id", VISITOR_ID)


async def test_second_request_conflicts(trip, requests_ledger):
    await requests_ledger.submit_request(trip["trip_id"], VISITOR_ID)
    with pytest.raises(Conflict):
        await requests_ledger.submit_request(trip["trip_id"], VISITOR_ID)


async def test_rejected_requester_cannot_request_again(trip, requests_ledger):
    request = await requests_ledger.submit_request(trip["trip_id"], VISITOR_ID)
    await requests_ledger.reject(request["request_id"], HOST_ID)

    with pytest.raises(Conflict):
        await requests_ledger.submit_request(trip["trip_id"], VISITOR_ID)


async def test_list_pending_for_host_is_privacy_filtered(trip, requests_ledger):
    await requests_ledger.submit_request(trip["trip_id"], VISITOR_ID, "hi", ["i1"])
    other = await requests_ledger.submit_request(trip["trip_id"], OTHER_ID)
    await requests_ledger.reject(other["request_id"], HOST_ID)

    pending = await requests_ledger.list_pending_for_host(trip["trip_id"], HOST_ID)

    assert len(pending) == 1
    assert pending[0]["requester"] == {"user_id": VISITOR_ID, "initials": "VS", "reputation_score": 0}
    assert "requester_id" not in pending[0]
    assert "Vikram" not in str(pending[0])
    assert "vikram@example.com" not in str(pending[0])


async def test_list_pending_requires_host(trip, requests_ledger):
    with pytest.raises(AuthorizationError):
        await requests_ledger.list_pending_for_host(trip["trip_id"], VISITOR_ID)


async def test_accept_admits_member_and_provisions_chat(mongo_db, trip, requests_ledger):
    request = await requests_ledger.submit_request(trip["trip_id"], VISITOR_ID, "", ["i1"])

    result = await requests_ledger.accept(request["request_id"], HOST_ID)

    assert result["request"]["status"] == "accepted"
    assert result["request"]["responded_at"] is not None
    assert set(result["chat_room"]["participants"]) == {HOST_ID, VISITOR_ID}
    trip_doc = await mongo_db.trips.find_one({"name": "Monsoon trek"})
    assert trip_doc["members"].count(VISITOR_ID) == 1
    assert [(p["itinerary_id"], p["user_id"]) for p in trip_doc["itinerary_participants"]] == [
        ("i1", VISITOR_ID)
    ]


async def test_request_resolves_only_once(trip, requests_ledger):
    request = await requests_ledger.submit_request(trip["trip_id"], VISITOR_ID)
    await requests_ledger.accept(request["request_id"], HOST_ID)

    with pytest.raises(InvalidOperation):
        await requests_ledger.accept(request["request_id"], HOST_ID)
    with pytest.raises(InvalidOperation):
        await requests_ledger.reject(request["request_id"], HOST_ID)


async def test_only_host_can_resolve(trip, requests_ledger):
    request = await requests_ledger.submit_request(trip["trip_id"], VISITOR_ID)

    with pytest.raises(AuthorizationError):
        await requests_ledger.accept(request["request_id"], OTHER_ID)
    with pytest.raises(AuthorizationError):
        await requests_ledger.reject(request["request_id"], VISITOR_ID)
    with pytest.raises(NotFoundError):
        await requests_ledger.accept("0123456789abcdef01234567", HOST_ID)


class BrokenRegistrar(MembershipRegistrar):
    async def admit_member(self, trip_id, member_id, selected_itinerary_ids):
        raise RuntimeError("roster write failed")


async def test_failed_admission_leaves_request_pending(mongo_db, trip):
    broken = RequestLedger(registrar=BrokenRegistrar(), provisioner=ChatProvisioner())
    request = await broken.submit_request(trip["trip_id"], VISITOR_ID)

    with pytest.raises(RuntimeError):
        await broken.accept(request["request_id"], HOST_ID)

    stored = await mongo_db.trip_requests.find_one({"requester_id": VISITOR_ID})
    assert stored["status"] == "pending"
    assert stored["responded_at"] is None
    assert await mongo_db.chat_rooms.count_documents({}) == 0

    # The host can retry once the roster is writable again
    result = await RequestLedger().accept(request["request_id"], HOST_ID)
    assert result["request"]["status"] == "accepted"


async def test_listings_for_requester_and_host(trip, requests_ledger):
    await requests_ledger.submit_request(trip["trip_id"], VISITOR_ID)
    await requests_ledger.submit_request(trip["trip_id"], OTHER_ID)

    mine = await requests_ledger.my_requests(VISITOR_ID)
    assert len(mine) == 1
    assert mine[0]["trip"]["name"] == "Monsoon trek"

    hosted = await requests_ledger.requests_for_my_trips(HOST_ID)
    assert {r["requester_id"] for r in hosted} == {VISITOR_ID, OTHER_ID}
    assert await requests_ledger.requests_for_my_trips(VISITOR_ID) == []


class SlowRegistrar(MembershipRegistrar):
    async def admit_member(self, trip_id, member_id, selected_itinerary_ids):
        await asyncio.sleep(0.01)
        return await super().admit_member(trip_id, member_id, selected_itinerary_ids)


async def test_reject_cannot_overtake_an_accept_in_flight(mongo_db, trip):
    ledger = RequestLedger(registrar=SlowRegistrar())
    request = await ledger.submit_request(trip["trip_id"], VISITOR_ID)

    results = await asyncio.gather(
        ledger.accept(request["request_id"], HOST_ID),
        ledger.reject(request["request_id"], HOST_ID),
        return_exceptions=True,
    )

    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], InvalidOperation)

    stored = await mongo_db.trip_requests.find_one({"requester_id": VISITOR_ID})
    trip_doc = await mongo_db.trips.find_one({"name": "Monsoon trek"})
    rooms = await mongo_db.chat_rooms.find({"participants": VISITOR_ID}).to_list(length=None)
    admitted = VISITOR_ID in trip_doc["members"]
    assert stored["status"] == ("accepted" if admitted else "rejected")
    assert bool(rooms) == admitted
    assert "claim_id" not in stored


async def test_accept_in_flight_blocks_a_second_accept(mongo_db, trip):
    ledger = RequestLedger(registrar=SlowRegistrar())
    request = await ledger.submit_request(trip["trip_id"], VISITOR_ID)

    results = await asyncio.gather(
        ledger.accept(request["request_id"], HOST_ID),
        ledger.accept(request["request_id"], HOST_ID),
        return_exceptions=True,
    )

    assert sum(isinstance(r, InvalidOperation) for r in results) == 1
    stored = await mongo_db.trip_requests.find_one({"requester_id": VISITOR_ID})
    assert stored["status"] == "accepted"


async def test_failed_accept_releases_its_claim(mongo_db, trip):
    broken = RequestLedger(registrar=BrokenRegistrar())
    request = await broken.submit_request(trip["trip_id"], VISITOR_ID)

    with pytest.raises(RuntimeError):
        await broken.accept(request["request_id"], HOST_ID)

    stored = await mongo_db.trip_requests.find_one({"requester_id": VISITOR_ID})
    assert stored["status"] == "pending"
    assert "claim_id" not in stored
    assert "claimed_at" not in stored
    # Released requests can be rejected again
    rejected = await broken.reject(request["request_id"], HOST_ID)
    assert rejected["status"] == "rejected"


async def test_abandoned_claim_expires(mongo_db, trip, requests_ledger):
    request = await requests_ledger.submit_request(trip["trip_id"], VISITOR_ID)
    fresh = {"status": "accepting", "claim_id": "dead", "claimed_at": datetime.utcnow()}
    await mongo_db.trip_requests.update_one({"requester_id": VISITOR_ID}, {"$set": fresh})

    with pytest.raises(InvalidOperation):
        await requests_ledger.accept(request["request_id"], HOST_ID)
    with pytest.raises(InvalidOperation):
        await requests_ledger.reject(request["request_id"], HOST_ID)

    stale = datetime.utcnow() - timedelta(seconds=REQUEST_CLAIM_TIMEOUT_SECONDS + 1)
    await mongo_db.trip_requests.update_one({"requester_id": VISITOR_ID}, {"$set": {"claimed_at": stale}})

    result = await requests_ledger.accept(request["request_id"], HOST_ID)
    assert result["request"]["status"] == "accepted"
    assert "claim_id" not in result["request"]
