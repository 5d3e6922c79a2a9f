"""
Join request lifecycle: submit, list, accept, reject.

A requester gets exactly one request per trip, ever.

Accept claims the request (pending -> accepting) before touching the roster,
so a concurrent reject finds nothing pending. It then admits the requester,
provisions chat and resolves accepting -> accepted. A failure releases the
claim back to pending; a claim left behind by a dead process expires after
REQUEST_CLAIM_TIMEOUT_SECONDS and the host can accept again.
"""

from __future__ import annotations

from datetime import datetime, timedelta
import uuid

from bson import ObjectId
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from tripcrew.core.config import REQUEST_CLAIM_TIMEOUT_SECONDS
from tripcrew.core.errors import AuthorizationError, Conflict, InvalidOperation, NotFoundError
from tripcrew.core.logging import get_logger
from tripcrew.db.database import get_trip_requests_collection, get_trips_collection
from tripcrew.models.trip import ItineraryItem, itinerary_index
from tripcrew.models.trip_request import RequestStatus, SelectedItineraryItem, TripRequest
from tripcrew.services import privacy
from tripcrew.services.chat import ChatProvisioner
from tripcrew.services.membership import MembershipRegistrar
from tripcrew.services.trips import get_trip, require_host
from tripcrew.services.users import get_users

logger = get_logger(__name__)


def serialize_request(request_doc: dict) -> dict:
    doc = dict(request_doc)
    doc["request_id"] = str(doc.pop("_id"))
    return doc


def _selected_items(trip_doc: dict, selected_itinerary_ids: list[str] | None) -> list[SelectedItineraryItem]:
    """Keep only ids present in the trip, in request order, without duplicates."""
    items = itinerary_index(trip_doc)
    selected = []
    for itinerary_id in dict.fromkeys(selected_itinerary_ids or []):
        item = items.get(itinerary_id)
        if item is None:
            continue
        selected.append(
            SelectedItineraryItem(
                itinerary_id=itinerary_id,
                label=ItineraryItem(**item).label(),
                day=item.get("day"),
                time_slot=item.get("time_slot"),
                start_time=item.get("start_time"),
                end_time=item.get("end_time"),
            )
        )
    return selected


class RequestLedger:
    def __init__(
        self,
        registrar: MembershipRegistrar | None = None,
        provisioner: ChatProvisioner | None = None,
    ) -> None:
        self.registrar = registrar or MembershipRegistrar()
        self.provisioner = provisioner or ChatProvisioner()

    async def submit_request(
        self,
        trip_id: str,
        requester_id: str,
        message: str = "",
        selected_itinerary_ids: list[str] | None = None,
    ) -> dict:
        trip_doc = await get_trip(trip_id)
        if trip_doc.get("creator_id") == requester_id:
            raise InvalidOperation("Cannot join your own trip")

        requests = get_trip_requests_collection()
        existing = await requests.find_one({"trip_id": trip_id, "requester_id": requester_id})
        if existing:
            raise Conflict(f"Join request already sent ({existing.get('status')})")

        request = TripRequest(
            trip_id=trip_id,
            requester_id=requester_id,
            trip_owner_id=trip_doc["creator_id"],
            message=message or "",
            selected_itinerary=_selected_items(trip_doc, selected_itinerary_ids),
        )
        doc = request.model_dump()
        try:
            result = await requests.insert_one(doc)
        except DuplicateKeyError:
            raise Conflict("Join request already sent")

        doc["_id"] = result.inserted_id
        logger.info(
            "join_request_submitted",
            request_id=str(result.inserted_id),
            trip_id=trip_id,
            requester_id=requester_id,
            selected=len(request.selected_itinerary),
        )
        # The requester is the subject here, so nothing is redacted
        return serialize_request(doc)

    async def list_pending_for_host(self, trip_id: str, host_id: str) -> list[dict]:
        """Pending requests for a trip; requesters shown as initials + score."""
        trip_doc = await get_trip(trip_id)
        require_host(trip_doc, host_id, "view requests")

        cursor = (
            get_trip_requests_collection()
            .find({"trip_id": trip_id, "trip_owner_id": host_id, "status": RequestStatus.PENDING.value})
            .sort("created_at", DESCENDING)
        )
        docs = await cursor.to_list(length=None)
        users = await get_users([doc["requester_id"] for doc in docs])

        results = []
        for doc in docs:
            item = serialize_request(doc)
            requester_id = item.pop("requester_id")
            item["requester"] = privacy.to_public(users.get(requester_id), requester_id).model_dump()
            results.append(item)
        return results

    async def _load_for_response(self, request_id: str, host_id: str, action: str) -> dict:
        request_doc = None
        if ObjectId.is_valid(request_id):
            request_doc = await get_trip_requests_collection().find_one({"_id": ObjectId(request_id)})
        if not request_doc:
            raise NotFoundError("Join request not found")
        if request_doc.get("trip_owner_id") != host_id:
            raise AuthorizationError(f"Not authorized to {action} this request")
        if request_doc.get("status") in (RequestStatus.ACCEPTED.value, RequestStatus.REJECTED.value):
            raise InvalidOperation("Request has already been processed")
        return request_doc

    async def _claim(self, request_doc: dict) -> str:
        """pending (or an expired accepting claim) -> accepting; returns the claim token."""
        now = datetime.utcnow()
        token = uuid.uuid4().hex
        result = await get_trip_requests_collection().update_one(
            {
                "_id": request_doc["_id"],
                "$or": [
                    {"status": RequestStatus.PENDING.value},
                    {
                        "status": RequestStatus.ACCEPTING.value,
                        "claimed_at": {"$lt": now - timedelta(seconds=REQUEST_CLAIM_TIMEOUT_SECONDS)},
                    },
                ],
            },
            {"$set": {"status": RequestStatus.ACCEPTING.value, "claim_id": token, "claimed_at": now}},
        )
        if not result.matched_count:
            raise InvalidOperation("Request is already being processed")
        return token

    async def _release(self, request_doc: dict, token: str) -> None:
        await get_trip_requests_collection().update_one(
            {"_id": request_doc["_id"], "claim_id": token},
            {"$set": {"status": RequestStatus.PENDING.value}, "$unset": {"claim_id": "", "claimed_at": ""}},
        )

    async def _resolve(self, request_doc: dict, status: RequestStatus, token: str | None = None) -> dict:
        """
        Final transition, exactly once: pending -> rejected, or
        accepting -> accepted for the holder of the claim.
        """
        now = datetime.utcnow()
        query = {"_id": request_doc["_id"], "status": RequestStatus.PENDING.value}
        if token:
            query = {"_id": request_doc["_id"], "status": RequestStatus.ACCEPTING.value, "claim_id": token}
        result = await get_trip_requests_collection().update_one(
            query,
            {
                "$set": {"status": status.value, "responded_at": now},
                "$unset": {"claim_id": "", "claimed_at": ""},
            },
        )
        if not result.matched_count:
            raise InvalidOperation("Request has already been processed")
        request_doc = {k: v for k, v in request_doc.items() if k not in ("claim_id", "claimed_at")}
        request_doc.update(status=status.value, responded_at=now)
        return serialize_request(request_doc)

    async def accept(self, request_id: str, host_id: str) -> dict:
        request_doc = await self._load_for_response(request_id, host_id, "accept")
        trip_id = request_doc["trip_id"]
        requester_id = request_doc["requester_id"]
        selected_ids = [item["itinerary_id"] for item in request_doc.get("selected_itinerary", [])]

        token = await self._claim(request_doc)
        try:
            await self.registrar.admit_member(trip_id, requester_id, selected_ids)
            channel = await self.provisioner.ensure_channel(trip_id, host_id, requester_id)
        except Exception:
            await self._release(request_doc, token)
            logger.warning("join_request_accept_released", request_id=request_id, trip_id=trip_id)
            raise
        request = await self._resolve(request_doc, RequestStatus.ACCEPTED, token)

        logger.info(
            "join_request_accepted",
            request_id=request_id,
            trip_id=trip_id,
            requester_id=requester_id,
            chat_room_id=channel.chat_room_id,
        )
        users = await get_users([requester_id])
        request["requester"] = privacy.to_public(users.get(requester_id), requester_id).model_dump()
        return {"request": request, "chat_room": channel.model_dump()}

    async def reject(self, request_id: str, host_id: str) -> dict:
        request_doc = await self._load_for_response(request_id, host_id, "reject")
        if request_doc.get("status") == RequestStatus.ACCEPTING.value:
            raise InvalidOperation("Request is being accepted")
        request = await self._resolve(request_doc, RequestStatus.REJECTED)
        logger.info("join_request_rejected", request_id=request_id, trip_id=request_doc["trip_id"])
        return request

    async def my_requests(self, requester_id: str) -> list[dict]:
        """Requests the caller sent, with a trip summary for each."""
        cursor = (
            get_trip_requests_collection()
            .find({"requester_id": requester_id})
            .sort("created_at", DESCENDING)
        )
        docs = [serialize_request(doc) for doc in await cursor.to_list(length=None)]
        summaries = await self._trip_summaries([doc["trip_id"] for doc in docs])
        for doc in docs:
            doc["trip"] = summaries.get(doc["trip_id"])
        return docs

    async def requests_for_my_trips(self, host_id: str) -> list[dict]:
        """Every request, any status, for trips the caller hosts."""
        cursor = (
            get_trip_requests_collection()
            .find({"trip_owner_id": host_id})
            .sort("created_at", DESCENDING)
        )
        docs = [serialize_request(doc) for doc in await cursor.to_list(length=None)]
        summaries = await self._trip_summaries([doc["trip_id"] for doc in docs])
        for doc in docs:
            doc["trip"] = summaries.get(doc["trip_id"])
        return docs

    async def _trip_summaries(self, trip_ids: list[str]) -> dict[str, dict]:
        oids = [ObjectId(t) for t in set(trip_ids) if ObjectId.is_valid(t)]
        if not oids:
            return {}
        cursor = get_trips_collection().find(
            {"_id": {"$in": oids}},
            {"name": 1, "location": 1, "start_date": 1, "end_date": 1, "status": 1},
        )
        summaries = {}
        for doc in await cursor.to_list(length=None):
            summaries[str(doc["_id"])] = {
                "trip_id": str(doc["_id"]),
                "name": doc.get("name"),
                "location": doc.get("location"),
                "start_date": doc.get("start_date"),
                "end_date": doc.get("end_date"),
                "status": doc.get("status"),
            }
        return summaries
