"""
Attendance marking and the reputation transitions it drives.

Per (trip, participant):

    pending -> showed_up | no_show
    showed_up <-> no_show   (correction: revert the old delta, then apply the new)

Marking the status a participant already has is rejected, unless the
reputation step of that earlier mark failed, in which case it is finished.
Marks on one trip run under a per-trip lock, and the attendance array is
written with an optimistic attendance_version check so a second process
cannot interleave.
"""

from __future__ import annotations

from datetime import datetime

from tripcrew.core.errors import Conflict, InvalidOperation, NotFoundError
from tripcrew.core.locks import KeyedLock, trip_locks
from tripcrew.core.logging import get_logger
from tripcrew.db.database import get_trips_collection
from tripcrew.models.reputation import REPUTATION_RULES, RewardReason
from tripcrew.models.trip import AttendanceRecord, AttendanceStatus, TripStatus, attendance_for
from tripcrew.services import privacy
from tripcrew.services.reputation import ReputationLedger
from tripcrew.services.trips import get_trip, require_host
from tripcrew.services.users import get_users

logger = get_logger(__name__)

STATUS_REASONS: dict[AttendanceStatus, RewardReason] = {
    AttendanceStatus.SHOWED_UP: RewardReason.SHOW_UP,
    AttendanceStatus.NO_SHOW: RewardReason.NO_SHOW,
}


def _participant_entry(user_doc: dict | None, user_id: str, record: dict | None) -> dict:
    entry = privacy.to_public(user_doc, user_id).model_dump()
    entry["attendance_status"] = record["status"] if record else AttendanceStatus.PENDING.value
    entry["marked_at"] = record.get("marked_at") if record else None
    return entry


class AttendanceTracker:
    def __init__(self, ledger: ReputationLedger | None = None, locks: KeyedLock = trip_locks) -> None:
        self.ledger = ledger or ReputationLedger()
        self.locks = locks

    async def roster_view(self, trip_id: str, host_id: str) -> dict:
        """Roster minus the host, privacy-projected, with each attendance status."""
        trip_doc = await get_trip(trip_id)
        require_host(trip_doc, host_id, "view attendance")

        host = trip_doc["creator_id"]
        participant_ids = [m for m in dict.fromkeys(trip_doc.get("members", [])) if m != host]
        users = await get_users(participant_ids)
        participants = [
            _participant_entry(users.get(uid), uid, attendance_for(trip_doc, uid)) for uid in participant_ids
        ]
        return {
            "trip_id": trip_id,
            "trip_name": trip_doc.get("name"),
            "status": trip_doc.get("status"),
            "participants": participants,
        }

    async def mark_attendance(
        self, trip_id: str, host_id: str, participant_id: str, new_status: AttendanceStatus | str
    ) -> dict:
        try:
            new_status = AttendanceStatus(new_status)
        except ValueError:
            raise InvalidOperation('Invalid attendance status. Must be "showed_up" or "no_show"')
        if new_status == AttendanceStatus.PENDING:
            raise InvalidOperation('Invalid attendance status. Must be "showed_up" or "no_show"')

        async with self.locks.hold(trip_id):
            trip_doc = await get_trip(trip_id)
            require_host(trip_doc, host_id, "mark attendance")
            if participant_id == trip_doc["creator_id"] or participant_id not in trip_doc.get("members", []):
                raise NotFoundError("User is not a participant of this trip")
            if trip_doc.get("status") == TripStatus.CANCELLED.value:
                raise InvalidOperation("Cannot mark attendance for a cancelled trip")

            existing = attendance_for(trip_doc, participant_id)
            previous_status = AttendanceStatus(existing["status"]) if existing else AttendanceStatus.PENDING
            if previous_status == new_status:
                # Only a mark whose reputation step failed earlier has anything left to do
                if not await self._settle(trip_id, participant_id, new_status):
                    raise InvalidOperation(f"Attendance has already been marked as {new_status.value}")
                logger.info(
                    "attendance_settled", trip_id=trip_id, participant_id=participant_id, status=new_status.value
                )
                users = await get_users([participant_id])
                return _participant_entry(users.get(participant_id), participant_id, existing)

            # Reputation moves only after the versioned write succeeds
            record = AttendanceRecord(
                user_id=participant_id, status=new_status, marked_at=datetime.utcnow(), marked_by=host_id
            )
            await self._store_record(trip_doc, record)
            await self._settle(trip_id, participant_id, new_status)

            logger.info(
                "attendance_marked",
                trip_id=trip_id,
                participant_id=participant_id,
                previous=previous_status.value,
                new=new_status.value,
                correction=previous_status != AttendanceStatus.PENDING,
            )

        users = await get_users([participant_id])
        return _participant_entry(users.get(participant_id), participant_id, record.model_dump())

    async def _settle(self, trip_id: str, participant_id: str, status: AttendanceStatus) -> bool:
        """
        Make the ledger agree with the recorded status for this trip: revert a
        live event for any other status, then apply the status's own delta if
        it is not live yet. Idempotent; returns whether anything changed.
        """
        context = {"trip_id": trip_id}
        changed = False
        for other, reason in STATUS_REASONS.items():
            if other != status and await self.ledger.live_event(participant_id, reason, context):
                await self.ledger.revert(participant_id, reason, context)
                changed = True

        reason = STATUS_REASONS[status]
        if not await self.ledger.live_event(participant_id, reason, context):
            await self.ledger.apply(participant_id, REPUTATION_RULES[reason], reason, context)
            changed = True
        return changed

    async def _store_record(self, trip_doc: dict, record: AttendanceRecord) -> None:
        """Upsert the participant's record; fails if another writer got there first."""
        attendance = [a for a in trip_doc.get("attendance", []) if a.get("user_id") != record.user_id]
        attendance.append(record.model_dump())
        version = trip_doc.get("attendance_version")

        result = await get_trips_collection().update_one(
            {"_id": trip_doc["_id"], "attendance_version": version},
            {
                "$set": {"attendance": attendance, "updated_at": datetime.utcnow()},
                "$inc": {"attendance_version": 1},
            },
        )
        if not result.matched_count:
            raise Conflict("Attendance changed concurrently, reload and retry")
