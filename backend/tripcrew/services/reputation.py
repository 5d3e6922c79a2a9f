"""
Reputation ledger.

Owns every write to users.reputation_score. Each change is recorded in the
reputation_events collection with its nominal delta, so a later revert undoes
exactly what was intended even when the zero floor absorbed part of it.
"""

from __future__ import annotations

from datetime import datetime

from bson import ObjectId
from pymongo import DESCENDING

from tripcrew.core.config import REPUTATION_CAS_RETRIES
from tripcrew.core.errors import Conflict, NotFoundError
from tripcrew.core.logging import get_logger
from tripcrew.db.database import (
    get_reputation_events_collection,
    get_trips_collection,
    get_users_collection,
)
from tripcrew.models.reputation import (
    REPUTATION_RULES,
    ReputationChange,
    ReputationEvent,
    RewardReason,
)

logger = get_logger(__name__)


class ReputationLedger:
    """Applies, reverts and audits reputation score changes."""

    def __init__(self, max_retries: int = REPUTATION_CAS_RETRIES) -> None:
        self.max_retries = max_retries

    async def _write_score(self, user_id: str, delta: int) -> tuple[int, int]:
        """Compare-and-set max(0, score + delta); returns (previous, new)."""
        users = get_users_collection()
        for _ in range(self.max_retries):
            user = await users.find_one({"google_id": user_id}, {"reputation_score": 1})
            if not user:
                raise NotFoundError(f"User {user_id} not found")

            stored = user.get("reputation_score")
            previous = int(stored or 0)
            new = max(0, previous + delta)
            result = await users.update_one(
                {"google_id": user_id, "reputation_score": stored},
                {"$set": {"reputation_score": new, "updated_at": datetime.utcnow()}},
            )
            if result.matched_count:
                return previous, new
            logger.debug("reputation_cas_retry", user_id=user_id)

        raise Conflict(f"Reputation score for user {user_id} is changing too fast, retry")

    async def _record(
        self,
        user_id: str,
        delta: int,
        reason: RewardReason,
        context: dict | None,
        *,
        is_revert: bool = False,
        reverts_event_id: str | None = None,
    ) -> ReputationChange:
        previous, new = await self._write_score(user_id, delta)
        event = ReputationEvent(
            user_id=user_id,
            reason=reason,
            is_revert=is_revert,
            delta=delta,
            effective_delta=new - previous,
            previous=previous,
            new=new,
            context=context or {},
            reverts_event_id=reverts_event_id,
        )
        await get_reputation_events_collection().insert_one(event.model_dump())

        logger.info(
            "reputation_applied",
            user_id=user_id,
            reason=event.tag(),
            delta=delta,
            effective_delta=event.effective_delta,
            previous=previous,
            new=new,
            **(context or {}),
        )
        return ReputationChange(previous=previous, new=new, delta=delta)

    async def apply(
        self, user_id: str, delta: int, reason: RewardReason, context: dict | None = None
    ) -> ReputationChange:
        """Add delta to the score, flooring at zero. Clamping is silent."""
        return await self._record(user_id, delta, RewardReason(reason), context)

    async def revert(
        self, user_id: str, reason: RewardReason, context: dict | None = None
    ) -> ReputationChange:
        """
        Undo the most recent un-reverted change for (user, reason, context).
        The nominal delta of that change is subtracted, not its clamped effect.
        Without a recorded change, the rule-table amount is used.
        """
        reason = RewardReason(reason)
        context = context or {}
        original = await self.live_event(user_id, reason, context)

        nominal = original["delta"] if original else REPUTATION_RULES[reason]
        change = await self._record(
            user_id,
            -nominal,
            reason,
            context,
            is_revert=True,
            reverts_event_id=str(original["_id"]) if original else None,
        )
        if original:
            await get_reputation_events_collection().update_one(
                {"_id": original["_id"]}, {"$set": {"reverted": True}}
            )
        return change

    async def live_event(self, user_id: str, reason: RewardReason, context: dict | None = None) -> dict | None:
        """Latest applied, not yet reverted event for (user, reason, context)."""
        query = {"user_id": user_id, "reason": RewardReason(reason).value, "is_revert": False, "reverted": False}
        for key, value in (context or {}).items():
            query[f"context.{key}"] = value
        return await get_reputation_events_collection().find_one(
            query, sort=[("created_at", DESCENDING), ("_id", DESCENDING)]
        )

    async def award_host_trip(self, trip_id: str, host_id: str) -> ReputationChange | None:
        """
        +70 once per trip. The trip's host_award_granted flag is claimed first;
        returns None when it was already granted.
        """
        trips = get_trips_collection()
        oid = ObjectId(trip_id)
        claimed = await trips.update_one(
            {"_id": oid, "host_award_granted": {"$ne": True}},
            {"$set": {"host_award_granted": True}},
        )
        if not claimed.matched_count:
            logger.info("host_award_skipped", trip_id=trip_id, host_id=host_id)
            return None

        try:
            return await self.apply(
                host_id, REPUTATION_RULES[RewardReason.HOST_TRIP], RewardReason.HOST_TRIP, {"trip_id": trip_id}
            )
        except Exception:
            await trips.update_one({"_id": oid}, {"$set": {"host_award_granted": False}})
            raise

    async def award_show_up(self, user_id: str, trip_id: str) -> ReputationChange:
        return await self.apply(
            user_id, REPUTATION_RULES[RewardReason.SHOW_UP], RewardReason.SHOW_UP, {"trip_id": trip_id}
        )

    async def penalize_no_show(self, user_id: str, trip_id: str) -> ReputationChange:
        return await self.apply(
            user_id, REPUTATION_RULES[RewardReason.NO_SHOW], RewardReason.NO_SHOW, {"trip_id": trip_id}
        )

    async def award_post(self, user_id: str, post_id: str) -> ReputationChange:
        return await self.apply(
            user_id, REPUTATION_RULES[RewardReason.POST], RewardReason.POST, {"post_id": post_id}
        )

    async def history(self, user_id: str, limit: int = 50) -> list[dict]:
        cursor = (
            get_reputation_events_collection()
            .find({"user_id": user_id})
            .sort("created_at", DESCENDING)
            .limit(limit)
        )
        docs = await cursor.to_list(length=None)
        for doc in docs:
            doc["event_id"] = str(doc.pop("_id"))
        return docs
