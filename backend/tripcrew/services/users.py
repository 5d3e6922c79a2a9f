"""
User store helpers
"""

from datetime import datetime

from pymongo import ReturnDocument

from tripcrew.core.errors import NotFoundError
from tripcrew.db.database import get_users_collection
from tripcrew.models.user import User


async def ensure_user(user_id: str, name: str = "", email: str | None = None) -> dict:
    """
    Make sure the authenticated caller has a user record. The score starts at 0
    and is never touched here.
    """
    users = get_users_collection()
    now = datetime.utcnow()
    doc = User(google_id=user_id, name=name, email=email, created_at=now, updated_at=now).model_dump()

    # Identity fields follow the token; everything else is only set on insert
    changes = {"updated_at": now}
    for field in ("name", "email"):
        if doc[field]:
            changes[field] = doc.pop(field)
    doc.pop("updated_at")
    return await users.find_one_and_update(
        {"google_id": user_id},
        {"$setOnInsert": doc, "$set": changes},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


async def get_user(user_id: str) -> dict:
    user = await get_users_collection().find_one({"google_id": user_id})
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


async def get_users(user_ids: list[str]) -> dict[str, dict]:
    """Batch lookup keyed by user id; unknown ids are simply absent."""
    if not user_ids:
        return {}
    cursor = get_users_collection().find({"google_id": {"$in": list(set(user_ids))}})
    docs = await cursor.to_list(length=None)
    return {doc["google_id"]: doc for doc in docs}
