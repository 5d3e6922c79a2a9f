"""
MongoDB Database Configuration and Connection
"""

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError
from pymongo.server_api import ServerApi

from tripcrew.core.config import DATABASE_NAME, MONGODB_URI
from tripcrew.core.logging import get_logger

logger = get_logger(__name__)

# Global database client
_client = None
_database = None


def get_database():
    """
    Get MongoDB database instance
    Creates a new connection if one doesn't exist
    """
    global _client, _database

    if _database is None:
        if not MONGODB_URI:
            raise ValueError("MONGODB_URI environment variable is not set")

        _client = AsyncIOMotorClient(MONGODB_URI, server_api=ServerApi("1"))
        _database = _client[DATABASE_NAME]

        logger.info("mongodb_connected", database=DATABASE_NAME)

    return _database


def set_database(database, client=None):
    """
    Install an already-built database handle (tests use a mongomock-motor client).
    Pass None to drop the current handle.
    """
    global _client, _database
    _database = database
    _client = client


async def init_indexes():
    """
    Initialize database indexes.
    The (trip_id, requester_id) and external_channel_id indexes are uniqueness
    constraints the services rely on, not just query helpers.
    """
    try:
        users_collection = get_users_collection()
        trips_collection = get_trips_collection()
        requests_collection = get_trip_requests_collection()
        chat_rooms_collection = get_chat_rooms_collection()
        events_collection = get_reputation_events_collection()

        # Users indexes
        await users_collection.create_index("google_id", unique=True)

        # Trips indexes
        await trips_collection.create_index([("creator_id", 1), ("status", 1)], name="creator_status")
        await trips_collection.create_index("members")

        # Trip requests indexes
        await requests_collection.create_index(
            [("trip_id", 1), ("requester_id", 1)], unique=True, name="uniq_trip_requester"
        )
        await requests_collection.create_index([("trip_owner_id", 1), ("status", 1)], name="owner_status")

        # Chat rooms indexes
        await chat_rooms_collection.create_index("external_channel_id", unique=True)
        await chat_rooms_collection.create_index([("trip_id", 1), ("is_active", 1)], name="trip_active")
        # At most one active room per trip; deactivated rooms are not constrained
        await chat_rooms_collection.create_index(
            "trip_id",
            unique=True,
            partialFilterExpression={"is_active": True},
            name="uniq_active_room_per_trip",
        )
        await chat_rooms_collection.create_index("participants")

        # Reputation ledger indexes
        await events_collection.create_index(
            [("user_id", 1), ("reason", 1), ("context.trip_id", 1), ("created_at", -1)],
            name="user_reason_trip",
        )

        logger.info("mongodb_indexes_ready")
    except PyMongoError as e:
        logger.warning("mongodb_index_creation_failed", error=str(e))


async def close_database_connection():
    """
    Close the MongoDB connection
    Call this when shutting down the application
    """
    global _client, _database

    if _client:
        _client.close()
        _client = None
        _database = None
        logger.info("mongodb_connection_closed")


async def test_connection():
    """
    Ping the MongoDB server
    """
    try:
        db = get_database()
        await db.command("ping")
        logger.info("mongodb_ping_ok")
        return True
    except (PyMongoError, ValueError) as e:
        logger.error("mongodb_ping_failed", error=str(e))
        return False


def get_users_collection():
    """
    Users (reputation_score lives here)
    """
    db = get_database()
    return db.users


def get_trips_collection():
    db = get_database()
    return db.trips


def get_trip_requests_collection():
    db = get_database()
    return db.trip_requests


def get_chat_rooms_collection():
    db = get_database()
    return db.chat_rooms


def get_reputation_events_collection():
    """
    Per-event reputation ledger
    """
    db = get_database()
    return db.reputation_events
