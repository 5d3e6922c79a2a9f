"""
Models package for database documents and API payloads
"""

from tripcrew.models.chat_room import ChatRoom
from tripcrew.models.reputation import ReputationEvent, RewardReason
from tripcrew.models.trip import AttendanceRecord, ItineraryItem, Trip
from tripcrew.models.trip_request import TripRequest
from tripcrew.models.user import User

__all__ = [
    "AttendanceRecord",
    "ChatRoom",
    "ItineraryItem",
    "ReputationEvent",
    "RewardReason",
    "Trip",
    "TripRequest",
    "User",
]
