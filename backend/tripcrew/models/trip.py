"""
Trip model with roster, itinerary participants and embedded attendance
"""

from datetime import datetime
from enum import Enum
import uuid

from pydantic import BaseModel, Field


def generate_itinerary_item_id() -> str:
    """Stable identifier for an itinerary item (hex, no dashes)"""
    return uuid.uuid4().hex


class TripStatus(str, Enum):
    PLANNING = "planning"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Allowed host-driven status changes; completed and cancelled are terminal
TRIP_STATUS_TRANSITIONS: dict[TripStatus, set[TripStatus]] = {
    TripStatus.PLANNING: {TripStatus.CONFIRMED, TripStatus.CANCELLED},
    TripStatus.CONFIRMED: {TripStatus.COMPLETED, TripStatus.CANCELLED},
    TripStatus.COMPLETED: set(),
    TripStatus.CANCELLED: set(),
}


class AttendanceStatus(str, Enum):
    PENDING = "pending"
    SHOWED_UP = "showed_up"
    NO_SHOW = "no_show"


class ItineraryItem(BaseModel):
    """One scheduled activity inside a trip plan."""

    id: str = Field(default_factory=generate_itinerary_item_id, description="Stable item id")
    day: str | None = Field(default=None, description="Day label, e.g. 'Day 1' or YYYY-MM-DD")
    time_slot: str | None = Field(default=None, description="Free-text slot, e.g. 'Morning'")
    start_time: float | None = Field(default=None, description="Hour in 24h format (9.5 = 09:30)")
    end_time: float | None = Field(default=None, description="Hour in 24h format")
    experience_id: str | None = None
    experience_name: str | None = None
    price: float | None = None
    duration: str | None = None
    category: str | None = None

    def label(self) -> str:
        return self.experience_name or self.category or f"Item {self.id[:6]}"


class ItineraryParticipant(BaseModel):
    itinerary_id: str
    user_id: str
    joined_at: datetime = Field(default_factory=datetime.utcnow)


class AttendanceRecord(BaseModel):
    """
    Embedded per trip, one per marked participant.
    A participant with no record is 'pending'; pending records are never stored.
    """

    user_id: str
    status: AttendanceStatus
    marked_at: datetime = Field(default_factory=datetime.utcnow)
    marked_by: str

    class Config:
        use_enum_values = True


class Trip(BaseModel):
    """
    Trip document. The host (creator_id) is always on the roster.
    """

    name: str = Field(..., min_length=1, description="Trip name")
    destination: str = Field(..., min_length=1)
    location: str | None = Field(default=None)
    start_date: datetime
    end_date: datetime
    budget: float = Field(default=0, ge=0)
    visibility: str = Field(default="public", pattern="^(public|private)$")
    status: TripStatus = Field(default=TripStatus.PLANNING)
    description: str | None = Field(default=None, max_length=1000)
    itinerary: list[ItineraryItem] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    creator_id: str = Field(..., description="Host user id")
    members: list[str] = Field(default_factory=list, description="Roster of member user ids")
    itinerary_participants: list[ItineraryParticipant] = Field(default_factory=list)
    attendance: list[AttendanceRecord] = Field(default_factory=list)
    attendance_version: int = Field(default=0, description="Bumped on every attendance write")
    host_award_granted: bool = Field(
        default=False, description="Whether the hosting reputation award was granted"
    )

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "name": "Monsoon trek",
                "destination": "Lonavala",
                "start_date": "2025-07-12T06:00:00",
                "end_date": "2025-07-13T18:00:00",
                "budget": 2500,
                "visibility": "public",
                "status": "planning",
                "itinerary": [
                    {"id": "i1", "day": "Day 1", "start_time": 7.0, "end_time": 11.5,
                     "experience_name": "Rajmachi trail"}
                ],
                "creator_id": "123456789",
                "members": ["123456789"],
            }
        }


def itinerary_index(trip_doc: dict) -> dict[str, dict]:
    """Map itinerary item id -> item for a raw trip document."""
    return {item["id"]: item for item in trip_doc.get("itinerary", []) if item.get("id")}


def attendance_for(trip_doc: dict, user_id: str) -> dict | None:
    for record in trip_doc.get("attendance", []):
        if record.get("user_id") == user_id:
            return record
    return None
