"""
Join request from a visitor to a trip host
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTING = "accepting"  # claimed by an in-flight accept
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class SelectedItineraryItem(BaseModel):
    """An itinerary item the requester wants to take part in, snapshotted for display."""

    itinerary_id: str
    label: str
    day: str | None = None
    time_slot: str | None = None
    start_time: float | None = None
    end_time: float | None = None


class TripRequest(BaseModel):
    trip_id: str
    requester_id: str
    trip_owner_id: str = Field(..., description="Trip host, denormalized for filtering")
    message: str = Field(default="", max_length=500)
    selected_itinerary: list[SelectedItineraryItem] = Field(default_factory=list)
    status: RequestStatus = Field(default=RequestStatus.PENDING)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    responded_at: datetime | None = None

    class Config:
        use_enum_values = True
