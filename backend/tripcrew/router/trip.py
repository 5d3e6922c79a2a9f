"""
Trip Router
Handles trip creation, lookup, status changes and deletion
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from tripcrew.core.errors import TripCrewError
from tripcrew.core.logging import get_logger
from tripcrew.models.common import APIResponse
from tripcrew.models.trip import ItineraryItem, Trip, TripStatus
from tripcrew.router.auth import CurrentUser, get_current_user
from tripcrew.services.trips import TripService, get_trip, serialize_trip

logger = get_logger(__name__)

router = APIRouter(prefix="/trips", tags=["Trips"])

trip_service = TripService()


class CreateTripRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Name for the trip")
    location: str = Field(..., min_length=1, description="Destination / meeting location")
    start_date: datetime
    end_date: datetime
    budget: float = Field(0, ge=0)
    visibility: str = Field("public", pattern="^(public|private)$")
    description: str | None = Field(None, max_length=1000)
    itinerary: list[ItineraryItem] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class UpdateStatusRequest(BaseModel):
    status: TripStatus


@router.post("/", response_model=APIResponse)
async def create_trip(body: CreateTripRequest, user: CurrentUser = Depends(get_current_user)):
    """
    Create a trip. The caller becomes host and first member, and receives the
    hosting reputation award once.
    """
    try:
        trip = Trip(
            name=body.name,
            destination=body.location,
            location=body.location,
            start_date=body.start_date,
            end_date=body.end_date,
            budget=body.budget,
            visibility=body.visibility,
            description=body.description,
            itinerary=body.itinerary,
            tags=body.tags,
            creator_id=user.id,
        )
        created = await trip_service.create_trip(user.id, trip)
        return APIResponse(code=0, msg="ok", data=created)
    except (HTTPException, TripCrewError):
        raise
    except Exception as e:
        logger.exception("create_trip_failed", user_id=user.id)
        raise HTTPException(status_code=500, detail=f"Failed to create trip: {str(e)}")


@router.get("/mine", response_model=APIResponse)
async def get_my_trips(user: CurrentUser = Depends(get_current_user)):
    """Trips the caller hosts or has joined."""
    try:
        trips = await trip_service.trips_for_user(user.id)
        return APIResponse(code=0, msg="ok", data=trips)
    except Exception as e:
        logger.exception("get_my_trips_failed", user_id=user.id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{trip_id}", response_model=APIResponse)
async def get_trip_details(trip_id: str, user: CurrentUser = Depends(get_current_user)):
    """
    Trip details. Attendance is host-only and served by /attendance.
    """
    try:
        trip_doc = serialize_trip(await get_trip(trip_id))
        if trip_doc.get("creator_id") != user.id:
            trip_doc.pop("attendance", None)
        trip_doc.pop("attendance_version", None)
        return APIResponse(code=0, msg="ok", data=trip_doc)
    except (HTTPException, TripCrewError):
        raise
    except Exception as e:
        logger.exception("get_trip_failed", trip_id=trip_id)
        raise HTTPException(status_code=500, detail=f"Failed to get trip: {str(e)}")


@router.patch("/{trip_id}/status", response_model=APIResponse)
async def update_trip_status(
    trip_id: str, body: UpdateStatusRequest, user: CurrentUser = Depends(get_current_user)
):
    """Host moves the trip along planning -> confirmed -> completed, or cancels it."""
    try:
        trip_doc = await trip_service.update_status(trip_id, user.id, body.status)
        return APIResponse(code=0, msg="ok", data={"trip_id": trip_id, "status": trip_doc["status"]})
    except (HTTPException, TripCrewError):
        raise
    except Exception as e:
        logger.exception("update_trip_status_failed", trip_id=trip_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{trip_id}", response_model=APIResponse)
async def delete_trip(trip_id: str, user: CurrentUser = Depends(get_current_user)):
    """Delete a trip. Only the host can delete."""
    try:
        await trip_service.delete_trip(trip_id, user.id)
        return APIResponse(code=0, msg="Trip deleted successfully", data={"trip_id": trip_id})
    except (HTTPException, TripCrewError):
        raise
    except Exception as e:
        logger.exception("delete_trip_failed", trip_id=trip_id)
        raise HTTPException(status_code=500, detail=str(e))
