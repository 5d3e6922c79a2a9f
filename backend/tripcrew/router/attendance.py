"""
Attendance Router
Host-only roster view and attendance marking
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from tripcrew.core.errors import TripCrewError
from tripcrew.core.logging import get_logger
from tripcrew.models.common import APIResponse
from tripcrew.router.auth import CurrentUser, get_current_user
from tripcrew.services.attendance import AttendanceTracker

logger = get_logger(__name__)

router = APIRouter(prefix="/attendance", tags=["Attendance"])

attendance_tracker = AttendanceTracker()


class MarkAttendanceRequest(BaseModel):
    user_id: str
    status: str  # showed_up | no_show


@router.get("/{trip_id}", response_model=APIResponse)
async def get_trip_attendance(trip_id: str, user: CurrentUser = Depends(get_current_user)):
    try:
        roster = await attendance_tracker.roster_view(trip_id, user.id)
        return APIResponse(code=0, msg="ok", data=roster)
    except (HTTPException, TripCrewError):
        raise
    except Exception as e:
        logger.exception("get_trip_attendance_failed", trip_id=trip_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{trip_id}/mark", response_model=APIResponse)
async def mark_attendance(
    trip_id: str, body: MarkAttendanceRequest, user: CurrentUser = Depends(get_current_user)
):
    """
    Mark a participant as showed_up or no_show. Switching between the two
    corrects the earlier mark and its reputation effect.
    """
    try:
        participant = await attendance_tracker.mark_attendance(trip_id, user.id, body.user_id, body.status)
        label = "showed up" if participant["attendance_status"] == "showed_up" else "no show"
        return APIResponse(code=0, msg=f"Attendance marked as {label}", data=participant)
    except (HTTPException, TripCrewError):
        raise
    except Exception as e:
        logger.exception("mark_attendance_failed", trip_id=trip_id, participant_id=body.user_id)
        raise HTTPException(status_code=500, detail=str(e))
