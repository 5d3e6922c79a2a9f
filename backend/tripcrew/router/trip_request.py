"""
Trip Request Router
Join requests, host decisions and the chat rooms they provision
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from tripcrew.core.errors import TripCrewError
from tripcrew.core.logging import get_logger
from tripcrew.models.common import APIResponse
from tripcrew.router.auth import CurrentUser, get_current_user
from tripcrew.services.chat import ChatProvisioner
from tripcrew.services.requests import RequestLedger

logger = get_logger(__name__)

router = APIRouter(prefix="/trip-requests", tags=["Trip Requests"])

chat_provisioner = ChatProvisioner()
request_ledger = RequestLedger(provisioner=chat_provisioner)


class JoinRequestBody(BaseModel):
    message: str = Field("", max_length=500)
    selected_itinerary_ids: list[str] = Field(default_factory=list)


@router.post("/{trip_id}/request", response_model=APIResponse, status_code=201)
async def send_join_request(
    trip_id: str, body: JoinRequestBody, user: CurrentUser = Depends(get_current_user)
):
    try:
        request = await request_ledger.submit_request(
            trip_id, user.id, body.message, body.selected_itinerary_ids
        )
        return APIResponse(code=0, msg="ok", data=request)
    except (HTTPException, TripCrewError):
        raise
    except Exception as e:
        logger.exception("send_join_request_failed", trip_id=trip_id)
        raise HTTPException(status_code=500, detail=f"Failed to send join request: {str(e)}")


@router.get("/my-requests", response_model=APIResponse)
async def get_my_requests(user: CurrentUser = Depends(get_current_user)):
    try:
        return APIResponse(code=0, msg="ok", data=await request_ledger.my_requests(user.id))
    except Exception as e:
        logger.exception("get_my_requests_failed", user_id=user.id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/my-trips-requests", response_model=APIResponse)
async def get_requests_for_my_trips(user: CurrentUser = Depends(get_current_user)):
    try:
        return APIResponse(code=0, msg="ok", data=await request_ledger.requests_for_my_trips(user.id))
    except Exception as e:
        logger.exception("get_requests_for_my_trips_failed", user_id=user.id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/my-chat-rooms", response_model=APIResponse)
async def get_my_chat_rooms(user: CurrentUser = Depends(get_current_user)):
    try:
        return APIResponse(code=0, msg="ok", data=await chat_provisioner.my_channels(user.id))
    except Exception as e:
        logger.exception("get_my_chat_rooms_failed", user_id=user.id)
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/chat-rooms/{chat_room_id}", response_model=APIResponse)
async def close_chat_room(chat_room_id: str, user: CurrentUser = Depends(get_current_user)):
    """Host closes the trip chat; the room is deactivated, not erased."""
    try:
        await chat_provisioner.deactivate(chat_room_id, user.id)
        return APIResponse(code=0, msg="Chat room has been closed", data={"chat_room_id": chat_room_id})
    except (HTTPException, TripCrewError):
        raise
    except Exception as e:
        logger.exception("close_chat_room_failed", chat_room_id=chat_room_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{trip_id}/requests", response_model=APIResponse)
async def get_trip_join_requests(trip_id: str, user: CurrentUser = Depends(get_current_user)):
    """Pending requests for the host; requesters appear as initials and score only."""
    try:
        requests = await request_ledger.list_pending_for_host(trip_id, user.id)
        return APIResponse(code=0, msg="ok", data=requests)
    except (HTTPException, TripCrewError):
        raise
    except Exception as e:
        logger.exception("get_trip_join_requests_failed", trip_id=trip_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/requests/{request_id}/accept", response_model=APIResponse)
async def accept_join_request(request_id: str, user: CurrentUser = Depends(get_current_user)):
    try:
        result = await request_ledger.accept(request_id, user.id)
        return APIResponse(code=0, msg="ok", data=result)
    except (HTTPException, TripCrewError):
        raise
    except Exception as e:
        logger.exception("accept_join_request_failed", request_id=request_id)
        raise HTTPException(status_code=500, detail=f"Failed to accept request: {str(e)}")


@router.post("/requests/{request_id}/reject", response_model=APIResponse)
async def reject_join_request(request_id: str, user: CurrentUser = Depends(get_current_user)):
    try:
        result = await request_ledger.reject(request_id, user.id)
        return APIResponse(code=0, msg="ok", data=result)
    except (HTTPException, TripCrewError):
        raise
    except Exception as e:
        logger.exception("reject_join_request_failed", request_id=request_id)
        raise HTTPException(status_code=500, detail=f"Failed to reject request: {str(e)}")
