"""
User Router
Own profile, other users' public projection, reputation history
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from tripcrew.core.errors import TripCrewError
from tripcrew.core.logging import get_logger
from tripcrew.models.common import APIResponse
from tripcrew.router.auth import CurrentUser, get_current_user
from tripcrew.services import privacy
from tripcrew.services.reputation import ReputationLedger
from tripcrew.services.users import get_user

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

reputation_ledger = ReputationLedger()


@router.get("/me", response_model=APIResponse)
async def get_my_profile(user: CurrentUser = Depends(get_current_user)):
    try:
        user_doc = await get_user(user.id)
        return APIResponse(code=0, msg="ok", data=privacy.to_self(user_doc).model_dump())
    except (HTTPException, TripCrewError):
        raise
    except Exception as e:
        logger.exception("get_my_profile_failed", user_id=user.id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/me/reputation-history", response_model=APIResponse)
async def get_my_reputation_history(
    limit: int = Query(50, ge=1, le=200),
    user: CurrentUser = Depends(get_current_user),
):
    try:
        events = await reputation_ledger.history(user.id, limit=limit)
        return APIResponse(code=0, msg="ok", data=events)
    except Exception as e:
        logger.exception("get_reputation_history_failed", user_id=user.id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{user_id}/public", response_model=APIResponse)
async def get_public_profile(user_id: str, user: CurrentUser = Depends(get_current_user)):
    """Initials and score for anyone else; the full record when asking about yourself."""
    try:
        user_doc = await get_user(user_id)
        return APIResponse(code=0, msg="ok", data=privacy.view_for(user.id, user_doc).model_dump())
    except (HTTPException, TripCrewError):
        raise
    except Exception as e:
        logger.exception("get_public_profile_failed", user_id=user_id)
        raise HTTPException(status_code=500, detail=str(e))
