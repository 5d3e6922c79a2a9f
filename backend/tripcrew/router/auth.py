from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel

from tripcrew.core.config import JWT_ALGORITHM, JWT_SECRET
from tripcrew.core.logging import get_logger
from tripcrew.models.common import APIResponse
from tripcrew.services.users import ensure_user

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])
security = HTTPBearer()


class CurrentUser(BaseModel):
    id: str
    name: str = ""
    email: str | None = None


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """
    Resolve the caller from the bearer JWT issued by the auth service.

    The token is trusted as-is (subject = user id); the only side effect is
    making sure a user record exists so reputation can be tracked.
    """
    try:
        payload = jwt.decode(credentials.credentials, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except JWTError as e:
        raise HTTPException(status_code=401, detail=f"Invalid authentication token: {str(e)}")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Token has no subject")

    user = CurrentUser(id=str(user_id), name=payload.get("name") or "", email=payload.get("email"))
    await ensure_user(user.id, user.name, user.email)
    return user


@router.get("/me", response_model=APIResponse)
async def get_me(user: CurrentUser = Depends(get_current_user)):
    """
    Echo the authenticated identity. Frontend calls this on load to check the token.
    """
    return APIResponse(code=0, msg="ok", data=user.model_dump())
