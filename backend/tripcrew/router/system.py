from fastapi import APIRouter

from tripcrew.core.config import APP_NAME, APP_VERSION, ENVIRONMENT
from tripcrew.db.database import test_connection
from tripcrew.models.common import APIResponse

router = APIRouter(tags=["System"])


@router.get("/", response_model=APIResponse)
def root():
    return APIResponse(data={"name": APP_NAME, "version": APP_VERSION, "environment": ENVIRONMENT})


@router.get("/health", response_model=APIResponse)
async def health_check():
    """Liveness plus a MongoDB ping; the API stays up when the ping fails."""
    database_ok = await test_connection()
    return APIResponse(
        msg="ok" if database_ok else "degraded",
        data={"status": "healthy" if database_ok else "degraded", "database": database_ok},
    )
