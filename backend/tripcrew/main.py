from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tripcrew.core.config import APP_NAME, APP_VERSION, CORS_ORIGINS, SERVER_HOST, SERVER_PORT
from tripcrew.core.errors import TripCrewError
from tripcrew.core.logging import configure_logging, get_logger
from tripcrew.db.database import close_database_connection, init_indexes, test_connection
from tripcrew.models.common import APIResponse
from tripcrew.router.attendance import router as attendance_router
from tripcrew.router.auth import router as auth_router
from tripcrew.router.system import router as system_router
from tripcrew.router.trip import router as trip_router
from tripcrew.router.trip_request import router as trip_request_router
from tripcrew.router.user import router as user_router

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("api_starting", app=APP_NAME, version=APP_VERSION)
    await test_connection()
    await init_indexes()
    yield
    logger.info("api_stopping", app=APP_NAME)
    await close_database_connection()


app = FastAPI(title=APP_NAME, version=APP_VERSION, lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TripCrewError)
async def trip_crew_error_handler(request: Request, exc: TripCrewError):
    logger.info("request_rejected", path=request.url.path, kind=exc.kind, detail=exc.detail)
    body = APIResponse.failure(exc.status_code, exc.detail, exc.kind)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


# Mount routers
app.include_router(system_router)
app.include_router(auth_router)
app.include_router(trip_router)
app.include_router(trip_request_router)
app.include_router(attendance_router)
app.include_router(user_router)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)
