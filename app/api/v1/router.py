from fastapi import APIRouter
from app.api.v1.endpoints import notifications, schedule

api_router = APIRouter()

api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(schedule.router, tags=["schedule"])
