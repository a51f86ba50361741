from fastapi import APIRouter
from app.api.v1.endpoints import donors, facilities, inventory, blood_requests, matching, demand, notifications

api_router = APIRouter()

api_router.include_router(donors.router, prefix="/donors", tags=["donors"])
api_router.include_router(facilities.router, prefix="/facilities", tags=["facilities"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(blood_requests.router, prefix="/requests", tags=["requests"])
api_router.include_router(matching.router, prefix="/matching", tags=["matching"])
api_router.include_router(demand.router, prefix="/demand", tags=["demand"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
