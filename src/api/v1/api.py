from fastapi import APIRouter

from .drafts import router as drafts_router
from .health import router as health_router


api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(drafts_router)
