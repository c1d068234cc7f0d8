from fastapi import APIRouter

from core.config import get_settings
from dependencies.engine import Engine
from schemas.api import ApiResponse


router = APIRouter()


@router.get("/health", response_model=ApiResponse[dict[str, str | int]])
def health_check(engine: Engine) -> ApiResponse[dict[str, str | int]]:
    """Health check endpoint for monitoring and load balancer health checks."""
    settings = get_settings()
    return ApiResponse(
        success=True,
        data={
            "status": "healthy",
            "message": f"{settings.APP_NAME} is running",
            "live_drafts": len(engine.registry),
        },
        message="Health check successful",
    )
