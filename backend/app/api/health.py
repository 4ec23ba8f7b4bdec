from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from app.core.config import Settings
from app.core.dependencies import get_app_settings

router = APIRouter(tags=["health"])


@router.get("/", response_class=PlainTextResponse)
async def liveness(settings: Settings = Depends(get_app_settings)) -> str:
    return f"{settings.site_name} backend is running successfully!"
