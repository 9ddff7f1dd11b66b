from fastapi import APIRouter, Depends

from ..settings import Settings, get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health(settings: Settings = Depends(get_settings)):
	return {"status": "ok", "gemini_configured": bool(settings.gemini_api_key)}
