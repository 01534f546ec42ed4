from fastapi import APIRouter

from qrtracker.core.config import get_settings

router = APIRouter()
settings = get_settings()


@router.get("/health")
def health():
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "ownerScoping": settings.OWNER_SCOPING,
        "geolocationConfigured": settings.geolocation_enabled,
    }
