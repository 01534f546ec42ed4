from fastapi import APIRouter

from qrtracker.api.routes import admin, analytics, auth, qr

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(qr.router, prefix="/qr", tags=["qr"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
