import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from qrtracker.api.routes import api_router, health, redirect
from qrtracker.core.config import get_settings
from qrtracker.core.exceptions import register_exception_handlers
from qrtracker.core.logging import setup_logging
from qrtracker.db import models  # noqa: F401
from qrtracker.db.base import Base
from qrtracker.db.session import SessionLocal, engine
from qrtracker.middleware.request_context import RequestContextMiddleware
from qrtracker.services.auth_service import seed_admin

settings = get_settings()
setup_logging(logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
    if not settings.admin_seed_configured:
        logger.info("ADMIN_USERNAME/ADMIN_PASSWORD not set; skipping admin seed")
        return
    db = SessionLocal()
    try:
        seed_admin(db, settings.ADMIN_USERNAME.strip(), settings.ADMIN_PASSWORD)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    logger.info("%s started (owner scoping %s)", settings.APP_NAME, "on" if settings.OWNER_SCOPING else "off")
    yield


app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)
app.include_router(api_router, prefix=settings.API_PREFIX)
app.include_router(health.router, tags=["health"])
app.include_router(redirect.router, tags=["redirect"])
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

image_dir = Path(settings.QR_IMAGE_DIR)
image_dir.mkdir(parents=True, exist_ok=True)
app.mount(settings.QR_IMAGE_URL_PATH, StaticFiles(directory=str(image_dir)), name="qr-images")
