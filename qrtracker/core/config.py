from functools import lru_cache
from pathlib import Path
from typing import List
from urllib.parse import urlparse
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=str(ENV_FILE), case_sensitive=False, extra="ignore")

    APP_NAME: str = "QR Tracker"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    API_PREFIX: str = "/api"
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 8080

    DATABASE_URL: str = "sqlite:///./data/qr_tracker.db"

    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440

    # Multi-tenant mode: every QR code belongs to the user who created it.
    OWNER_SCOPING: bool = True

    ADMIN_USERNAME: str = ""
    ADMIN_PASSWORD: str = ""

    IPGEOLOCATION_API_KEY: str = ""
    GEOLOCATION_API_URL: str = "https://api.ipgeolocation.io/ipgeo"
    GEOLOCATION_TIMEOUT_SECONDS: float = 0.3
    # Overall bound on one lookup, DNS resolution included.
    GEOLOCATION_DEADLINE_SECONDS: float = 0.5

    GTM_ID: str = ""
    BASE_URL: str = "http://localhost:8080"
    QR_IMAGE_DIR: str = "./data/qr_images"
    QR_IMAGE_URL_PATH: str = "/qr-images"
    CODE_GENERATION_ATTEMPTS: int = 5

    CORS_ORIGINS: str = "http://localhost:3000"

    @property
    def cors_origins(self) -> List[str]:
        origins: list[str] = []
        for raw in self.CORS_ORIGINS.split(","):
            value = raw.strip()
            if not value:
                continue
            parsed = urlparse(value)
            if parsed.scheme and parsed.netloc:
                value = f"{parsed.scheme}://{parsed.netloc}"
            origins.append(value.rstrip("/"))
        return origins

    @property
    def database_url(self) -> str:
        # Hosted Postgres providers still hand out the legacy scheme.
        if self.DATABASE_URL.startswith("postgres://"):
            return self.DATABASE_URL.replace("postgres://", "postgresql://", 1)
        return self.DATABASE_URL

    @property
    def geolocation_enabled(self) -> bool:
        return bool(self.IPGEOLOCATION_API_KEY.strip())

    @property
    def admin_seed_configured(self) -> bool:
        return bool(self.ADMIN_USERNAME.strip() and self.ADMIN_PASSWORD)


@lru_cache
def get_settings() -> Settings:
    return Settings()
