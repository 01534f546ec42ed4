from datetime import datetime
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

COLOR_PATTERN = r"^#(?:[0-9A-Fa-f]{3}|[0-9A-Fa-f]{6})$"
ALLOWED_SCHEMES = {"http", "https"}


def validate_target_url(url: str) -> str:
    value = url.strip()
    parsed = urlparse(value)
    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.netloc:
        raise ValueError("target_url must be an absolute http or https URL")
    return value


class QRCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    target_url: str
    background_color: str | None = Field(default=None, pattern=COLOR_PATTERN)
    foreground_color: str | None = Field(default=None, pattern=COLOR_PATTERN)
    size: int | None = Field(default=None, ge=64, le=2048)

    @field_validator("background_color", "foreground_color", mode="before")
    @classmethod
    def blank_color_is_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("size", mode="before")
    @classmethod
    def zero_size_is_unset(cls, v):
        return None if v == 0 else v

    @field_validator("target_url")
    @classmethod
    def check_target_url(cls, v: str) -> str:
        return validate_target_url(v)


class QRUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    target_url: str | None = None
    background_color: str | None = Field(default=None, pattern=COLOR_PATTERN)
    foreground_color: str | None = Field(default=None, pattern=COLOR_PATTERN)
    size: int | None = Field(default=None, ge=64, le=2048)

    @field_validator("target_url")
    @classmethod
    def check_target_url(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return validate_target_url(v)


class QRCodeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    title: str
    target_url: str
    background_color: str
    foreground_color: str
    size: int
    logo_path: str | None = None
    owner_id: int | None = None
    image_url: str
    redirect_url: str
    created_at: datetime
    updated_at: datetime
    total_scans: int = 0
