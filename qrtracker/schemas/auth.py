from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SignupRequest(BaseModel):
    username: str = Field(min_length=3, max_length=150)
    password: str = Field(min_length=6, max_length=72)


class LoginRequest(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    role: str
    created_at: datetime

    @field_validator("role", mode="before")
    @classmethod
    def role_value(cls, v):
        return v.value if isinstance(v, Enum) else v


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserOut
