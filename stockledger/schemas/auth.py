from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    login: str = Field(..., min_length=1, description="Email address or user id")
    password: str = Field(..., min_length=1)

    model_config = {
        "json_schema_extra": {
            "example": {"login": "admin@example.org", "password": "secret123"}
        },
    }


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user_id: Optional[str] = None
    role: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "access_token": "<jwt>",
                "refresh_token": "<jwt>",
                "token_type": "bearer",
                "expires_in": 900,
                "user_id": "USR-0001",
                "role": "InventoryAdmin",
            }
        }
    }


class RefreshRequest(BaseModel):
    refresh_token: str

    model_config = {
        "json_schema_extra": {
            "example": {"refresh_token": "<jwt>"}
        }
    }


class MeResponse(BaseModel):
    subject: str
    role: str
    scheme: str
    name: Optional[str] = None
