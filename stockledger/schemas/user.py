from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class UserCreate(BaseModel):
    firstname: str
    lastname: str
    email: str
    password: str
    role: Optional[str] = "IT"


class UserUpdate(BaseModel):
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class UserOut(BaseModel):
    user_id: str
    firstname: str
    lastname: str
    email: str
    role: str
    created_at: str

    class Config:
        from_attributes = True


class UserPage(BaseModel):
    items: list[UserOut]
    total: int
    page: int
    pages: int
