from __future__ import annotations

from sqlalchemy import Column, Integer, Text

from ..db.session import Base

ROLES = ("IT", "Accounts", "InventoryStaff", "InventoryAdmin")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Text, nullable=False, unique=True, index=True)
    firstname = Column(Text, nullable=False)
    lastname = Column(Text, nullable=False)
    email = Column(Text, nullable=False, unique=True, index=True)
    role = Column(Text, nullable=False, default="IT")
    password_hash = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)

    @property
    def display_name(self) -> str:
        return f"{self.firstname} {self.lastname}".strip()


__all__ = ["ROLES", "User"]
