"""User accounts for the role gate."""

from __future__ import annotations

import re
from typing import Any

from sqlalchemy import desc, func, or_, select
from sqlalchemy.orm import Session

from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.pagination import paginate_query
from ..core.security import hash_password, verify_password
from ..db.transactions import atomic
from ..models.user import ROLES, User
from ..services.sequences import next_user_id
from ..services.timecalc import iso_timestamp

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _email(value: Any) -> str:
    email = _clean(value).lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("A valid email address is required.", field="email")
    return email


def _role(value: Any) -> str:
    role = _clean(value) or "IT"
    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(ROLES)}.", field="role", role=role)
    return role


def _password(value: Any) -> str:
    password = value or ""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters.", field="password"
        )
    if len(password.encode("utf-8")) > 72:
        raise ValidationError("Password must be at most 72 bytes.", field="password")
    return password


def _email_taken(db: Session, email: str, exclude_id: int | None = None) -> bool:
    stmt = select(User.id).where(func.lower(User.email) == email)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    return db.execute(stmt).first() is not None


def find_user(db: Session, user_id: str) -> User | None:
    return db.execute(select(User).where(User.user_id == user_id)).scalars().first()


def require_user(db: Session, user_id: str) -> User:
    user = find_user(db, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found.", entity="user", key=user_id)
    return user


def list_users(
    db: Session, *, page: int | None = 1, limit: int | None = None, all_rows: bool = False
) -> dict[str, Any]:
    stmt = select(User).order_by(desc(User.created_at), desc(User.id))
    return paginate_query(db, stmt, page=page, limit=limit, all_rows=all_rows)


def create_user(db: Session, payload: dict) -> User:
    firstname = _clean(payload.get("firstname"))
    lastname = _clean(payload.get("lastname"))
    if not firstname or not lastname:
        raise ValidationError("firstname and lastname are required.")
    email = _email(payload.get("email"))
    role = _role(payload.get("role"))
    password = _password(payload.get("password"))

    with atomic(db, "users.create"):
        if _email_taken(db, email):
            raise ConflictError("A user with this email already exists.", email=email)
        user = User(
            user_id=next_user_id(db),
            firstname=firstname,
            lastname=lastname,
            email=email,
            role=role,
            password_hash=hash_password(password),
            created_at=iso_timestamp(),
        )
        db.add(user)
    db.refresh(user)
    return user


def update_user(db: Session, user: User, payload: dict) -> User:
    with atomic(db, "users.update"):
        for key in ("firstname", "lastname"):
            if key in payload and payload[key] is not None:
                value = _clean(payload[key])
                if not value:
                    raise ValidationError(f"{key} cannot be blank.", field=key)
                setattr(user, key, value)
        if payload.get("email") is not None:
            email = _email(payload["email"])
            if _email_taken(db, email, exclude_id=user.id):
                raise ConflictError("A user with this email already exists.", email=email)
            user.email = email
        if payload.get("role") is not None:
            user.role = _role(payload["role"])
        if payload.get("password"):
            user.password_hash = hash_password(_password(payload["password"]))
    db.refresh(user)
    return user


def delete_user(db: Session, user: User) -> None:
    with atomic(db, "users.delete"):
        db.delete(user)


def authenticate(db: Session, login: str, password: str) -> User | None:
    """Match ``login`` against email or user id and check the password."""

    login = _clean(login)
    if not login:
        return None
    stmt = select(User).where(or_(func.lower(User.email) == login.lower(), User.user_id == login))
    user = db.execute(stmt).scalars().first()
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


__all__ = [
    "authenticate",
    "create_user",
    "delete_user",
    "find_user",
    "list_users",
    "require_user",
    "update_user",
]
