from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.users import create_user, delete_user, list_users, require_user, update_user
from ..db.session import get_db
from ..deps.auth import ADMINS, require_roles
from ..schemas.user import UserCreate, UserOut, UserPage, UserUpdate

router = APIRouter(prefix="/api/v1/users", tags=["users"], dependencies=[Depends(require_roles(*ADMINS))])


@router.post("", response_model=UserOut, status_code=201)
def api_create(payload: UserCreate, db: Session = Depends(get_db)):
    return create_user(db, payload.model_dump())


@router.get("", response_model=UserPage)
def api_list(page: int = 1, limit: Optional[int] = None, all: bool = False, db: Session = Depends(get_db)):
    return list_users(db, page=page, limit=limit, all_rows=all)


@router.get("/{user_id}", response_model=UserOut)
def api_get(user_id: str, db: Session = Depends(get_db)):
    return require_user(db, user_id)


@router.patch("/{user_id}", response_model=UserOut)
def api_update(user_id: str, payload: UserUpdate, db: Session = Depends(get_db)):
    user = require_user(db, user_id)
    data = payload.model_dump(exclude_unset=True)
    if not data:
        return user
    return update_user(db, user, data)


@router.delete("/{user_id}")
def api_delete(user_id: str, db: Session = Depends(get_db)):
    delete_user(db, require_user(db, user_id))
    return {"status": "deleted", "user_id": user_id}
