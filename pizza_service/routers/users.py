from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from pizza_service.core.database import get_db
from pizza_service.deps import get_auth_manager, get_optional_identity, require_identity
from pizza_service.services.auth_manager import AuthManager
from pizza_service.services.identity import Identity
from pizza_service.services.serializers import user_to_dict

router = APIRouter(prefix="/api/user", tags=["users"])


class UserUpdatePayload(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


@router.get("/me")
def get_me(
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    auth: AuthManager = Depends(get_auth_manager),
):
    return user_to_dict(auth.get_self(db, identity))


@router.put("/{user_id}")
def update_user(
    user_id: int,
    payload: UserUpdatePayload,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    auth: AuthManager = Depends(get_auth_manager),
):
    result = auth.update_profile(
        db,
        identity,
        user_id,
        name=payload.name,
        email=payload.email,
        password=payload.password,
    )
    return {"user": user_to_dict(result.user), "token": result.token}


@router.get("")
def list_users(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    name: Optional[str] = Query(None),
    identity: Optional[Identity] = Depends(get_optional_identity),
    db: Session = Depends(get_db),
    auth: AuthManager = Depends(get_auth_manager),
):
    result = auth.list_users(db, identity, name=name, page=page, limit=limit)
    return {"users": [user_to_dict(user) for user in result.rows], "more": result.more}


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    auth: AuthManager = Depends(get_auth_manager),
):
    auth.delete_user(db, identity, user_id)
    return {"message": "user deleted"}
