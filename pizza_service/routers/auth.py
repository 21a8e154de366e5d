# pizza_service/routers/auth.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from pizza_service.core.database import get_db
from pizza_service.deps import get_auth_manager, require_identity
from pizza_service.services.auth_manager import AuthManager
from pizza_service.services.identity import Identity
from pizza_service.services.serializers import user_to_dict

router = APIRouter(prefix="/api/auth", tags=["auth"])


# fields stay optional: missing ones are reported by AuthManager with its own messages
class RegisterPayload(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginPayload(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


@router.post("")
def register(
    payload: RegisterPayload,
    db: Session = Depends(get_db),
    auth: AuthManager = Depends(get_auth_manager),
):
    result = auth.register(db, payload.name, payload.email, payload.password)
    return {"user": user_to_dict(result.user), "token": result.token}


@router.put("")
def login(
    payload: LoginPayload,
    db: Session = Depends(get_db),
    auth: AuthManager = Depends(get_auth_manager),
):
    result = auth.login(db, payload.email, payload.password)
    return {"user": user_to_dict(result.user), "token": result.token}


@router.delete("")
def logout(
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    auth: AuthManager = Depends(get_auth_manager),
):
    auth.logout(db, identity)
    return {"message": "logout successful"}
