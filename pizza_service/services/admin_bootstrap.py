from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from pizza_service.models.user import Role, RoleGrant, User
from pizza_service.services.auth_manager import normalize_email
from pizza_service.services.passwords import PasswordHasher
from pizza_service.services.revocation import RevocationRegistry


def ensure_users_table(engine: Engine) -> None:
    inspector = inspect(engine)
    if not inspector.has_table("users"):
        raise RuntimeError("Table users not found. Run `alembic upgrade head` first.")


def upsert_admin_user(
    db: Session,
    *,
    hasher: PasswordHasher,
    registry: RevocationRegistry,
    email: str,
    name: str,
    password: str | None,
) -> tuple[User, bool]:
    """Create the admin account, or promote/refresh an existing one.

    Returns ``(user, created)``.
    """
    email = normalize_email(email)
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        if name:
            existing.name = name
        if not existing.has_role(Role.ADMIN):
            existing.roles.append(RoleGrant(role=Role.ADMIN.value, scope_id=0))
        if password:
            existing.password_hash = hasher.hash(password)
            # old sessions were issued against the old password
            registry.bump(db, existing.id)
        db.commit()
        db.refresh(existing)
        return existing, False

    if not password:
        raise ValueError("A password is required to create a new admin.")

    admin = User(
        email=email,
        name=name or "Admin",
        password_hash=password if hasher.looks_hashed(password) else hasher.hash(password),
    )
    admin.roles.append(RoleGrant(role=Role.ADMIN.value, scope_id=0))
    db.add(admin)
    db.flush()
    registry.ensure(db, admin.id)
    db.commit()
    db.refresh(admin)
    return admin, True
