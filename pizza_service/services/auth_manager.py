from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pizza_service.core.errors import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from pizza_service.core.metrics import InMemoryRequestMetrics, request_metrics
from pizza_service.models.order import Order
from pizza_service.models.user import Role, RoleGrant, User
from pizza_service.services.access_policy import Action, Resource, ensure_allowed
from pizza_service.services.identity import Identity
from pizza_service.services.listing import Page, apply_name_filter, paginate
from pizza_service.services.passwords import PasswordHasher
from pizza_service.services.revocation import RevocationRegistry
from pizza_service.services.tokens import InvalidTokenError, TokenCodec

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
EMAIL_TAKEN = "email already registered"

REVOKE_NEVER = "never"
REVOKE_ON_PASSWORD = "password"
REVOKE_ALWAYS = "always"


@dataclass
class AuthResult:
    user: User
    token: str


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def normalize_email(email: Optional[str]) -> str:
    return _clean(email).lower()


class AuthManager:
    """Register/login/logout/authenticate plus user lifecycle.

    Every operation takes the request's SQLAlchemy session; the manager
    itself only holds the hasher, the token codec and the revocation
    registry it was built with.
    """

    def __init__(
        self,
        hasher: PasswordHasher,
        codec: TokenCodec,
        registry: RevocationRegistry,
        *,
        profile_update_revocation: str = REVOKE_ON_PASSWORD,
        metrics: InMemoryRequestMetrics = request_metrics,
    ) -> None:
        self.hasher = hasher
        self.codec = codec
        self.registry = registry
        self.profile_update_revocation = profile_update_revocation
        self.metrics = metrics
        self._dummy_hash: Optional[str] = None

    # ------------------------------------------------------------------
    # sessions
    # ------------------------------------------------------------------
    def issue_token(self, db: Session, user: User) -> str:
        generation = self.registry.current(db, user.id)
        grants = [(grant.role, int(grant.scope_id or 0)) for grant in user.roles]
        return self.codec.encode(user.id, generation, grants)

    def register(self, db: Session, name: Optional[str], email: Optional[str], password: Optional[str]) -> AuthResult:
        name, email, password = _clean(name), normalize_email(email), password or ""
        if not name or not email or not password:
            raise ValidationError("name, email, and password are required")

        if db.query(User.id).filter(User.email == email).first():
            raise ConflictError(EMAIL_TAKEN)

        user = User(name=name, email=email, password_hash=self.hasher.hash(password))
        user.roles.append(RoleGrant(role=Role.DINER.value, scope_id=0))
        db.add(user)
        try:
            db.flush()
            self.registry.ensure(db, user.id)
            db.commit()
        except IntegrityError as exc:
            # lost a concurrent registration race on the unique email
            db.rollback()
            raise ConflictError(EMAIL_TAKEN) from exc
        db.refresh(user)

        logger.info("[AUTH] registered user_id=%s", user.id)
        self.metrics.increment("auth.register")
        return AuthResult(user=user, token=self.issue_token(db, user))

    def login(self, db: Session, email: Optional[str], password: Optional[str]) -> AuthResult:
        if not _clean(email):
            raise ValidationError("Email is required")
        if not password:
            raise ValidationError("Password is required")

        user = db.query(User).filter(User.email == normalize_email(email)).first()
        if user is None:
            # same bcrypt cost whether or not the account exists
            self.hasher.verify(password, self._get_dummy_hash())
            self._reject_login("unknown_email")
        if not self.hasher.verify(password, user.password_hash):
            self._reject_login("bad_password", user_id=user.id)

        logger.info("[AUTH] login user_id=%s", user.id)
        self.metrics.increment("auth.login")
        return AuthResult(user=user, token=self.issue_token(db, user))

    def logout(self, db: Session, identity: Identity) -> None:
        revoked = self.registry.revoke(db, identity.id, identity.generation)
        db.commit()
        logger.info("[AUTH] logout user_id=%s revoked=%s", identity.id, revoked)
        self.metrics.increment("auth.logout")

    def authenticate(self, db: Session, token: Optional[str]) -> Optional[Identity]:
        """Return the caller behind ``token`` or ``None``. Never raises."""
        if not token:
            return None
        try:
            claims = self.codec.decode(token)
        except InvalidTokenError:
            return None

        try:
            user = db.get(User, claims.user_id)
            if user is None:
                return None
            if self.registry.current(db, user.id) != claims.generation:
                logger.info("[AUTH] revoked token presented user_id=%s", user.id)
                return None
        except SQLAlchemyError:
            logger.exception("[AUTH] session lookup failed; treating caller as anonymous")
            return None

        return Identity.from_user(user, generation=claims.generation, token_id=claims.token_id)

    # ------------------------------------------------------------------
    # users
    # ------------------------------------------------------------------
    def get_self(self, db: Session, identity: Optional[Identity]) -> User:
        if identity is None:
            raise UnauthorizedError()
        return self.get_user(db, identity, identity.id)

    def get_user(self, db: Session, actor: Optional[Identity], user_id: int) -> User:
        ensure_allowed(actor, Action.VIEW_USER, Resource(owner_id=user_id))
        user = db.get(User, int(user_id))
        if user is None:
            raise NotFoundError("user not found")
        return user

    def update_profile(
        self,
        db: Session,
        actor: Optional[Identity],
        target_id: int,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> AuthResult:
        ensure_allowed(actor, Action.UPDATE_USER, Resource(owner_id=target_id))
        user = db.get(User, int(target_id))
        if user is None:
            raise NotFoundError("user not found")

        new_name = _clean(name) if name is not None else user.name
        new_email = normalize_email(email) if email is not None else user.email
        if not new_name:
            raise ValidationError("name cannot be empty")
        if not new_email:
            raise ValidationError("email cannot be empty")
        if new_email != user.email:
            taken = db.query(User.id).filter(User.email == new_email, User.id != user.id).first()
            if taken:
                raise ConflictError(EMAIL_TAKEN)

        user.name = new_name
        user.email = new_email
        password_changed = bool(password)
        if password_changed:
            user.password_hash = self.hasher.hash(password)

        if self.profile_update_revocation == REVOKE_ALWAYS or (
            self.profile_update_revocation == REVOKE_ON_PASSWORD and password_changed
        ):
            self.registry.bump(db, user.id)

        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise ConflictError(EMAIL_TAKEN) from exc
        db.refresh(user)

        logger.info(
            "[AUTH] profile updated user_id=%s by=%s password_changed=%s",
            user.id,
            actor.id,
            password_changed,
        )
        return AuthResult(user=user, token=self.issue_token(db, user))

    def delete_user(self, db: Session, actor: Optional[Identity], target_id: int) -> None:
        # non-admins are refused before we reveal whether the target exists
        ensure_allowed(actor, Action.DELETE_USER)
        user = db.get(User, int(target_id))
        if user is None:
            raise NotFoundError("user not found")
        ensure_allowed(actor, Action.DELETE_USER, Resource(target_is_admin=user.has_role(Role.ADMIN)))

        (
            db.query(Order)
            .filter(Order.diner_id == user.id)
            .update({Order.diner_id: None}, synchronize_session=False)
        )
        db.delete(user)
        generation = self.registry.bump(db, int(target_id))
        db.commit()

        logger.info(
            "[AUTH] user deleted user_id=%s by=%s generation=%s",
            target_id,
            actor.id,
            generation,
        )

    def list_users(
        self,
        db: Session,
        actor: Optional[Identity],
        *,
        name: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Page:
        ensure_allowed(actor, Action.LIST_USERS)
        query = apply_name_filter(db.query(User).order_by(User.id.asc()), User.name, name)
        return paginate(query, page, limit)

    def _reject_login(self, reason: str, user_id: Optional[int] = None) -> None:
        logger.info("[AUTH] login rejected reason=%s user_id=%s", reason, user_id)
        self.metrics.increment("auth.login_failed")
        raise UnauthorizedError(INVALID_CREDENTIALS)

    def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = self.hasher.hash("not-a-real-password")
        return self._dummy_hash
