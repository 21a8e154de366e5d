"""Menu, franchise and store management."""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pizza_service.core.errors import ConflictError, NotFoundError, ValidationError
from pizza_service.models.franchise import Franchise, Store
from pizza_service.models.menu_item import MenuItem
from pizza_service.models.user import Role, RoleGrant, User
from pizza_service.services.access_policy import Action, Resource, decide, ensure_allowed
from pizza_service.services.auth_manager import normalize_email
from pizza_service.services.identity import Identity
from pizza_service.services.listing import apply_name_filter, paginate
from pizza_service.services.serializers import franchise_to_dict

logger = logging.getLogger(__name__)

FRANCHISE_NAME_TAKEN = "franchise name already exists"


class CatalogService:
    # ------------------------------------------------------------------
    # menu
    # ------------------------------------------------------------------
    def get_menu(self, db: Session) -> List[MenuItem]:
        return db.query(MenuItem).order_by(MenuItem.id.asc()).all()

    def add_menu_item(
        self,
        db: Session,
        actor: Optional[Identity],
        *,
        title: Optional[str],
        description: Optional[str] = None,
        image: Optional[str] = None,
        price: Optional[float] = None,
    ) -> List[MenuItem]:
        ensure_allowed(actor, Action.ADD_MENU_ITEM)
        title = (title or "").strip()
        if not title:
            raise ValidationError("title is required")
        if price is None:
            raise ValidationError("price is required")
        if float(price) < 0:
            raise ValidationError("price must be zero or greater")

        item = MenuItem(
            title=title,
            description=description or "",
            image=image or "",
            price=float(price),
        )
        db.add(item)
        db.commit()
        logger.info("[CATALOG] menu item added id=%s by=%s", item.id, actor.id)
        return self.get_menu(db)

    # ------------------------------------------------------------------
    # franchises
    # ------------------------------------------------------------------
    def _admins_by_franchise(self, db: Session, franchise_ids: Iterable[int]) -> Dict[int, List[User]]:
        ids = [int(fid) for fid in franchise_ids]
        result: Dict[int, List[User]] = defaultdict(list)
        if not ids:
            return result
        rows = (
            db.query(RoleGrant.scope_id, User)
            .join(User, User.id == RoleGrant.user_id)
            .filter(RoleGrant.role == Role.FRANCHISEE.value, RoleGrant.scope_id.in_(ids))
            .order_by(User.id.asc())
            .all()
        )
        for scope_id, user in rows:
            result[int(scope_id)].append(user)
        return result

    def _get_franchise(self, db: Session, franchise_id: int) -> Franchise:
        franchise = db.get(Franchise, int(franchise_id))
        if franchise is None:
            raise NotFoundError("unknown franchise")
        return franchise

    def create_franchise(
        self,
        db: Session,
        actor: Optional[Identity],
        *,
        name: Optional[str],
        admin_emails: Iterable[str] = (),
    ) -> Dict[str, Any]:
        ensure_allowed(actor, Action.CREATE_FRANCHISE)
        name = (name or "").strip()
        if not name:
            raise ValidationError("franchise name is required")

        # resolve every admin before anything is written
        admins: List[User] = []
        for raw_email in admin_emails:
            email = normalize_email(raw_email)
            user = db.query(User).filter(User.email == email).first()
            if user is None:
                raise NotFoundError(f"unknown user for franchise admin {raw_email} provided")
            if user not in admins:
                admins.append(user)

        if db.query(Franchise.id).filter(Franchise.name == name).first():
            raise ConflictError(FRANCHISE_NAME_TAKEN)

        franchise = Franchise(name=name)
        db.add(franchise)
        try:
            db.flush()
            for admin in admins:
                if not admin.has_role(Role.FRANCHISEE, franchise.id):
                    admin.roles.append(RoleGrant(role=Role.FRANCHISEE.value, scope_id=franchise.id))
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise ConflictError(FRANCHISE_NAME_TAKEN) from exc
        db.refresh(franchise)

        logger.info(
            "[CATALOG] franchise created id=%s admins=%s by=%s",
            franchise.id,
            [admin.id for admin in admins],
            actor.id,
        )
        return franchise_to_dict(franchise, admins)

    def delete_franchise(self, db: Session, actor: Optional[Identity], franchise_id: int) -> None:
        ensure_allowed(actor, Action.DELETE_FRANCHISE)
        franchise = self._get_franchise(db, franchise_id)
        (
            db.query(RoleGrant)
            .filter(RoleGrant.role == Role.FRANCHISEE.value, RoleGrant.scope_id == franchise.id)
            .delete(synchronize_session=False)
        )
        db.delete(franchise)
        db.commit()
        logger.info("[CATALOG] franchise deleted id=%s by=%s", franchise_id, actor.id)

    def list_franchises(
        self,
        db: Session,
        actor: Optional[Identity],
        *,
        name: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        query = apply_name_filter(db.query(Franchise).order_by(Franchise.id.asc()), Franchise.name, name)
        result = paginate(query, page, limit)

        # admin fields only for admins and franchisees of that franchise
        detailed = {
            f.id
            for f in result.rows
            if decide(actor, Action.VIEW_FRANCHISE_DETAILS, Resource(franchise_id=f.id)).allowed
        }
        admins = self._admins_by_franchise(db, detailed)
        franchises = [
            franchise_to_dict(f, admins.get(f.id, []), with_details=f.id in detailed) for f in result.rows
        ]
        return {"franchises": franchises, "more": result.more}

    def list_user_franchises(self, db: Session, actor: Optional[Identity], user_id: int) -> List[Dict[str, Any]]:
        """Franchises ``user_id`` administers; empty for anyone but that user or an admin."""
        if not decide(actor, Action.LIST_USER_FRANCHISES, Resource(owner_id=user_id)).allowed:
            return []

        franchise_ids = [
            int(scope_id)
            for (scope_id,) in db.query(RoleGrant.scope_id).filter(
                RoleGrant.user_id == int(user_id),
                RoleGrant.role == Role.FRANCHISEE.value,
            )
        ]
        if not franchise_ids:
            return []
        franchises = (
            db.query(Franchise)
            .filter(Franchise.id.in_(franchise_ids))
            .order_by(Franchise.id.asc())
            .all()
        )
        admins = self._admins_by_franchise(db, [f.id for f in franchises])
        return [franchise_to_dict(f, admins.get(f.id, [])) for f in franchises]

    # ------------------------------------------------------------------
    # stores
    # ------------------------------------------------------------------
    def create_store(
        self,
        db: Session,
        actor: Optional[Identity],
        franchise_id: int,
        *,
        name: Optional[str],
    ) -> Store:
        ensure_allowed(actor, Action.CREATE_STORE, Resource(franchise_id=franchise_id))
        franchise = self._get_franchise(db, franchise_id)
        name = (name or "").strip()
        if not name:
            raise ValidationError("store name is required")

        store = Store(franchise_id=franchise.id, name=name, total_revenue=0.0)
        db.add(store)
        db.commit()
        db.refresh(store)
        logger.info("[CATALOG] store created id=%s franchise_id=%s by=%s", store.id, franchise.id, actor.id)
        return store

    def delete_store(self, db: Session, actor: Optional[Identity], franchise_id: int, store_id: int) -> None:
        ensure_allowed(actor, Action.DELETE_STORE, Resource(franchise_id=franchise_id))
        store = (
            db.query(Store)
            .filter(Store.id == int(store_id), Store.franchise_id == int(franchise_id))
            .first()
        )
        if store is None:
            raise NotFoundError("unknown store for franchise")
        db.delete(store)
        db.commit()
        logger.info("[CATALOG] store deleted id=%s franchise_id=%s by=%s", store_id, franchise_id, actor.id)
