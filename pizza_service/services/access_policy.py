"""Role and ownership based authorization decisions.

``decide`` is a pure function: it never touches the database, callers load
whatever the resource needs (owner id, franchise id, whether the target is
an admin) before asking. Rules, in precedence order:

1. Admin is allowed everything except the admin-immune actions
   (deleting another admin).
2. Ownership actions require ``caller.id == resource.owner_id``.
3. Franchise-scoped actions require a franchisee grant on the franchise.
4. Anything else (catalog and franchise management) is admin only.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from pizza_service.core.errors import ForbiddenError, UnauthorizedError
from pizza_service.services.identity import Identity

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    VIEW_USER = "view_user"
    UPDATE_USER = "update_user"
    LIST_USERS = "list_users"
    DELETE_USER = "delete_user"
    LIST_USER_FRANCHISES = "list_user_franchises"
    VIEW_FRANCHISE_DETAILS = "view_franchise_details"
    CREATE_FRANCHISE = "create_franchise"
    DELETE_FRANCHISE = "delete_franchise"
    CREATE_STORE = "create_store"
    DELETE_STORE = "delete_store"
    ADD_MENU_ITEM = "add_menu_item"
    VIEW_ORDERS = "view_orders"
    VIEW_METRICS = "view_metrics"


UNAUTHORIZED_MESSAGE = "unauthorized"
ADMIN_TARGET_MESSAGE = "cannot delete an admin user"

DENIAL_MESSAGES = {
    Action.VIEW_USER: UNAUTHORIZED_MESSAGE,
    Action.UPDATE_USER: UNAUTHORIZED_MESSAGE,
    Action.LIST_USERS: UNAUTHORIZED_MESSAGE,
    Action.DELETE_USER: "unable to delete a user",
    Action.LIST_USER_FRANCHISES: UNAUTHORIZED_MESSAGE,
    Action.VIEW_FRANCHISE_DETAILS: UNAUTHORIZED_MESSAGE,
    Action.CREATE_FRANCHISE: "unable to create a franchise",
    Action.DELETE_FRANCHISE: "unable to delete a franchise",
    Action.CREATE_STORE: "unable to create a store",
    Action.DELETE_STORE: "unable to delete a store",
    Action.ADD_MENU_ITEM: "unable to add menu item",
    Action.VIEW_ORDERS: UNAUTHORIZED_MESSAGE,
    Action.VIEW_METRICS: UNAUTHORIZED_MESSAGE,
}

OWNERSHIP_ACTIONS = frozenset(
    {
        Action.VIEW_USER,
        Action.UPDATE_USER,
        Action.LIST_USER_FRANCHISES,
        Action.VIEW_ORDERS,
    }
)
FRANCHISE_ACTIONS = frozenset(
    {
        Action.VIEW_FRANCHISE_DETAILS,
        Action.CREATE_STORE,
        Action.DELETE_STORE,
    }
)


@dataclass(frozen=True)
class Resource:
    owner_id: Optional[int] = None
    franchise_id: Optional[int] = None
    target_is_admin: bool = False


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None
    authenticated: bool = True

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def deny(cls, reason: str, *, authenticated: bool = True) -> "Decision":
        return cls(False, reason, authenticated)


def _admin_immune(action: Action, resource: Resource) -> bool:
    return action is Action.DELETE_USER and resource.target_is_admin


def decide(caller: Optional[Identity], action: Action, resource: Optional[Resource] = None) -> Decision:
    resource = resource or Resource()

    if caller is None:
        return Decision.deny(UNAUTHORIZED_MESSAGE, authenticated=False)

    if caller.is_admin:
        if _admin_immune(action, resource):
            return Decision.deny(ADMIN_TARGET_MESSAGE)
        return Decision.allow()

    if action in OWNERSHIP_ACTIONS:
        if resource.owner_id is not None and int(caller.id) == int(resource.owner_id):
            return Decision.allow()
        return Decision.deny(DENIAL_MESSAGES[action])

    if action in FRANCHISE_ACTIONS:
        if caller.is_franchisee_of(resource.franchise_id):
            return Decision.allow()
        return Decision.deny(DENIAL_MESSAGES[action])

    return Decision.deny(DENIAL_MESSAGES.get(action, UNAUTHORIZED_MESSAGE))


def ensure_allowed(caller: Optional[Identity], action: Action, resource: Optional[Resource] = None) -> None:
    """Raise the matching 401/403 error when ``decide`` denies."""
    decision = decide(caller, action, resource)
    if decision.allowed:
        return
    if not decision.authenticated:
        raise UnauthorizedError()
    logger.warning(
        "Access denied (%s): user_id=%s action=%s owner_id=%s franchise_id=%s",
        decision.reason,
        caller.id if caller else None,
        action.value,
        resource.owner_id if resource else None,
        resource.franchise_id if resource else None,
    )
    raise ForbiddenError(decision.reason or UNAUTHORIZED_MESSAGE)
