from __future__ import annotations

from typing import Any, Dict, Iterable, List

from pizza_service.models.franchise import Franchise, Store
from pizza_service.models.menu_item import MenuItem
from pizza_service.models.order import Order
from pizza_service.models.order_item import OrderItem
from pizza_service.models.user import RoleGrant, User


def role_to_dict(grant: RoleGrant) -> Dict[str, Any]:
    data: Dict[str, Any] = {"role": grant.role}
    if grant.scope_id:
        data["objectId"] = int(grant.scope_id)
    return data


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "roles": [role_to_dict(grant) for grant in user.roles],
    }


def user_summary(user: User) -> Dict[str, Any]:
    return {"id": user.id, "name": user.name, "email": user.email}


def menu_item_to_dict(item: MenuItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "title": item.title,
        "description": item.description,
        "image": item.image,
        "price": item.price,
    }


def store_to_dict(store: Store, *, with_revenue: bool = True) -> Dict[str, Any]:
    data: Dict[str, Any] = {"id": store.id, "name": store.name}
    if with_revenue:
        data["totalRevenue"] = float(store.total_revenue or 0)
    return data


def franchise_to_dict(
    franchise: Franchise,
    admins: Iterable[User] = (),
    *,
    with_details: bool = True,
) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": franchise.id,
        "name": franchise.name,
    }
    if with_details:
        data["admins"] = [user_summary(admin) for admin in admins]
    data["stores"] = [store_to_dict(store, with_revenue=with_details) for store in franchise.stores]
    return data


def order_item_to_dict(item: OrderItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "menuId": item.menu_id,
        "description": item.description,
        "price": item.price,
    }


def order_to_dict(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "dinerId": order.diner_id,
        "franchiseId": order.franchise_id,
        "storeId": order.store_id,
        "date": order.date.isoformat() if order.date else None,
        "status": order.status,
        "total": order.total,
        "items": [order_item_to_dict(item) for item in order.items],
    }


def orders_to_list(orders: Iterable[Order]) -> List[Dict[str, Any]]:
    return [order_to_dict(order) for order in orders]
