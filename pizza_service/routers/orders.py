from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from pizza_service.core.database import get_db
from pizza_service.deps import (
    get_catalog_service,
    get_optional_identity,
    get_order_service,
    require_identity,
)
from pizza_service.services.catalog import CatalogService
from pizza_service.services.identity import Identity
from pizza_service.services.orders import OrderService
from pizza_service.services.serializers import menu_item_to_dict, orders_to_list

router = APIRouter(prefix="/api/order", tags=["orders"])


class MenuItemCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    price: Optional[float] = None


class OrderItemIn(BaseModel):
    menuId: Optional[int] = None
    description: Optional[str] = None
    price: Optional[float] = None


class OrderCreate(BaseModel):
    franchiseId: Optional[int] = None
    storeId: Optional[int] = None
    items: List[OrderItemIn] = Field(default_factory=list)


@router.get("/menu")
def get_menu(
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return [menu_item_to_dict(item) for item in catalog.get_menu(db)]


@router.put("/menu")
def add_menu_item(
    payload: MenuItemCreate,
    identity: Optional[Identity] = Depends(get_optional_identity),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
):
    menu = catalog.add_menu_item(
        db,
        identity,
        title=payload.title,
        description=payload.description,
        image=payload.image,
        price=payload.price,
    )
    return [menu_item_to_dict(item) for item in menu]


@router.get("")
def list_orders(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    orders: OrderService = Depends(get_order_service),
):
    result = orders.list_orders(db, identity, page=page, limit=limit)
    return {
        "dinerId": identity.id,
        "orders": orders_to_list(result.rows),
        "page": result.page,
        "more": result.more,
    }


@router.post("")
def create_order(
    payload: OrderCreate,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    orders: OrderService = Depends(get_order_service),
):
    result = orders.create_order(
        db,
        identity,
        franchise_id=payload.franchiseId,
        store_id=payload.storeId,
        items=[item.model_dump() for item in payload.items],
    )
    return result.to_body()
