"""Order placement and the fulfillment handshake with the factory.

An order is committed as ``persisted`` before the factory is called, then
moves to ``fulfillment_requested`` and finally to ``fulfilled`` or
``fulfillment_failed``. A rejected order is never rolled back; it stays in
the table with its failure status and report url.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from pizza_service.core.errors import (
    ExternalFailureError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from pizza_service.core.metrics import InMemoryRequestMetrics, request_metrics
from pizza_service.integrations.factory import FactoryClient
from pizza_service.models.franchise import Store
from pizza_service.models.menu_item import MenuItem
from pizza_service.models.order import (
    ORDER_STATUS_FULFILLED,
    ORDER_STATUS_FULFILLMENT_FAILED,
    ORDER_STATUS_FULFILLMENT_REQUESTED,
    ORDER_STATUS_PERSISTED,
    Order,
)
from pizza_service.models.order_item import OrderItem
from pizza_service.services.access_policy import Action, Resource, ensure_allowed
from pizza_service.services.identity import Identity
from pizza_service.services.listing import Page, paginate
from pizza_service.services.serializers import order_to_dict

logger = logging.getLogger(__name__)

FULFILLMENT_FAILED_MESSAGE = "Failed to fulfill order at factory"
PRICE_MISMATCH_MESSAGE = "order item price does not match menu"
PRICE_TOLERANCE = 1e-9


@dataclass
class FulfillmentResult:
    order: Dict[str, Any]
    report_url: Optional[str]
    jwt: Optional[str]

    def to_body(self) -> Dict[str, Any]:
        return {
            "order": self.order,
            "reportUrl": self.report_url,
            "followLinkToEndChaos": self.report_url,
            "jwt": self.jwt,
        }


def _parse_items(items: Optional[Iterable[Mapping[str, Any]]]) -> List[Mapping[str, Any]]:
    parsed = list(items or [])
    if not parsed:
        raise ValidationError("order must contain at least one item")
    for item in parsed:
        if item.get("menuId") is None:
            raise ValidationError("every order item needs a menuId")
    return parsed


class OrderService:
    def __init__(
        self,
        factory: FactoryClient,
        *,
        strict_pricing: bool = False,
        metrics: InMemoryRequestMetrics = request_metrics,
    ) -> None:
        self.factory = factory
        self.strict_pricing = strict_pricing
        self.metrics = metrics

    def _price_items(self, db: Session, items: List[Mapping[str, Any]], diner_id: int) -> List[OrderItem]:
        menu_ids = {int(item["menuId"]) for item in items}
        menu = {m.id: m for m in db.query(MenuItem).filter(MenuItem.id.in_(menu_ids))}

        priced: List[OrderItem] = []
        for item in items:
            menu_id = int(item["menuId"])
            entry = menu.get(menu_id)
            if entry is None:
                raise NotFoundError(f"unknown menu item {menu_id}")

            claimed = item.get("price")
            if claimed is not None and abs(float(claimed) - float(entry.price)) > PRICE_TOLERANCE:
                logger.warning(
                    "[ORDERS] client price differs from menu diner_id=%s menu_id=%s claimed=%s menu=%s",
                    diner_id,
                    menu_id,
                    claimed,
                    entry.price,
                )
                if self.strict_pricing:
                    raise ValidationError(PRICE_MISMATCH_MESSAGE)

            priced.append(OrderItem(menu_id=entry.id, description=entry.title, price=float(entry.price)))
        return priced

    def create_order(
        self,
        db: Session,
        diner: Optional[Identity],
        *,
        franchise_id: Optional[int],
        store_id: Optional[int],
        items: Optional[Iterable[Mapping[str, Any]]],
    ) -> FulfillmentResult:
        if diner is None:
            raise UnauthorizedError()
        if franchise_id is None or store_id is None:
            raise ValidationError("franchiseId and storeId are required")

        store = (
            db.query(Store)
            .filter(Store.id == int(store_id), Store.franchise_id == int(franchise_id))
            .first()
        )
        if store is None:
            raise NotFoundError("unknown store for franchise")

        order_items = self._price_items(db, _parse_items(items), diner.id)
        total = sum(item.price for item in order_items)

        order = Order(
            diner_id=diner.id,
            franchise_id=store.franchise_id,
            store_id=store.id,
            status=ORDER_STATUS_PERSISTED,
            total=total,
            items=order_items,
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        logger.info("[ORDERS] order persisted order_id=%s diner_id=%s total=%s", order.id, diner.id, total)

        order.status = ORDER_STATUS_FULFILLMENT_REQUESTED
        db.commit()

        payload = order_to_dict(order)
        response = self.factory.submit(
            payload,
            {"id": diner.id, "name": diner.name, "email": diner.email},
        )

        order.fulfillment_report_url = response.report_url
        if not response.accepted:
            order.status = ORDER_STATUS_FULFILLMENT_FAILED
            db.commit()
            self.metrics.increment("orders.fulfillment_failed")
            logger.warning("[ORDERS] fulfillment failed order_id=%s report_url=%s", order.id, response.report_url)
            raise ExternalFailureError(
                FULFILLMENT_FAILED_MESSAGE,
                extra={"reportUrl": response.report_url, "followLinkToEndChaos": response.report_url},
            )

        order.status = ORDER_STATUS_FULFILLED
        (
            db.query(Store)
            .filter(Store.id == store.id)
            .update({Store.total_revenue: Store.total_revenue + total}, synchronize_session=False)
        )
        db.commit()
        db.refresh(order)
        self.metrics.increment("orders.fulfilled")
        logger.info("[ORDERS] order fulfilled order_id=%s store_id=%s", order.id, store.id)

        return FulfillmentResult(order=order_to_dict(order), report_url=response.report_url, jwt=response.jwt)

    def list_orders(
        self,
        db: Session,
        actor: Optional[Identity],
        *,
        diner_id: Optional[int] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Page:
        if actor is None:
            raise UnauthorizedError()
        diner_id = actor.id if diner_id is None else int(diner_id)
        ensure_allowed(actor, Action.VIEW_ORDERS, Resource(owner_id=diner_id))

        query = (
            db.query(Order)
            .filter(Order.diner_id == diner_id)
            .order_by(Order.date.desc(), Order.id.desc())
        )
        return paginate(query, page, limit)
