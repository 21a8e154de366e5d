from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from pizza_service.core.database import Base

ORDER_STATUS_PERSISTED = "persisted"
ORDER_STATUS_FULFILLMENT_REQUESTED = "fulfillment_requested"
ORDER_STATUS_FULFILLED = "fulfilled"
ORDER_STATUS_FULFILLMENT_FAILED = "fulfillment_failed"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)

    # NULL once the diner is deleted; the order itself is kept
    diner_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)
    # plain ids: order history outlives franchise/store deletion
    franchise_id = Column(Integer, index=True, nullable=False)
    store_id = Column(Integer, index=True, nullable=False)

    date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    status = Column(String, default=ORDER_STATUS_PERSISTED, nullable=False)
    total = Column(Float, default=0.0, nullable=False)
    fulfillment_report_url = Column(String, nullable=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
