from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from pizza_service.core.database import Base


class Franchise(Base):
    __tablename__ = "franchises"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    stores = relationship(
        "Store",
        back_populates="franchise",
        cascade="all, delete-orphan",
        order_by="Store.id",
    )


class Store(Base):
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True)
    franchise_id = Column(Integer, ForeignKey("franchises.id", ondelete="CASCADE"), index=True, nullable=False)
    name = Column(String, nullable=False)
    total_revenue = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    franchise = relationship("Franchise", back_populates="stores")
