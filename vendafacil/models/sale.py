from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from sqlalchemy.orm import relationship

from vendafacil.core.database import Base
from vendafacil.services.clock import utcnow


class Sale(Base):
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), index=True, nullable=False)
    comanda_id = Column(Integer, nullable=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    cash_session_id = Column(Integer, ForeignKey("cash_sessions.id"), nullable=True, index=True)
    total_cents = Column(Integer, nullable=False, default=0)
    payment_method = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True, nullable=False)

    items = relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )


class SaleItem(Base):
    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), index=True, nullable=False)
    store_id = Column(Integer, ForeignKey("stores.id"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    product_name_snapshot = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price_cents = Column(Integer, nullable=False)
    subtotal_cents = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="pending")
    destino_preparo = Column(String, nullable=False, default="nenhum")
    production_item_id = Column(Integer, ForeignKey("order_items.id"), nullable=True, index=True)

    sale = relationship("Sale", back_populates="items")
