from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String

from sqlalchemy.orm import relationship

from vendafacil.core.database import Base
from vendafacil.services.clock import utcnow


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        Index("ix_order_items_queue", "store_id", "destino_preparo", "status", "created_at"),
    )

    id = Column(Integer, primary_key=True)
    store_id = Column(Integer, ForeignKey("stores.id"), index=True, nullable=False)
    comanda_id = Column(Integer, ForeignKey("comandas.id"), index=True, nullable=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), index=True, nullable=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    product_name_snapshot = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price_cents = Column(Integer, nullable=False, default=0)
    subtotal_cents = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default="pending")
    destino_preparo = Column(String, nullable=False, default="nenhum")

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    done_at = Column(DateTime(timezone=True), nullable=True)

    comanda = relationship("Comanda", back_populates="items")
