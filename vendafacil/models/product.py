from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func

from vendafacil.core.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), index=True, nullable=False)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    barcode = Column(String, nullable=True, index=True)
    price_cents = Column(Integer, nullable=False, default=0)
    cost_cents = Column(Integer, nullable=False, default=0)
    stock_qty = Column(Integer, nullable=False, default=0)
    min_stock_qty = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    production_target = Column(String, nullable=False, default="nenhum")
    prep_time_minutes = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
