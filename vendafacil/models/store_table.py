from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func

from vendafacil.core.database import Base


class StoreTable(Base):
    """Mesa com link público (QR Code) para o cardápio digital."""

    __tablename__ = "store_tables"
    __table_args__ = (UniqueConstraint("store_id", "number", name="uq_store_tables_store_number"),)

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), index=True, nullable=False)
    number = Column(Integer, nullable=False)
    public_token = Column(String(64), nullable=False, unique=True, index=True)
    status = Column(String, nullable=False, default="ativo")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
