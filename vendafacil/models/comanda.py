from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, func, text
from sqlalchemy.orm import relationship

from vendafacil.core.database import Base


class Comanda(Base):
    __tablename__ = "comandas"
    __table_args__ = (
        # No máximo uma comanda aberta por mesa
        Index(
            "uq_comandas_store_numero_aberta",
            "store_id",
            "numero",
            unique=True,
            sqlite_where=text("status = 'aberta'"),
            postgresql_where=text("status = 'aberta'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), index=True, nullable=False)
    numero = Column(Integer, nullable=False)
    mesa = Column(String, nullable=True)
    cliente_nome = Column(String, nullable=True)
    status = Column(String, nullable=False, default="aberta")
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=True)
    opened_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship(
        "OrderItem",
        back_populates="comanda",
        order_by="OrderItem.id",
    )
