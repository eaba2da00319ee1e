from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, text

from vendafacil.core.database import Base
from vendafacil.services.clock import utcnow


class CashSession(Base):
    __tablename__ = "cash_sessions"
    __table_args__ = (
        Index(
            "uq_cash_sessions_store_open",
            "store_id",
            unique=True,
            sqlite_where=text("closed_at IS NULL"),
            postgresql_where=text("closed_at IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), index=True, nullable=False)
    opening_amount_cents = Column(Integer, nullable=False, default=0)
    opened_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    closing_amount_cents = Column(Integer, nullable=True)
