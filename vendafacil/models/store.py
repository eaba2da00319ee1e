from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, func

from vendafacil.core.database import Base


class Store(Base):
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, index=True)
    owner_user_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=False)
    legal_name = Column(String, nullable=True)
    cnpj = Column(String, nullable=True)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    settings = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default="active")
    trial_used = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
