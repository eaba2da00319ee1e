from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from vendafacil.core.database import Base


class StoreAccess(Base):
    __tablename__ = "store_access"

    id = Column(Integer, primary_key=True)
    store_id = Column(Integer, ForeignKey("stores.id"), unique=True, nullable=False)
    plano_nome = Column(String, nullable=False)
    plano_tipo = Column(String, nullable=False)
    data_inicio_acesso = Column(DateTime(timezone=True), nullable=False)
    # Nulo para plano vitalício
    data_fim_acesso = Column(DateTime(timezone=True), nullable=True)
    status_acesso = Column(String, nullable=False, default="ativo")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
