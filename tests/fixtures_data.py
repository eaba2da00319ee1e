"""Dados e builders reutilizáveis para os cenários de teste."""

from contextlib import contextmanager
from types import SimpleNamespace

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import vendafacil.models  # noqa: F401
from vendafacil.core.database import Base, get_db, get_session_factory
from vendafacil.core.errors import register_error_handlers
from vendafacil.deps import get_current_member
from vendafacil.models.product import Product
from vendafacil.models.store import Store
from vendafacil.routers.access import router as access_router
from vendafacil.routers.auth import router as auth_router
from vendafacil.routers.cash import router as cash_router
from vendafacil.routers.comandas import router as comandas_router
from vendafacil.routers.customers import router as customers_router
from vendafacil.routers.production import router as production_router
from vendafacil.routers.public_tables import router as public_tables_router
from vendafacil.routers.products import router as products_router
from vendafacil.routers.realtime import router as realtime_router
from vendafacil.routers.sales import router as sales_router
from vendafacil.routers.tables import router as tables_router
from vendafacil.services.access import grant_plan
from vendafacil.services.event_bus import event_bus
from vendafacil.services.realtime import realtime_hub

STORE_ID = 1
OTHER_STORE_ID = 2

BURGER_ID = 1
COKE_ID = 2
CAIPIRINHA_ID = 3
PAO_DE_QUEIJO_ID = 4
SUCO_ID = 5

PRODUCTS = [
    {
        "id": BURGER_ID,
        "name": "Burger",
        "category": "Lanches",
        "price_cents": 1500,
        "stock_qty": 20,
        "production_target": "cozinha",
        "prep_time_minutes": 10,
    },
    {
        "id": COKE_ID,
        "name": "Coke",
        "category": "Bebidas",
        "price_cents": 500,
        "stock_qty": 30,
        "production_target": "nenhum",
    },
    {
        "id": CAIPIRINHA_ID,
        "name": "Caipirinha",
        "category": "Drinks",
        "price_cents": 1800,
        "stock_qty": 5,
        "production_target": "bar",
        "prep_time_minutes": 5,
    },
    {
        "id": PAO_DE_QUEIJO_ID,
        "name": "Pão de Queijo",
        "category": "Salgados",
        "price_cents": 700,
        "stock_qty": 3,
        "min_stock_qty": 2,
        "production_target": "nenhum",
    },
    {
        "id": SUCO_ID,
        "name": "Suco de Laranja",
        "category": "Bebidas",
        "price_cents": 900,
        "stock_qty": 10,
        "production_target": "cozinha",
    },
]

HAPPY_PATH_MEMBER = {
    "id": 7,
    "store_id": STORE_ID,
    "email": "caixa@bardoze.com.br",
    "name": "Caixa",
    "role": "owner",
    "active": True,
}


def build_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    return TestingSessionLocal()


def seed_store(
    db,
    store_id=STORE_ID,
    *,
    name="Bar do Zé",
    settings=None,
    plan="monthly",
    products=PRODUCTS,
):
    db.add(
        Store(
            id=store_id,
            name=name,
            legal_name="Zé Comércio de Alimentos LTDA",
            cnpj="12.345.678/0001-90",
            address="Rua das Flores, 10",
            city="Belo Horizonte",
            state="MG",
            phone="31 3333-0000",
            settings=settings,
        )
    )
    for product in products:
        db.add(Product(store_id=store_id, **product))
    db.commit()
    if plan:
        grant_plan(db, store_id, plan)
    return db.get(Store, store_id)


def build_db(**store_kwargs):
    db = build_session()
    seed_store(db, **store_kwargs)
    return db


def borrowed_session(db):
    @contextmanager
    def _scope():
        yield db

    return _scope


def build_client(db, member=None, *, authenticate=True):
    app = FastAPI()
    register_error_handlers(app)
    for router in (
        auth_router,
        comandas_router,
        sales_router,
        production_router,
        cash_router,
        products_router,
        customers_router,
        access_router,
        realtime_router,
        tables_router,
        public_tables_router,
    ):
        app.include_router(router)

    realtime_hub.install(event_bus)
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_session_factory] = lambda: borrowed_session(db)
    if authenticate:
        current = member or SimpleNamespace(**HAPPY_PATH_MEMBER)
        app.dependency_overrides[get_current_member] = lambda: current
    return TestClient(app)
