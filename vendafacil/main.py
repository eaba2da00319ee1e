import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vendafacil.core.config import (
    CORS_ORIGINS,
    DATABASE_URL,
    DEV_OWNER_EMAIL,
    DEV_OWNER_PASSWORD,
    DEV_STORE_NAME,
    IS_DEV,
)
from vendafacil.core.database import Base, SessionLocal, engine
from vendafacil.core.errors import register_error_handlers
from vendafacil.core.logging_setup import configure_logging
from vendafacil.core.startup_checks import (
    apply_migrations,
    ensure_migrations_applied,
    validate_database_environment,
)
from vendafacil.middleware.observability import ObservabilityMiddleware
from vendafacil.middleware.store_context import StoreContextMiddleware
import vendafacil.models  # garante que os models são importados antes do create_all

from vendafacil.services.access import get_store_access_status, start_trial
from vendafacil.services.event_bus import event_bus
from vendafacil.services.realtime import realtime_hub
from vendafacil.services.store_bootstrap import (
    ensure_store_tables,
    get_or_create_store,
    upsert_store_member,
)
from vendafacil.routers.access import router as access_router
from vendafacil.routers.auth import router as auth_router
from vendafacil.routers.cash import router as cash_router
from vendafacil.routers.comandas import router as comandas_router
from vendafacil.routers.customers import router as customers_router
from vendafacil.routers.internal_metrics import router as internal_metrics_router
from vendafacil.routers.production import router as production_router
from vendafacil.routers.public_tables import router as public_tables_router
from vendafacil.routers.products import router as products_router
from vendafacil.routers.realtime import router as realtime_router
from vendafacil.routers.sales import router as sales_router
from vendafacil.routers.tables import router as tables_router

configure_logging()

logger = logging.getLogger(__name__)
BOOTSTRAP_PREFIX = "[STORE_BOOTSTRAP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)

realtime_hub.install(event_bus)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="VendaFácil API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)
app.add_middleware(StoreContextMiddleware)
register_error_handlers(app)


def _bootstrap_dev_store() -> None:
    if not IS_DEV:
        return
    if not DEV_OWNER_PASSWORD:
        logger.warning("%s skipped: configure DEV_OWNER_PASSWORD.", BOOTSTRAP_PREFIX)
        return

    logger.info("%s start store=%s email=%s", BOOTSTRAP_PREFIX, DEV_STORE_NAME, DEV_OWNER_EMAIL)
    db = SessionLocal()
    try:
        store, created = get_or_create_store(db, name=DEV_STORE_NAME, owner_user_id=DEV_OWNER_EMAIL)
        member, member_created = upsert_store_member(
            db,
            store_id=store.id,
            email=DEV_OWNER_EMAIL,
            name="Proprietário",
            role="owner",
            password=DEV_OWNER_PASSWORD,
        )
        if not store.trial_used and not get_store_access_status(db, store.id)["acesso_liberado"]:
            start_trial(db, store.id)
        logger.info(
            "%s ready store_id=%s store_created=%s member_id=%s member_created=%s",
            BOOTSTRAP_PREFIX,
            store.id,
            created,
            member.id,
            member_created,
        )
    except Exception:
        logger.exception("%s ERROR bootstrap failed", BOOTSTRAP_PREFIX)
        raise
    finally:
        db.close()


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        apply_migrations(alembic_config_path=ALEMBIC_CONFIG_PATH)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        ensure_store_tables(engine)
        _bootstrap_dev_store()
    except Exception:
        logger.exception("%s ERROR startup failed", BOOTSTRAP_PREFIX)
        raise


# Routers
app.include_router(auth_router)
app.include_router(comandas_router)
app.include_router(sales_router)
app.include_router(production_router)
app.include_router(cash_router)
app.include_router(products_router)
app.include_router(customers_router)
app.include_router(access_router)
app.include_router(tables_router)
app.include_router(public_tables_router)
app.include_router(realtime_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
