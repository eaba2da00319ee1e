from __future__ import annotations

import logging
import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from vendafacil.core.config import DATABASE_URL

logger = logging.getLogger(__name__)
MIGRATIONS_PREFIX = "[MIGRATIONS]"


def _current_env() -> str:
    return os.getenv("ENVIRONMENT", os.getenv("ENV", "dev")).strip().lower()


def validate_database_environment() -> None:
    if _current_env() in {"prod", "production"} and DATABASE_URL.startswith("sqlite"):
        logger.critical("%s SQLite is forbidden in production", MIGRATIONS_PREFIX)
        raise RuntimeError("SQLite is forbidden in production environment")


def apply_migrations(*, alembic_config_path: Path) -> None:
    """Aplica as migrations pendentes antes da verificação de heads.

    Ligado por padrão em produção; ``AUTO_APPLY_MIGRATIONS`` força o
    comportamento nos dois sentidos.
    """
    env = _current_env()
    auto_apply_raw = os.getenv("AUTO_APPLY_MIGRATIONS", "").strip().lower()

    if auto_apply_raw in {"0", "false", "no", "off"}:
        logger.info("%s auto migration disabled by AUTO_APPLY_MIGRATIONS", MIGRATIONS_PREFIX)
        return

    should_auto_apply = auto_apply_raw in {"1", "true", "yes", "on"}
    if auto_apply_raw == "":
        should_auto_apply = env in {"prod", "production"}

    if not should_auto_apply or DATABASE_URL.startswith("sqlite"):
        logger.info("%s auto migration skipped env=%s", MIGRATIONS_PREFIX, env)
        return

    if not alembic_config_path.exists():
        logger.critical("%s alembic config not found path=%s", MIGRATIONS_PREFIX, alembic_config_path)
        raise RuntimeError("alembic config not found")

    logger.info("%s applying migrations to head", MIGRATIONS_PREFIX)
    try:
        command.upgrade(Config(str(alembic_config_path)), "head")
    except Exception as exc:
        logger.critical("%s migration apply failed error=%s", MIGRATIONS_PREFIX, exc)
        raise RuntimeError("Automatic migration failed") from exc

    logger.info("%s migrations applied", MIGRATIONS_PREFIX)


def ensure_migrations_applied(*, engine: Engine, alembic_config_path: Path) -> None:
    env = _current_env()
    if env == "test" or DATABASE_URL.startswith("sqlite"):
        logger.info("%s skipped migration check env=%s", MIGRATIONS_PREFIX, env)
        return

    if not alembic_config_path.exists():
        logger.critical("%s alembic config not found path=%s", MIGRATIONS_PREFIX, alembic_config_path)
        raise RuntimeError("alembic config not found")

    alembic_cfg = Config(str(alembic_config_path))
    script_directory = ScriptDirectory.from_config(alembic_cfg)
    expected_heads = set(script_directory.get_heads())

    with engine.connect() as connection:
        inspector = inspect(connection)
        if "alembic_version" not in inspector.get_table_names():
            logger.critical("%s alembic_version table missing", MIGRATIONS_PREFIX)
            raise RuntimeError("Database has no migration state")

        current_rows = connection.exec_driver_sql("SELECT version_num FROM alembic_version").fetchall()

    current_heads = {row[0] for row in current_rows if row and row[0]}
    if current_heads != expected_heads:
        logger.critical(
            "%s pending migration detected current=%s expected=%s",
            MIGRATIONS_PREFIX,
            sorted(current_heads),
            sorted(expected_heads),
        )
        raise RuntimeError("Pending migrations detected")

    logger.info("%s migration state verified", MIGRATIONS_PREFIX)
