import logging
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config as AlembicConfig
from sqlalchemy import inspect

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.startup import bootstrap
import app.database.db as db_module
from app.database.models import Base

logger = logging.getLogger(__name__)
BILLING_TABLES = {"suppliers", "billing_ledger", "invoices", "disputes"}


def _build_alembic_config(database_url: str) -> AlembicConfig:
    cfg = AlembicConfig(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    cfg.attributes["skip_logging_config"] = True
    return cfg


def missing_tables() -> set[str]:
    inspector = inspect(db_module.get_engine())
    return BILLING_TABLES - set(inspector.get_table_names())


def init_db() -> None:
    """Upgrade the schema to head; SQLite databases fall back to create_all."""
    bootstrap()
    active_url = db_module.get_active_database_url()
    try:
        command.upgrade(_build_alembic_config(active_url), "head")
    except Exception as exc:
        if not active_url.startswith("sqlite"):
            raise
        logger.warning(
            "database.migration.fallback_create_all",
            extra={
                "event": "database.migration.fallback_create_all",
                "database_url": active_url,
                "reason": str(exc),
            },
        )

    Base.metadata.create_all(bind=db_module.get_engine())
    absent = missing_tables()
    if absent:
        raise RuntimeError(f"Schema initialisation incomplete; missing tables: {sorted(absent)}")
    logger.info(
        "database.tables.ready",
        extra={
            "event": "database.tables.ready",
            "database_url": active_url,
        },
    )


if __name__ == "__main__":
    init_db()
