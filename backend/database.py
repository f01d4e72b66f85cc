"""SQLModel database engine and session management."""

import logging

from sqlalchemy import inspect
from sqlmodel import SQLModel, create_engine, Session

from backend.config import settings

logger = logging.getLogger(__name__)

# SQLite needs check_same_thread=False; PostgreSQL does not
connect_args = {}
if settings.database_url.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.database_url,
    echo=False,
    connect_args=connect_args,
)

# Columns added after the first release of the user table
_USER_2FA_COLUMNS = {
    "two_factor_enabled": "BOOLEAN NOT NULL DEFAULT FALSE",
    "two_factor_secret": "VARCHAR",
    "backup_codes": "JSON",
    "backup_codes_version": "INTEGER NOT NULL DEFAULT 0",
}


def _run_migrations(bind=None):
    """Run lightweight schema migrations for added columns."""
    from sqlalchemy import text

    bind = bind or engine
    inspector = inspect(bind)

    if "user" not in inspector.get_table_names():
        return

    columns = {col["name"] for col in inspector.get_columns("user")}
    missing = [name for name in _USER_2FA_COLUMNS if name not in columns]
    if not missing:
        return

    with bind.connect() as conn:
        for name in missing:
            logger.info(f"Migrating: adding user.{name}")
            conn.execute(text(f'ALTER TABLE "user" ADD COLUMN {name} {_USER_2FA_COLUMNS[name]}'))
        conn.commit()


def create_db_and_tables():
    """Create all tables. Called on startup."""
    import backend.models  # noqa: F401  (register tables on the metadata)

    SQLModel.metadata.create_all(engine)
    _run_migrations()


def get_session() -> Session:
    """Dependency that yields a database session."""
    with Session(engine) as session:
        yield session
