"""Alembic environment for the Changewatch schema.

The target URL comes from ``-x db_url=...`` when given, otherwise from
``DATABASE_URL_SYNC`` in the application settings. Batch mode is only
enabled for SQLite, which cannot ALTER columns in place.
"""

from logging.config import fileConfig
from typing import Any

from dotenv import load_dotenv
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Connection, make_url
from sqlmodel import SQLModel

from alembic import context

# .env must be loaded before the settings module is imported
load_dotenv()

from changewatch.config import settings  # noqa: E402
from changewatch.models import base_data, execution, integration, user, workflow  # noqa: E402,F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata


def get_url() -> str:
    """Resolve the migration target URL."""
    return context.get_x_argument(as_dictionary=True).get(
        "db_url", settings.database_url_sync
    )


def configure_options(url: str) -> dict[str, Any]:
    """Options shared by offline and online runs."""
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": make_url(url).get_backend_name() == "sqlite",
    }


def run_migrations_offline() -> None:
    """Emit migration SQL to the script output without connecting."""
    url = get_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **configure_options(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection, url: str) -> None:
    context.configure(connection=connection, **configure_options(url))

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live database."""
    url = get_url()
    connectable = create_engine(url, poolclass=pool.NullPool)

    try:
        with connectable.connect() as connection:
            do_run_migrations(connection, url)
    finally:
        connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
