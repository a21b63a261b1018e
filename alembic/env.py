"""
Migration runner for the assessment schema.

The schema is defined once in academy.tables; autogenerate diffs against that
metadata, including column types and server defaults (enum columns and
timestamp defaults both matter to the service). Migrations connect through
psycopg2 with the same DATABASE_URL the API uses.
"""

import os
import sys
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import create_engine, pool

# alembic is run from the repo root but imports the academy package
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

load_dotenv(".env")
load_dotenv(".env.local", override=True)

from academy.database import get_sync_database_url  # noqa: E402
from academy.tables import metadata  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

_COMPARE_OPTIONS = {
    "target_metadata": metadata,
    "compare_type": True,
    "compare_server_default": True,
}


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout (alembic upgrade --sql)."""
    context.configure(
        url=get_sync_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_COMPARE_OPTIONS,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations against the live database."""
    engine = create_engine(get_sync_database_url(), poolclass=pool.NullPool)

    with engine.connect() as connection:
        context.configure(connection=connection, **_COMPARE_OPTIONS)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
