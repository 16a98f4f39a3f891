# Alembic environment for the checkout schema.
# Migrations run against the same engine the app builds from DATABASE_URL, so
# SQLite gets the foreign_keys pragma here too.
from logging.config import fileConfig
from typing import Any, Dict

from alembic import context

from harbor import models  # noqa: F401  registers every table on Base.metadata
from harbor.db import DATABASE_URL, Base, engine

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _context_options() -> Dict[str, Any]:
    return {
        "target_metadata": Base.metadata,
        "compare_type": True,
        "compare_server_default": True,
        # SQLite cannot ALTER most constraints in place
        "render_as_batch": DATABASE_URL.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit SQL for DATABASE_URL without connecting."""
    context.configure(
        url=DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_context_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    with engine.connect() as connection:
        context.configure(connection=connection, **_context_options())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
