"""Alembic environment for the room-charge claim store."""

from logging.config import fileConfig
from typing import Any

from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import Connection
from sqlalchemy.schema import CreateSchema

from alembic import context  # type: ignore[attr-defined]
from frontdesk.config import DATABASE_URL, SCHEMA
from frontdesk.models.base import Base
from frontdesk.models.room_charges import RoomChargeClaim  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)
if DATABASE_URL:
    config.set_main_option("sqlalchemy.url", DATABASE_URL)


def _only_frontdesk_schema(object_: Any, name: str, type_: str, reflected: bool, compare_to: Any) -> bool:
    # The backend may share the database; autogenerate must not touch its tables
    return getattr(object_, "schema", SCHEMA) == SCHEMA


def _context_options() -> dict[str, Any]:
    return {
        "target_metadata": Base.metadata,
        "include_schemas": True,
        "include_object": _only_frontdesk_schema,
        "version_table_schema": SCHEMA,
    }


def _migrate_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_context_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection: Connection) -> None:
    # alembic_version is stored inside SCHEMA
    connection.execute(CreateSchema(SCHEMA, if_not_exists=True))
    connection.commit()

    context.configure(connection=connection, **_context_options())
    with context.begin_transaction():
        context.run_migrations()


def _migrate_online() -> None:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        _migrate(connection)


if context.is_offline_mode():
    _migrate_offline()
else:
    _migrate_online()
