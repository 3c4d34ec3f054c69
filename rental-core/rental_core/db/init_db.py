"""Database initialization utilities."""

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from rental_core.db import models  # noqa: F401 - ensure model metadata is registered
from rental_core.db.session import Base, engine as default_engine

logger = logging.getLogger(__name__)

# Unique indexes the uniqueness pre-checks rely on as their backstop.
UNIQUE_BACKSTOPS = (
    ("states", "uq_states_name", ["name"]),
    ("cities", "uq_cities_state_name", ["state_id", "name"]),
    ("cars", "uq_cars_registration_number", ["registration_number"]),
    ("users", "uq_users_email", ["email"]),
)


def _table_exists(connection: Connection, table_name: str) -> bool:
    return table_name in inspect(connection).get_table_names()


def _has_unique_cover(connection: Connection, table_name: str, columns: list[str]) -> bool:
    inspector = inspect(connection)
    wanted = set(columns)
    for constraint in inspector.get_unique_constraints(table_name):
        if set(constraint["column_names"]) == wanted:
            return True
    for index in inspector.get_indexes(table_name):
        if index.get("unique") and set(index["column_names"]) == wanted:
            return True
    return False


def _has_duplicate_rows(connection: Connection, table_name: str, columns: list[str]) -> bool:
    columns_sql = ", ".join(columns)
    duplicate_query = (
        f"SELECT 1 FROM {table_name} "
        f"GROUP BY {columns_sql} "
        "HAVING COUNT(*) > 1 "
        "LIMIT 1"
    )
    return connection.execute(text(duplicate_query)).first() is not None


def _ensure_unique_index_if_clean(
    connection: Connection,
    table_name: str,
    index_name: str,
    columns: list[str],
) -> None:
    if not _table_exists(connection, table_name):
        return
    if _has_unique_cover(connection, table_name, columns):
        return
    if _has_duplicate_rows(connection, table_name, columns):
        logger.warning(
            "Skipping unique index %s on %s due to duplicate existing data.",
            index_name,
            table_name,
        )
        return

    columns_sql = ", ".join(columns)
    connection.execute(
        text(f"CREATE UNIQUE INDEX IF NOT EXISTS {index_name} ON {table_name} ({columns_sql})")
    )


def _create_schema(connection: Connection) -> None:
    Base.metadata.create_all(bind=connection)
    for table_name, index_name, columns in UNIQUE_BACKSTOPS:
        _ensure_unique_index_if_clean(connection, table_name, index_name, columns)


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Create tables and make sure every uniqueness backstop exists."""
    engine = engine or default_engine
    try:
        async with engine.begin() as connection:
            await connection.run_sync(_create_schema)
    except SQLAlchemyError:
        logger.exception("Database initialization failed.")
        raise


async def close_db(engine: AsyncEngine | None = None) -> None:
    await (engine or default_engine).dispose()
    logger.info("Database connection closed")
