"""
Database Snapshot Loader

Reads the star-schema tables into a SalesSnapshot, and seeds empty tables
from a snapshot for development databases.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

import polars as pl
import structlog
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from bike_analytics.analytics.schema import CUSTOMERS, PRODUCTS, SALES, TableSchema
from bike_analytics.analytics.snapshot import SalesSnapshot
from bike_analytics.config import get_settings
from bike_analytics.database.models import Base, DimCustomer, DimProduct, FactSale

logger = structlog.get_logger(__name__)

TABLE_MODELS = (
    (CUSTOMERS, DimCustomer),
    (PRODUCTS, DimProduct),
    (SALES, FactSale),
)


async def _read_table(session: AsyncSession, schema: TableSchema, model: Type[Base]) -> pl.DataFrame:
    """Read every row of one table into a frame typed by its schema"""
    columns = [model.__table__.c[name] for name in schema.column_names]
    result = await session.execute(select(*columns))
    rows = [dict(row) for row in result.mappings().all()]

    logger.debug("Read table", table=schema.name, rows=len(rows))
    return pl.DataFrame(rows, schema=schema.columns) if rows else schema.empty_frame()


async def load_snapshot(session: AsyncSession) -> SalesSnapshot:
    """
    Read the three tables into a snapshot.

    All reads go through the session's single transaction; open it with
    snapshot_session() for a consistent cut while writers are active.

    Args:
        session: Open async session

    Returns:
        SalesSnapshot of the current table contents
    """
    frames = {}
    for schema, model in TABLE_MODELS:
        frames[schema.name] = await _read_table(session, schema, model)

    return SalesSnapshot.from_frames(
        frames[CUSTOMERS.name],
        frames[PRODUCTS.name],
        frames[SALES.name],
    )


async def execute_batch_insert(
    session: AsyncSession,
    model: Type[Base],
    records: List[Dict[str, Any]],
    chunk_size: int = 1000,
) -> int:
    """Insert records in chunks using Core insert"""
    if not records:
        return 0

    for i in range(0, len(records), chunk_size):
        chunk = records[i:i + chunk_size]
        await session.execute(insert(model), chunk)

    logger.info(f"Inserted {len(records)} records into {model.__tablename__}")
    return len(records)


async def seed_snapshot(
    session: AsyncSession,
    snapshot: SalesSnapshot,
    chunk_size: int = 1000,
) -> Dict[str, int]:
    """
    Insert a snapshot into empty tables, dimensions first.

    Args:
        session: Open async session; the caller commits
        snapshot: Snapshot to insert
        chunk_size: Rows per insert statement

    Returns:
        Inserted row count per table
    """
    frames = {
        CUSTOMERS.name: snapshot.customers,
        PRODUCTS.name: snapshot.products,
        SALES.name: snapshot.sales,
    }

    inserted = {}
    for schema, model in TABLE_MODELS:
        records = frames[schema.name].to_dicts()
        inserted[schema.name] = await execute_batch_insert(session, model, records, chunk_size)

    return inserted


async def main(directory: Optional[str] = None) -> None:
    """Seed the configured database from the snapshot files"""
    from bike_analytics.config.logging import configure_logging
    from bike_analytics.database.connection import close_database, create_tables, get_db, init_database
    from bike_analytics.ingestion.batch_loader import BatchLoader

    configure_logging()
    settings = get_settings()

    snapshot = BatchLoader().load_snapshot(Path(directory or settings.data.raw_path))

    await init_database()
    try:
        await create_tables()
        async with get_db() as db:
            counts = await seed_snapshot(db, snapshot)
        logger.info("Database seeded", **counts)
    finally:
        await close_database()


if __name__ == "__main__":
    asyncio.run(main())
