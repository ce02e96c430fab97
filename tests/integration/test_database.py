"""
Integration Tests - Database Snapshot Round Trip
"""
from datetime import date

import pytest

from bike_analytics.analytics import JoinPolicy, MetricsEngine, SalesSnapshot
from bike_analytics.database import (
    close_database,
    create_tables,
    get_db,
    get_engine,
    init_database,
    snapshot_session,
)
from bike_analytics.ingestion import load_snapshot, seed_snapshot


@pytest.mark.asyncio
async def test_empty_database_loads_empty_snapshot(test_db):
    snapshot = await load_snapshot(test_db)

    assert snapshot.row_counts() == {"dim_customers": 0, "dim_products": 0, "fact_sales": 0}
    assert snapshot.sales.schema == SalesSnapshot.empty().sales.schema


@pytest.mark.asyncio
async def test_seed_and_load_snapshot(test_db, sample_snapshot):
    counts = await seed_snapshot(test_db, sample_snapshot, chunk_size=2)

    assert counts == {"dim_customers": 5, "dim_products": 4, "fact_sales": 6}

    loaded = await load_snapshot(test_db)

    assert loaded.row_counts() == sample_snapshot.row_counts()
    assert loaded.customers.schema == sample_snapshot.customers.schema
    assert loaded.sales.sort("order_number").equals(sample_snapshot.sales.sort("order_number"))


@pytest.mark.asyncio
async def test_metrics_match_after_round_trip(test_db, sample_snapshot):
    await seed_snapshot(test_db, sample_snapshot)
    loaded = await load_snapshot(test_db)

    original = MetricsEngine(sample_snapshot, as_of=date(2025, 1, 1))
    reloaded = MetricsEngine(loaded, as_of=date(2025, 1, 1))

    assert reloaded.business_metrics() == original.business_metrics()
    assert reloaded.category_revenue(JoinPolicy.INCLUSIVE) == original.category_revenue(JoinPolicy.INCLUSIVE)
    assert reloaded.product_profitability() == original.product_profitability()
    assert reloaded.age_group_distribution() == original.age_group_distribution()


@pytest.mark.asyncio
async def test_connection_lifecycle(tmp_path, sample_snapshot):
    await init_database(f"sqlite+aiosqlite:///{tmp_path / 'lifecycle.db'}")
    try:
        await create_tables()

        async with get_db() as db:
            await seed_snapshot(db, sample_snapshot)

        async with snapshot_session() as db:
            loaded = await load_snapshot(db)

        assert loaded.row_counts() == sample_snapshot.row_counts()
    finally:
        await close_database()

    with pytest.raises(RuntimeError):
        get_engine()


@pytest.mark.asyncio
async def test_session_rolls_back_on_error(tmp_path, sample_snapshot):
    await init_database(f"sqlite+aiosqlite:///{tmp_path / 'rollback.db'}")
    try:
        await create_tables()

        with pytest.raises(ValueError):
            async with get_db() as db:
                await seed_snapshot(db, sample_snapshot)
                raise ValueError("abort")

        async with get_db() as db:
            loaded = await load_snapshot(db)

        assert loaded.row_counts()["fact_sales"] == 0
    finally:
        await close_database()


@pytest.mark.asyncio
async def test_snapshot_session_requires_init():
    with pytest.raises(RuntimeError):
        async with snapshot_session():
            pass


@pytest.mark.asyncio
async def test_snapshot_session_discards_writes(tmp_path, sample_snapshot):
    await init_database(f"sqlite+aiosqlite:///{tmp_path / 'readonly.db'}")
    try:
        await create_tables()

        async with snapshot_session() as db:
            await seed_snapshot(db, sample_snapshot)

        async with snapshot_session() as db:
            loaded = await load_snapshot(db)

        assert loaded.row_counts()["dim_customers"] == 0
    finally:
        await close_database()
