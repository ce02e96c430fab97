"""
Test Suite Configuration
"""
from datetime import date
from typing import AsyncGenerator

import polars as pl
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from bike_analytics.analytics import MetricsEngine, SalesSnapshot
from bike_analytics.config import Settings
from bike_analytics.database.models import Base


AS_OF = date(2025, 1, 1)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
def as_of() -> date:
    return AS_OF


@pytest.fixture
def sample_customers_df() -> pl.DataFrame:
    """Five customers; one n/a gender, one without birthdate"""
    return pl.DataFrame({
        "customer_key": [1, 2, 3, 4, 5],
        "customer_id": [11000, 11001, 11002, 11003, 11004],
        "customer_number": ["AW00011000", "AW00011001", "AW00011002", "AW00011003", "AW00011004"],
        "first_name": ["Jon", "Eugene", "Ruben", "Christy", "Elizabeth"],
        "last_name": ["Yang", "Huang", "Torres", "Zhu", "Johnson"],
        "country": ["Australia", "United States", "Australia", "Germany", "United States"],
        "marital_status": ["Married", "Single", "Married", "Single", "Single"],
        "gender": ["Male", "Female", "n/a", "Female", "Male"],
        "birthdate": [date(1990, 6, 15), date(1985, 1, 20), date(2000, 3, 1), date(1970, 12, 31), None],
        "create_date": [date(2025, 10, 6)] * 5,
    })


@pytest.fixture
def sample_products_df() -> pl.DataFrame:
    """Four products; the water bottle never sells, the helmet has no start date"""
    return pl.DataFrame({
        "product_key": [10, 11, 12, 13],
        "product_id": [310, 311, 312, 313],
        "product_number": ["BK-R93R-62", "BK-M68B-38", "HL-U509-R", "WB-H098"],
        "product_name": ["Road-150 Red", "Mountain-200 Black", "Sport-100 Helmet", "Water Bottle"],
        "category_id": ["BI_RB", "BI_MB", "AC_HE", "AC_BC"],
        "category": ["Bikes", "Bikes", "Accessories", "Accessories"],
        "subcategory": ["Road Bikes", "Mountain Bikes", "Helmets", "Bottles and Cages"],
        "maintenance": ["Yes", "Yes", "No", "No"],
        "cost": [500, 1000, 13, 2],
        "product_line": ["Road", "Mountain", "Other Sales", "Other Sales"],
        "start_date": [date(2011, 7, 1), date(2012, 7, 1), None, date(2013, 7, 1)],
    })


@pytest.fixture
def sample_sales_df() -> pl.DataFrame:
    """Six sales, all shipped after 7 days; SO6 references missing product 99"""
    return pl.DataFrame({
        "order_number": ["SO1", "SO2", "SO3", "SO4", "SO5", "SO6"],
        "product_key": [10, 10, 11, 12, 12, 99],
        "customer_key": [1, 2, 1, 3, 4, 2],
        "order_date": [
            date(2013, 1, 10), date(2013, 2, 5), date(2013, 2, 20),
            date(2014, 1, 5), date(2014, 1, 28), date(2013, 12, 29),
        ],
        "shipping_date": [
            date(2013, 1, 17), date(2013, 2, 12), date(2013, 2, 27),
            date(2014, 1, 12), date(2014, 2, 4), date(2014, 1, 5),
        ],
        "due_date": [
            date(2013, 1, 22), date(2013, 2, 17), date(2013, 3, 4),
            date(2014, 1, 17), date(2014, 2, 9), date(2014, 1, 10),
        ],
        "sales_amount": [2000, 1500, 2400, 35, 70, 100],
        "quantity": [3, 2, 1, 1, 2, 1],
        "price": [700, 750, 2400, 35, 35, 100],
    })


@pytest.fixture
def sample_snapshot(sample_customers_df, sample_products_df, sample_sales_df) -> SalesSnapshot:
    return SalesSnapshot.from_frames(sample_customers_df, sample_products_df, sample_sales_df)


@pytest.fixture
def engine(sample_snapshot, test_settings) -> MetricsEngine:
    return MetricsEngine(sample_snapshot, as_of=AS_OF, settings=test_settings.analytics)


@pytest.fixture
def empty_engine(test_settings) -> MetricsEngine:
    return MetricsEngine(SalesSnapshot.empty(), as_of=AS_OF, settings=test_settings.analytics)


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create test database engine on a file-backed SQLite database"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'bike_sales.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()
