"""
Immutable star-schema snapshot consumed by the metrics engine.
"""

from dataclasses import dataclass
from typing import Dict

import polars as pl
import structlog

from .schema import CUSTOMERS, PRODUCTS, SALES, conform_frame

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SalesSnapshot:
    """
    Static state of the three tables at analysis time.

    Frames are conformed to their schemas on construction; polars frames are
    never mutated in place, so every metric reads the same data.

    Example:
        snapshot = SalesSnapshot.from_frames(customers_df, products_df, sales_df)
        engine = MetricsEngine(snapshot, as_of=date(2025, 1, 1))
    """
    customers: pl.DataFrame
    products: pl.DataFrame
    sales: pl.DataFrame

    @classmethod
    def from_frames(
        cls,
        customers: pl.DataFrame,
        products: pl.DataFrame,
        sales: pl.DataFrame,
    ) -> "SalesSnapshot":
        """Conform raw frames and build a snapshot"""
        snapshot = cls(
            customers=conform_frame(customers, CUSTOMERS),
            products=conform_frame(products, PRODUCTS),
            sales=conform_frame(sales, SALES),
        )
        logger.info("Snapshot built", **snapshot.row_counts())
        return snapshot

    @classmethod
    def empty(cls) -> "SalesSnapshot":
        """Snapshot with three zero-row tables"""
        return cls(
            customers=CUSTOMERS.empty_frame(),
            products=PRODUCTS.empty_frame(),
            sales=SALES.empty_frame(),
        )

    def row_counts(self) -> Dict[str, int]:
        return {
            CUSTOMERS.name: self.customers.height,
            PRODUCTS.name: self.products.height,
            SALES.name: self.sales.height,
        }
