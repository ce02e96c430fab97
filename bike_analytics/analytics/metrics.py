"""
Metrics Engine

Descriptive statistics and business metrics computed from a SalesSnapshot.

Every metric is a pure read of the snapshot: the same snapshot and as-of
date always produce the same result. Age and recency metrics take the
as-of date explicitly instead of reading the system clock.

Join policy:
- category_revenue defaults to INCLUSIVE: every product category is listed
  (zero revenue as 0) and sales without a product row are reported as a
  separate orphaned row.
- top_products_by_revenue and product_profitability are MATCHED_ONLY:
  orphaned sales never appear in them, and products without sales are
  left out.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

import polars as pl
import structlog

from bike_analytics.config import get_settings
from bike_analytics.config.settings import AnalyticsSettings
from .report import (
    AVERAGE_PRICE,
    AVG_SHIPPING_DURATION,
    TOTAL_CUSTOMERS,
    TOTAL_ORDERS,
    TOTAL_PRODUCTS,
    TOTAL_QUANTITY,
    TOTAL_SALES,
    AgeGroupCount,
    BusinessMetricsReport,
    CategoryProductCount,
    CategoryRevenue,
    CountryCount,
    CustomerAgeRange,
    GenderShare,
    JoinPolicy,
    MetricValue,
    OrderDateRange,
    PeriodOrders,
    PeriodSales,
    ProductProfit,
    ProductRevenue,
    ReferentialGaps,
    ShippingDuration,
    TableRowCount,
)
from .schema import CUSTOMERS
from .snapshot import SalesSnapshot

logger = structlog.get_logger(__name__)


def age_in_years(column: str, as_of: date) -> pl.Expr:
    """Completed years between a date column and as_of, as an integer expression"""
    col = pl.col(column)
    birthday_pending = (col.dt.month() > as_of.month) | (
        (col.dt.month() == as_of.month) & (col.dt.day() > as_of.day)
    )
    return as_of.year - col.dt.year().cast(pl.Int32) - birthday_pending.cast(pl.Int32)


def years_between(start: date, end: date) -> int:
    """Completed years from start to end"""
    return end.year - start.year - ((end.month, end.day) < (start.month, start.day))


def months_between(start: date, end: date) -> int:
    """Whole months from start to end, truncated like a calendar age"""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return months


def subtract_years(value: date, years: int) -> date:
    """Same calendar day `years` earlier; Feb 29 falls back to Feb 28"""
    try:
        return value.replace(year=value.year - years)
    except ValueError:
        return value.replace(year=value.year - years, day=28)


def _non_null_count(series: pl.Series) -> int:
    return series.len() - series.null_count()


class MetricsEngine:
    """
    Computes the metric catalogue over one immutable snapshot.

    Example:
        engine = MetricsEngine(snapshot, as_of=date(2025, 1, 1))
        report = engine.business_metrics()
        top = engine.top_products_by_revenue(limit=10)
        results = engine.compute_many(["gender_distribution", "country_distribution"])
    """

    CATALOG = (
        "row_counts",
        "duplicate_customers",
        "products_missing_start_date",
        "distinct_customer_count",
        "gender_distribution",
        "age_group_distribution",
        "country_distribution",
        "countries",
        "product_catalog",
        "category_product_counts",
        "category_revenue",
        "order_date_range",
        "customer_age_range",
        "seasonal_pattern",
        "monthly_sales_trend",
        "total_sales",
        "total_quantity",
        "average_price",
        "total_orders",
        "total_products",
        "total_customers",
        "active_customers",
        "shipping_duration",
        "business_metrics",
        "top_products_by_revenue",
        "product_profitability",
        "referential_gaps",
    )

    def __init__(
        self,
        snapshot: SalesSnapshot,
        as_of: date,
        settings: Optional[AnalyticsSettings] = None,
    ):
        if isinstance(as_of, datetime):
            as_of = as_of.date()
        if not isinstance(as_of, date):
            raise TypeError(f"as_of must be a date, got {type(as_of).__name__}")

        self.snapshot = snapshot
        self.as_of = as_of
        self.settings = settings or get_settings().analytics

    def _resolve_as_of(self, as_of: Optional[date]) -> date:
        if as_of is None:
            return self.as_of
        if isinstance(as_of, datetime):
            return as_of.date()
        return as_of

    # =========================================================================
    # Table exploration
    # =========================================================================

    def row_counts(self) -> List[TableRowCount]:
        """Row count of each table"""
        return [
            TableRowCount(table_name=name, row_count=count)
            for name, count in self.snapshot.row_counts().items()
        ]

    def duplicate_customers(self) -> pl.DataFrame:
        """Customer rows whose full attribute tuple occurs more than once"""
        return (
            self.snapshot.customers
            .group_by(CUSTOMERS.column_names)
            .agg(pl.len().alias("duplicate_count"))
            .filter(pl.col("duplicate_count") > 1)
            .sort("customer_key", nulls_last=True)
        )

    def products_missing_start_date(self) -> pl.DataFrame:
        """Products with a null start date"""
        return self.snapshot.products.filter(pl.col("start_date").is_null())

    # =========================================================================
    # Customer dimension
    # =========================================================================

    def distinct_customer_count(self) -> int:
        return self.snapshot.customers["customer_key"].drop_nulls().n_unique()

    def gender_distribution(self) -> List[GenderShare]:
        """
        Customers per gender with percentage share.

        Unknown genders (settings.unknown_genders) and nulls are excluded
        before shares are computed, so the listed shares sum to 100.
        """
        counts = (
            self.snapshot.customers
            .filter(
                pl.col("gender").is_not_null()
                & ~pl.col("gender").is_in(self.settings.unknown_genders)
            )
            .group_by("gender")
            .agg(pl.col("customer_key").count().alias("total_customers"))
            .filter(pl.col("total_customers") > 0)
        )

        total = counts["total_customers"].sum()
        if not total:
            return []

        counts = counts.with_columns(
            (pl.col("total_customers") / total * 100).round(2).alias("percentage")
        ).sort(["total_customers", "gender"], descending=[True, False])

        return [GenderShare(**row) for row in counts.iter_rows(named=True)]

    def age_group_distribution(self, as_of: Optional[date] = None) -> List[AgeGroupCount]:
        """
        Customers per age band, age in whole years as of the given date.

        Bands come from settings and are checked in order; ages outside
        every band land in the overflow bucket, missing or future birthdates
        in the unknown bucket.
        """
        as_of = self._resolve_as_of(as_of)
        age = age_in_years("birthdate", as_of)

        bucket = pl.when(age.is_null() | (age < 0)).then(pl.lit(self.settings.age_unknown_label))
        for band in self.settings.age_bands:
            bucket = bucket.when(age.is_between(band.min_age, band.max_age)).then(pl.lit(band.label))
        bucket = bucket.otherwise(pl.lit(self.settings.age_overflow_label))

        grouped = (
            self.snapshot.customers
            .select(bucket.alias("age_group"), pl.col("customer_key"))
            .group_by("age_group")
            .agg(pl.col("customer_key").count().alias("total_customers"))
            .sort(["total_customers", "age_group"], descending=[True, False])
        )

        return [AgeGroupCount(**row) for row in grouped.iter_rows(named=True)]

    def country_distribution(self) -> List[CountryCount]:
        grouped = (
            self.snapshot.customers
            .group_by("country")
            .agg(pl.col("customer_key").count().alias("total_customers"))
            .sort(["total_customers", "country"], descending=[True, False], nulls_last=True)
        )
        return [CountryCount(**row) for row in grouped.iter_rows(named=True)]

    def countries(self) -> List[str]:
        """Distinct countries customers come from, ascending"""
        return self.snapshot.customers["country"].drop_nulls().unique().sort().to_list()

    def customer_age_range(self, as_of: Optional[date] = None) -> CustomerAgeRange:
        """Oldest and youngest customer birthdates and their ages as of the given date"""
        as_of = self._resolve_as_of(as_of)
        birthdates = self.snapshot.customers["birthdate"].drop_nulls()

        if birthdates.is_empty():
            return CustomerAgeRange(
                as_of=as_of,
                oldest_birthdate=None,
                oldest_age=None,
                youngest_birthdate=None,
                youngest_age=None,
            )

        oldest = birthdates.min()
        youngest = birthdates.max()
        return CustomerAgeRange(
            as_of=as_of,
            oldest_birthdate=oldest,
            oldest_age=years_between(oldest, as_of),
            youngest_birthdate=youngest,
            youngest_age=years_between(youngest, as_of),
        )

    # =========================================================================
    # Product dimension
    # =========================================================================

    def product_catalog(self) -> pl.DataFrame:
        """Distinct category, subcategory and product name combinations"""
        columns = ["category", "subcategory", "product_name"]
        return (
            self.snapshot.products
            .select(columns)
            .unique()
            .sort(columns, nulls_last=True)
        )

    def category_product_counts(self) -> List[CategoryProductCount]:
        grouped = (
            self.snapshot.products
            .group_by(["category", "subcategory"])
            .agg(pl.col("product_key").count().alias("total_products"))
            .sort(
                ["total_products", "category", "subcategory"],
                descending=[True, False, False],
                nulls_last=True,
            )
        )
        return [CategoryProductCount(**row) for row in grouped.iter_rows(named=True)]

    def _sales_by_product(self) -> pl.DataFrame:
        """Revenue and quantity per product key, aggregated before any join"""
        return self.snapshot.sales.group_by("product_key").agg(
            pl.col("sales_amount").sum().alias("total_revenue"),
            pl.col("quantity").sum().alias("total_quantity"),
        )

    def _orphaned_sales(self, key: str, dimension: pl.DataFrame) -> pl.DataFrame:
        """Sales whose key has no row in the dimension (null keys included)"""
        return self.snapshot.sales.join(
            dimension.select(key).drop_nulls().unique(), on=key, how="anti"
        )

    def category_revenue(self, policy: JoinPolicy = JoinPolicy.INCLUSIVE) -> List[CategoryRevenue]:
        """
        Revenue per category and subcategory.

        Args:
            policy: INCLUSIVE lists every product category (0 when unsold) and
                appends one orphaned=True row for sales with no product;
                MATCHED_ONLY lists only categories with matched sales

        Returns:
            Categories by descending revenue; the orphaned row, if any, last
        """
        policy = JoinPolicy(policy)
        how = "left" if policy is JoinPolicy.INCLUSIVE else "inner"

        grouped = (
            self.snapshot.products
            .select(["product_key", "category", "subcategory"])
            .join(self._sales_by_product(), on="product_key", how=how)
            .with_columns(pl.col("total_revenue").fill_null(0))
            .group_by(["category", "subcategory"])
            .agg(pl.col("total_revenue").sum())
            .sort(
                ["total_revenue", "category", "subcategory"],
                descending=[True, False, False],
                nulls_last=True,
            )
        )
        revenue = [CategoryRevenue(**row) for row in grouped.iter_rows(named=True)]

        if policy is JoinPolicy.INCLUSIVE:
            orphans = self._orphaned_sales("product_key", self.snapshot.products)
            if orphans.height > 0:
                logger.warning(
                    "Sales reference missing products",
                    orphaned_sales=orphans.height,
                )
                revenue.append(CategoryRevenue(
                    category=None,
                    subcategory=None,
                    total_revenue=orphans["sales_amount"].sum(),
                    orphaned=True,
                ))

        return revenue

    # =========================================================================
    # Date exploration
    # =========================================================================

    def order_date_range(self) -> OrderDateRange:
        """First and last order date and the whole months between them"""
        dates = self.snapshot.sales["order_date"].drop_nulls()
        if dates.is_empty():
            return OrderDateRange(first_order_date=None, last_order_date=None, order_range_months=None)

        first, last = dates.min(), dates.max()
        return OrderDateRange(
            first_order_date=first,
            last_order_date=last,
            order_range_months=months_between(first, last),
        )

    def orders_within(self, years: int, as_of: Optional[date] = None) -> int:
        """Number of sales ordered in the `years` years up to as_of"""
        cutoff = subtract_years(self._resolve_as_of(as_of), years)
        return self.snapshot.sales.filter(pl.col("order_date") >= cutoff).height

    def _by_period(self, by_year: bool = True) -> tuple:
        keys = ["year", "month"] if by_year else ["month"]
        frame = self.snapshot.sales.filter(pl.col("order_date").is_not_null()).with_columns(
            pl.col("order_date").dt.year().alias("year"),
            pl.col("order_date").dt.month().alias("month"),
        )
        return frame, keys

    def seasonal_pattern(self, by_year: bool = True) -> List[PeriodOrders]:
        """Order count per calendar month (per year and month by default), ascending"""
        frame, keys = self._by_period(by_year)
        grouped = frame.group_by(keys).agg(pl.len().alias("orders")).sort(keys)
        return [
            PeriodOrders(year=row.get("year"), month=row["month"], orders=row["orders"])
            for row in grouped.iter_rows(named=True)
        ]

    def monthly_sales_trend(self) -> List[PeriodSales]:
        """Sales amount per year and month, ascending"""
        frame, keys = self._by_period(by_year=True)
        grouped = (
            frame.group_by(keys)
            .agg(pl.col("sales_amount").sum().alias("total_sales"))
            .sort(keys)
        )
        return [PeriodSales(**row) for row in grouped.iter_rows(named=True)]

    # =========================================================================
    # Measures
    # =========================================================================

    def total_sales(self) -> int:
        return int(self.snapshot.sales["sales_amount"].sum())

    def total_quantity(self) -> int:
        return int(self.snapshot.sales["quantity"].sum())

    def average_price(self) -> Optional[float]:
        """Mean unit price; None when there are no priced sales"""
        return self.snapshot.sales["price"].mean()

    def total_orders(self, distinct: bool = True) -> int:
        orders = self.snapshot.sales["order_number"]
        if distinct:
            return orders.drop_nulls().n_unique()
        return _non_null_count(orders)

    def total_products(self, distinct: bool = True) -> int:
        names = self.snapshot.products["product_name"]
        if distinct:
            return names.drop_nulls().n_unique()
        return _non_null_count(names)

    def total_customers(self) -> int:
        return _non_null_count(self.snapshot.customers["customer_key"])

    def active_customers(self) -> int:
        """Distinct customers with at least one sale"""
        return self.snapshot.sales["customer_key"].drop_nulls().n_unique()

    def shipping_duration(self) -> ShippingDuration:
        """
        Average days from order to shipping.

        Durations below zero are data errors: they are counted and logged,
        never averaged. Rows missing either date are counted separately.
        """
        days = self.snapshot.sales.select(
            (pl.col("shipping_date") - pl.col("order_date")).dt.total_days().alias("days")
        )["days"]

        known = days.drop_nulls()
        negative = known.filter(known < 0)
        measurable = known.filter(known >= 0)

        if negative.len() > 0:
            logger.warning(
                "Sales shipped before they were ordered",
                negative_durations=negative.len(),
                min_days=negative.min(),
            )

        return ShippingDuration(
            average_days=measurable.mean() if measurable.len() > 0 else None,
            measured_sales=measurable.len(),
            negative_duration_count=negative.len(),
            missing_date_count=days.null_count(),
        )

    def business_metrics(self) -> BusinessMetricsReport:
        """
        Consolidated key metrics of the business.

        All values are read from the same snapshot; sums and counts are 0
        on an empty fact table, averages are None.
        """
        return BusinessMetricsReport(metrics=[
            MetricValue(measure_name=TOTAL_SALES, measure_value=self.total_sales()),
            MetricValue(measure_name=TOTAL_QUANTITY, measure_value=self.total_quantity()),
            MetricValue(measure_name=AVERAGE_PRICE, measure_value=self.average_price()),
            MetricValue(measure_name=TOTAL_ORDERS, measure_value=self.total_orders(distinct=True)),
            MetricValue(measure_name=TOTAL_PRODUCTS, measure_value=self.total_products(distinct=True)),
            MetricValue(measure_name=TOTAL_CUSTOMERS, measure_value=self.total_customers()),
            MetricValue(measure_name=AVG_SHIPPING_DURATION, measure_value=self.shipping_duration().average_days),
        ])

    # =========================================================================
    # Product performance
    # =========================================================================

    def top_products_by_revenue(self, limit: Optional[int] = None) -> List[ProductRevenue]:
        """Products with matched sales ranked by revenue, ties by name then key"""
        ranked = (
            self._sales_by_product()
            .join(
                self.snapshot.products.select(["product_key", "product_name", "category"]),
                on="product_key",
                how="inner",
            )
            .sort(
                ["total_revenue", "product_name", "product_key"],
                descending=[True, False, False],
                nulls_last=True,
            )
        )
        if limit is not None:
            ranked = ranked.head(limit)

        return [ProductRevenue(**row) for row in ranked.iter_rows(named=True)]

    def product_profitability(self, limit: Optional[int] = None) -> List[ProductProfit]:
        """
        Revenue minus quantity times unit cost, per product with matched sales.

        Sales are summed per product first and the cost is joined once per
        product. Products without a cost get a None margin and rank last.
        """
        ranked = (
            self._sales_by_product()
            .join(
                self.snapshot.products.select(["product_key", "product_name", "cost"]),
                on="product_key",
                how="inner",
            )
            .with_columns(
                (pl.col("total_revenue") - pl.col("total_quantity") * pl.col("cost")).alias("profit_margin")
            )
            .sort(
                ["profit_margin", "product_name", "product_key"],
                descending=[True, False, False],
                nulls_last=True,
            )
        )
        if limit is not None:
            ranked = ranked.head(limit)

        return [
            ProductProfit(
                product_key=row["product_key"],
                product_name=row["product_name"],
                total_revenue=row["total_revenue"],
                total_quantity=row["total_quantity"],
                unit_cost=row["cost"],
                profit_margin=row["profit_margin"],
            )
            for row in ranked.iter_rows(named=True)
        ]

    def referential_gaps(self) -> ReferentialGaps:
        """Count sales whose product or customer key has no dimension row"""
        orphan_products = self._orphaned_sales("product_key", self.snapshot.products)
        orphan_customers = self._orphaned_sales("customer_key", self.snapshot.customers)

        gaps = ReferentialGaps(
            orphan_product_sales=orphan_products.height,
            orphan_customer_sales=orphan_customers.height,
            orphan_product_revenue=int(orphan_products["sales_amount"].sum()),
        )
        if gaps.has_gaps:
            logger.warning(
                "Referential gaps in fact_sales",
                orphan_product_sales=gaps.orphan_product_sales,
                orphan_customer_sales=gaps.orphan_customer_sales,
            )
        return gaps

    # =========================================================================
    # Catalogue access
    # =========================================================================

    def compute(self, name: str, **kwargs: Any) -> Any:
        """Run one catalogue metric by name"""
        if name not in self.CATALOG:
            raise KeyError(f"Unknown metric: {name}")
        logger.debug("Computing metric", metric=name)
        return getattr(self, name)(**kwargs)

    def compute_many(
        self,
        names: Optional[Iterable[str]] = None,
        max_workers: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Run several catalogue metrics concurrently.

        Metrics share no mutable state, so they run on a thread pool; the
        result dict follows the order of `names` (the full catalogue by
        default).
        """
        names = list(names) if names is not None else list(self.CATALOG)
        unknown = [n for n in names if n not in self.CATALOG]
        if unknown:
            raise KeyError(f"Unknown metrics: {unknown}")

        workers = max_workers or self.settings.max_workers
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {name: pool.submit(self.compute, name) for name in names}
            results = {name: future.result() for name, future in futures.items()}

        logger.info("Metrics computed", count=len(results), workers=workers)
        return results
