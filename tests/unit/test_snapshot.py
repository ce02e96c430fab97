"""
Unit Tests - Snapshot Schema
"""
from datetime import date, datetime

import polars as pl
import pytest

from bike_analytics.analytics import SalesSnapshot, SchemaViolationError
from bike_analytics.analytics.schema import CUSTOMERS, PRODUCTS, SALES, TABLES, conform_frame


class TestConformFrame:
    """Tests for schema coercion"""

    def test_text_columns_are_coerced(self):
        raw = pl.DataFrame({
            "order_number": ["SO1"],
            "product_key": ["10"],
            "customer_key": [" 1 "],
            "order_date": ["2013-01-10"],
            "shipping_date": ["2013-01-17"],
            "due_date": ["2013-01-22"],
            "sales_amount": ["2000"],
            "quantity": ["3"],
            "price": ["700"],
        })

        sales = conform_frame(raw, SALES)

        assert sales.schema == pl.Schema(SALES.columns)
        assert sales["customer_key"][0] == 1
        assert sales["order_date"][0] == date(2013, 1, 10)

    def test_datetime_truncated_to_date(self, sample_products_df):
        products = sample_products_df.with_columns(
            pl.lit(datetime(2011, 7, 1, 12, 0)).alias("start_date")
        )

        conformed = conform_frame(products, PRODUCTS)

        assert conformed["start_date"].to_list() == [date(2011, 7, 1)] * 4

    def test_null_column_takes_declared_type(self, sample_customers_df):
        customers = sample_customers_df.with_columns(pl.lit(None).alias("birthdate"))

        conformed = conform_frame(customers, CUSTOMERS)

        assert conformed.schema["birthdate"] == pl.Date
        assert conformed["birthdate"].null_count() == 5

    def test_extra_columns_dropped(self, sample_customers_df):
        customers = sample_customers_df.with_columns(pl.lit("x").alias("loyalty_tier"))

        conformed = conform_frame(customers, CUSTOMERS)

        assert conformed.columns == CUSTOMERS.column_names

    def test_missing_column_raises(self, sample_sales_df):
        with pytest.raises(SchemaViolationError) as exc_info:
            conform_frame(sample_sales_df.drop("quantity"), SALES)

        assert exc_info.value.table == "fact_sales"
        assert "quantity" in str(exc_info.value)

    def test_incompatible_type_raises(self, sample_sales_df):
        sales = sample_sales_df.with_columns(pl.col("order_date").cast(pl.Int64))

        with pytest.raises(SchemaViolationError):
            conform_frame(sales, SALES)

    def test_malformed_date_raises(self, sample_sales_df):
        sales = sample_sales_df.with_columns(pl.col("order_date").cast(pl.Utf8))
        sales = sales.with_columns(
            pl.when(pl.col("order_number") == "SO2")
            .then(pl.lit("2013-02-31"))
            .otherwise(pl.col("order_date"))
            .alias("order_date")
        )

        with pytest.raises(SchemaViolationError):
            conform_frame(sales, SALES)

    def test_non_numeric_text_raises(self, sample_sales_df):
        sales = sample_sales_df.with_columns(pl.col("quantity").cast(pl.Utf8).str.replace("3", "three"))

        with pytest.raises(SchemaViolationError):
            conform_frame(sales, SALES)

    def test_violation_is_value_error(self):
        assert issubclass(SchemaViolationError, ValueError)


class TestSalesSnapshot:
    """Tests for SalesSnapshot"""

    def test_from_frames_conforms(self, sample_snapshot):
        assert sample_snapshot.customers.columns == CUSTOMERS.column_names
        assert sample_snapshot.sales.schema["quantity"] == pl.Int64

    def test_row_counts(self, sample_snapshot):
        assert sample_snapshot.row_counts() == {"dim_customers": 5, "dim_products": 4, "fact_sales": 6}

    def test_empty(self):
        snapshot = SalesSnapshot.empty()

        assert snapshot.row_counts() == {name: 0 for name in TABLES}
        assert snapshot.products.schema == pl.Schema(PRODUCTS.columns)

    def test_frozen(self, sample_snapshot):
        with pytest.raises(AttributeError):
            sample_snapshot.sales = SalesSnapshot.empty().sales
