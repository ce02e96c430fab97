"""
Snapshot Table Schemas

Typed column definitions for the star schema and the coercion applied to
every frame entering a snapshot. Problems with the input shape fail here,
at load time, instead of surfacing later as wrong metric values.
"""

from dataclasses import dataclass
from typing import Dict, List

import polars as pl
import structlog

logger = structlog.get_logger(__name__)

DATE_FORMAT = "%Y-%m-%d"


class SchemaViolationError(ValueError):
    """Input table is missing a required column or holds an incompatible type"""

    def __init__(self, table: str, message: str):
        self.table = table
        super().__init__(f"{table}: {message}")


@dataclass(frozen=True)
class TableSchema:
    """Ordered column names and polars dtypes for one table"""
    name: str
    columns: Dict[str, pl.DataType]
    key: str

    @property
    def column_names(self) -> List[str]:
        return list(self.columns)

    def empty_frame(self) -> pl.DataFrame:
        return pl.DataFrame(schema=self.columns)


CUSTOMERS = TableSchema(
    name="dim_customers",
    key="customer_key",
    columns={
        "customer_key": pl.Int64,
        "customer_id": pl.Int64,
        "customer_number": pl.Utf8,
        "first_name": pl.Utf8,
        "last_name": pl.Utf8,
        "country": pl.Utf8,
        "marital_status": pl.Utf8,
        "gender": pl.Utf8,
        "birthdate": pl.Date,
        "create_date": pl.Date,
    },
)

PRODUCTS = TableSchema(
    name="dim_products",
    key="product_key",
    columns={
        "product_key": pl.Int64,
        "product_id": pl.Int64,
        "product_number": pl.Utf8,
        "product_name": pl.Utf8,
        "category_id": pl.Utf8,
        "category": pl.Utf8,
        "subcategory": pl.Utf8,
        "maintenance": pl.Utf8,
        "cost": pl.Int64,
        "product_line": pl.Utf8,
        "start_date": pl.Date,
    },
)

SALES = TableSchema(
    name="fact_sales",
    key="order_number",
    columns={
        "order_number": pl.Utf8,
        "product_key": pl.Int64,
        "customer_key": pl.Int64,
        "order_date": pl.Date,
        "shipping_date": pl.Date,
        "due_date": pl.Date,
        "sales_amount": pl.Int64,
        "quantity": pl.Int64,
        "price": pl.Int64,
    },
)

TABLES = {schema.name: schema for schema in (CUSTOMERS, PRODUCTS, SALES)}


def _coerce(table: str, column: str, actual: pl.DataType, expected: pl.DataType) -> pl.Expr:
    """Build the cast expression for one column or raise on an incompatible dtype"""
    col = pl.col(column)

    if actual == expected:
        return col
    if actual == pl.Null:
        return col.cast(expected)

    if expected == pl.Date:
        if actual == pl.Utf8:
            return col.str.strip_chars().str.to_date(DATE_FORMAT, strict=True)
        if isinstance(actual, pl.Datetime):
            return col.dt.date()
    elif expected == pl.Int64:
        if actual.is_integer():
            return col.cast(pl.Int64)
        if actual == pl.Utf8:
            return col.str.strip_chars().cast(pl.Int64, strict=True)
    elif expected == pl.Utf8:
        return col.cast(pl.Utf8)

    raise SchemaViolationError(
        table, f"column '{column}' has type {actual}, expected {expected}"
    )


def conform_frame(df: pl.DataFrame, schema: TableSchema) -> pl.DataFrame:
    """
    Select and coerce a frame to the table schema.

    Args:
        df: Raw input frame, possibly with extra columns or text-typed values
        schema: Target table schema

    Returns:
        Frame holding exactly the schema's columns, in order, with its dtypes

    Raises:
        SchemaViolationError: On a missing column or an uncoercible value
    """
    missing = [c for c in schema.column_names if c not in df.columns]
    if missing:
        raise SchemaViolationError(schema.name, f"missing required columns {missing}")

    exprs = [
        _coerce(schema.name, name, df.schema[name], dtype).alias(name)
        for name, dtype in schema.columns.items()
    ]

    try:
        conformed = df.select(exprs)
    except pl.exceptions.PolarsError as e:
        raise SchemaViolationError(schema.name, f"value does not match declared types: {e}") from e

    extra = [c for c in df.columns if c not in schema.columns]
    if extra:
        logger.debug("Dropping extra columns", table=schema.name, columns=extra)

    return conformed
