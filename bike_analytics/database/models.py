"""
Database Models - Star Schema Design

Relational layout of the bicycle-sales snapshot:

Fact Tables:
- FactSale: One row per order line with dimension keys and measures

Dimension Tables:
- DimCustomer: Customer demographics
- DimProduct: Product catalog, categories and unit cost
"""

from datetime import date
from typing import List, Optional

from sqlalchemy import Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# DIMENSION TABLES
# =============================================================================

class DimCustomer(Base):
    """Customer Dimension Table"""
    __tablename__ = "dim_customers"

    customer_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    customer_id: Mapped[Optional[int]] = mapped_column(Integer)
    customer_number: Mapped[Optional[str]] = mapped_column(String(50))
    first_name: Mapped[Optional[str]] = mapped_column(String(50))
    last_name: Mapped[Optional[str]] = mapped_column(String(50))
    country: Mapped[Optional[str]] = mapped_column(String(50))
    marital_status: Mapped[Optional[str]] = mapped_column(String(50))
    gender: Mapped[Optional[str]] = mapped_column(String(50))
    birthdate: Mapped[Optional[date]] = mapped_column(Date)
    create_date: Mapped[Optional[date]] = mapped_column(Date)

    sales: Mapped[List["FactSale"]] = relationship(back_populates="customer")

    __table_args__ = (
        Index("ix_dim_customers_country", "country"),
    )


class DimProduct(Base):
    """
    Product Dimension Table

    `cost` is the unit cost used by profitability reporting.
    """
    __tablename__ = "dim_products"

    product_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    product_id: Mapped[Optional[int]] = mapped_column(Integer)
    product_number: Mapped[Optional[str]] = mapped_column(String(50))
    product_name: Mapped[Optional[str]] = mapped_column(String(50))
    category_id: Mapped[Optional[str]] = mapped_column(String(50))
    category: Mapped[Optional[str]] = mapped_column(String(50))
    subcategory: Mapped[Optional[str]] = mapped_column(String(50))
    maintenance: Mapped[Optional[str]] = mapped_column(String(50))
    cost: Mapped[Optional[int]] = mapped_column(Integer)
    product_line: Mapped[Optional[str]] = mapped_column(String(50))
    start_date: Mapped[Optional[date]] = mapped_column(Date)

    sales: Mapped[List["FactSale"]] = relationship(back_populates="product")

    __table_args__ = (
        Index("ix_dim_products_category", "category", "subcategory"),
    )


# =============================================================================
# FACT TABLES
# =============================================================================

class FactSale(Base):
    """
    Sales Fact Table

    Grain is one order. Keys reference both dimensions; measures are
    additive except price.
    """
    __tablename__ = "fact_sales"

    order_number: Mapped[str] = mapped_column(String(50), primary_key=True)

    product_key: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("dim_products.product_key")
    )
    customer_key: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("dim_customers.customer_key")
    )

    order_date: Mapped[Optional[date]] = mapped_column(Date)
    shipping_date: Mapped[Optional[date]] = mapped_column(Date)
    due_date: Mapped[Optional[date]] = mapped_column(Date)

    sales_amount: Mapped[Optional[int]] = mapped_column(Integer)
    quantity: Mapped[Optional[int]] = mapped_column(Integer)
    price: Mapped[Optional[int]] = mapped_column(Integer)

    product: Mapped[Optional["DimProduct"]] = relationship(back_populates="sales")
    customer: Mapped[Optional["DimCustomer"]] = relationship(back_populates="sales")

    __table_args__ = (
        Index("ix_fact_sales_product", "product_key"),
        Index("ix_fact_sales_customer", "customer_key"),
        Index("ix_fact_sales_order_date", "order_date"),
    )
