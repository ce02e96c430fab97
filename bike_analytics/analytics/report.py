"""
Metric Result Records

Fixed-shape records returned by the metrics engine, plus the consolidated
business-metrics report.
"""

from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict


class JoinPolicy(str, Enum):
    """How sales are matched to products in revenue breakdowns"""
    INCLUSIVE = "inclusive"  # keep every category and every sale, orphans flagged
    MATCHED_ONLY = "matched_only"  # only sales whose product exists


class MetricRecord(BaseModel):
    """Base class for immutable result records"""
    model_config = ConfigDict(frozen=True)


class TableRowCount(MetricRecord):
    table_name: str
    row_count: int


class GenderShare(MetricRecord):
    gender: str
    total_customers: int
    percentage: float


class AgeGroupCount(MetricRecord):
    age_group: str
    total_customers: int


class CountryCount(MetricRecord):
    country: Optional[str]
    total_customers: int


class CategoryProductCount(MetricRecord):
    category: Optional[str]
    subcategory: Optional[str]
    total_products: int


class CategoryRevenue(MetricRecord):
    """Revenue for one category/subcategory; orphaned=True marks sales with no product row"""
    category: Optional[str]
    subcategory: Optional[str]
    total_revenue: int
    orphaned: bool = False


class OrderDateRange(MetricRecord):
    first_order_date: Optional[date]
    last_order_date: Optional[date]
    order_range_months: Optional[int]


class CustomerAgeRange(MetricRecord):
    as_of: date
    oldest_birthdate: Optional[date]
    oldest_age: Optional[int]
    youngest_birthdate: Optional[date]
    youngest_age: Optional[int]


class PeriodOrders(MetricRecord):
    year: Optional[int]
    month: int
    orders: int


class PeriodSales(MetricRecord):
    year: int
    month: int
    total_sales: int


class ShippingDuration(MetricRecord):
    """
    Average order-to-ship time in days.

    Sales shipped before they were ordered are counted in
    negative_duration_count and left out of the average.
    """
    average_days: Optional[float]
    measured_sales: int
    negative_duration_count: int
    missing_date_count: int

    @property
    def has_negative_durations(self) -> bool:
        return self.negative_duration_count > 0


class ProductRevenue(MetricRecord):
    product_key: int
    product_name: Optional[str]
    category: Optional[str]
    total_revenue: int
    total_quantity: int


class ProductProfit(MetricRecord):
    product_key: int
    product_name: Optional[str]
    total_revenue: int
    total_quantity: int
    unit_cost: Optional[int]
    profit_margin: Optional[int]


class ReferentialGaps(MetricRecord):
    """Sales whose dimension keys have no matching row"""
    orphan_product_sales: int
    orphan_customer_sales: int
    orphan_product_revenue: int

    @property
    def has_gaps(self) -> bool:
        return self.orphan_product_sales > 0 or self.orphan_customer_sales > 0


class MetricValue(MetricRecord):
    measure_name: str
    measure_value: Optional[Union[int, float]]


class BusinessMetricsReport(MetricRecord):
    """Consolidated key business metrics, in fixed order"""
    metrics: List[MetricValue]

    def get(self, measure_name: str) -> Optional[Union[int, float]]:
        """Value of one measure; KeyError if the report has no such measure"""
        for metric in self.metrics:
            if metric.measure_name == measure_name:
                return metric.measure_value
        raise KeyError(measure_name)

    def as_dict(self) -> Dict[str, Optional[Union[int, float]]]:
        return {m.measure_name: m.measure_value for m in self.metrics}


# Measure names of the consolidated report
TOTAL_SALES = "Total Sales"
TOTAL_QUANTITY = "Total Quantity"
AVERAGE_PRICE = "Average Price"
TOTAL_ORDERS = "Total Orders"
TOTAL_PRODUCTS = "Total Products"
TOTAL_CUSTOMERS = "Total Customers"
AVG_SHIPPING_DURATION = "Avg. Shipping Duration"
