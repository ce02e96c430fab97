"""
Synthetic Data Generator

Generates a realistic bicycle-shop snapshot for development and tests:
- Customers with demographics across six countries
- Products across the four bike-shop categories
- Sales with order, shipping and due dates
"""

from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np
import polars as pl
import structlog
from faker import Faker

from bike_analytics.analytics.schema import CUSTOMERS, PRODUCTS, SALES
from bike_analytics.analytics.snapshot import SalesSnapshot
from bike_analytics.config import get_settings

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORIES = [
    ("BI", "Bikes", ["Mountain Bikes", "Road Bikes", "Touring Bikes"], (300, 2200)),
    ("AC", "Accessories", ["Helmets", "Bottles and Cages", "Tires and Tubes", "Bike Racks"], (2, 60)),
    ("CL", "Clothing", ["Jerseys", "Gloves", "Shorts", "Socks"], (3, 40)),
    ("CO", "Components", ["Handlebars", "Wheels", "Pedals", "Chains", "Saddles"], (10, 700)),
]

PRODUCT_LINES = ["Mountain", "Road", "Touring", "Other Sales"]

COUNTRIES = [
    ("United States", 0.30),
    ("Australia", 0.25),
    ("United Kingdom", 0.12),
    ("France", 0.11),
    ("Germany", 0.11),
    ("Canada", 0.09),
    ("n/a", 0.02),
]

GENDERS = [("Male", 0.49), ("Female", 0.49), ("n/a", 0.02)]
MARITAL_STATUSES = [("Married", 0.55), ("Single", 0.45)]


# =============================================================================
# GENERATORS
# =============================================================================

class CustomerGenerator:
    """Generate customer demographics"""

    def __init__(self, fake: Faker, rng: np.random.Generator):
        self.fake = fake
        self.rng = rng

    def _choose(self, weighted: List[tuple], n: int) -> List[str]:
        values, weights = zip(*weighted)
        return self.rng.choice(values, size=n, p=weights).tolist()

    def generate(self, n: int = 1000, start_key: int = 1) -> pl.DataFrame:
        """Generate n customers with sequential keys"""
        keys = list(range(start_key, start_key + n))
        birth_offsets = self.rng.integers(18 * 365, 90 * 365, size=n)
        create_offsets = self.rng.integers(0, 3 * 365, size=n)

        return pl.DataFrame(
            {
                "customer_key": keys,
                "customer_id": [11000 + k for k in keys],
                "customer_number": [f"AW{11000 + k:08d}" for k in keys],
                "first_name": [self.fake.first_name() for _ in keys],
                "last_name": [self.fake.last_name() for _ in keys],
                "country": self._choose(COUNTRIES, n),
                "marital_status": self._choose(MARITAL_STATUSES, n),
                "gender": self._choose(GENDERS, n),
                "birthdate": [date(2014, 1, 1) - timedelta(days=int(d)) for d in birth_offsets],
                "create_date": [date(2025, 1, 1) + timedelta(days=int(d)) for d in create_offsets],
            },
            schema=CUSTOMERS.columns,
        )


class ProductGenerator:
    """Generate the product catalog"""

    def __init__(self, fake: Faker, rng: np.random.Generator):
        self.fake = fake
        self.rng = rng

    def generate(self, n: int = 300, start_key: int = 1) -> pl.DataFrame:
        """Generate n products; about 5% have no start date"""
        rows = []
        for key in range(start_key, start_key + n):
            prefix, category, subcategories, (low, high) = CATEGORIES[int(self.rng.integers(0, len(CATEGORIES)))]
            subcategory = subcategories[int(self.rng.integers(0, len(subcategories)))]
            start = date(2010, 7, 1) + timedelta(days=int(self.rng.integers(0, 3 * 365)))

            rows.append({
                "product_key": key,
                "product_id": 200 + key,
                "product_number": f"{prefix}-{self.fake.bothify('??-####').upper()}",
                "product_name": f"{self.fake.word().title()} {subcategory[:-1]} {key}",
                "category_id": f"{prefix}_{subcategory[:2].upper()}",
                "category": category,
                "subcategory": subcategory,
                "maintenance": "Yes" if self.rng.random() < 0.4 else "No",
                "cost": int(self.rng.integers(low, high + 1)),
                "product_line": PRODUCT_LINES[int(self.rng.integers(0, len(PRODUCT_LINES)))],
                "start_date": None if self.rng.random() < 0.05 else start,
            })

        return pl.DataFrame(rows, schema=PRODUCTS.columns)


class SalesGenerator:
    """Generate the sales fact table"""

    def __init__(
        self,
        customers_df: pl.DataFrame,
        products_df: pl.DataFrame,
        rng: np.random.Generator,
    ):
        self.customer_keys = customers_df["customer_key"].to_list()
        self.products = products_df.select(["product_key", "cost"]).to_dicts()
        self.rng = rng

    def generate(
        self,
        n: int = 10000,
        start_date: date = date(2010, 12, 29),
        end_date: date = date(2014, 1, 28),
    ) -> pl.DataFrame:
        """Generate n sales between the two dates"""
        span = (end_date - start_date).days
        rows = []

        for i in range(n):
            product = self.products[int(self.rng.integers(0, len(self.products)))]
            quantity = int(self.rng.choice([1, 2, 3], p=[0.85, 0.10, 0.05]))
            markup = float(self.rng.uniform(1.3, 1.9))
            price = max(1, int(round((product["cost"] or 1) * markup)))
            order_date = start_date + timedelta(days=int(self.rng.integers(0, span + 1)))
            shipping_date = order_date + timedelta(days=7)

            rows.append({
                "order_number": f"SO{43697 + i}",
                "product_key": product["product_key"],
                "customer_key": self.customer_keys[int(self.rng.integers(0, len(self.customer_keys)))],
                "order_date": order_date,
                "shipping_date": shipping_date,
                "due_date": shipping_date + timedelta(days=5),
                "sales_amount": price * quantity,
                "quantity": quantity,
                "price": price,
            })

        return pl.DataFrame(rows, schema=SALES.columns)


# =============================================================================
# MAIN GENERATOR
# =============================================================================

class DataGenerator:
    """
    Builds a complete synthetic snapshot.

    Example:
        snapshot = DataGenerator(seed=7).generate_snapshot(n_customers=100)
        DataGenerator(seed=7).write("data/raw")
    """

    def __init__(self, seed: int = 42):
        self.seed = seed

    def generate_snapshot(
        self,
        n_customers: int = 1000,
        n_products: int = 300,
        n_sales: int = 10000,
    ) -> SalesSnapshot:
        """Generate a snapshot; the same seed always gives the same data"""
        fake = Faker()
        fake.seed_instance(self.seed)
        rng = np.random.default_rng(self.seed)

        customers_df = CustomerGenerator(fake, rng).generate(n_customers)
        products_df = ProductGenerator(fake, rng).generate(n_products)
        sales_df = SalesGenerator(customers_df, products_df, rng).generate(n_sales)

        logger.info(
            "Synthetic snapshot generated",
            customers=n_customers,
            products=n_products,
            sales=n_sales,
            seed=self.seed,
        )
        return SalesSnapshot.from_frames(customers_df, products_df, sales_df)

    def write(
        self,
        output_dir: Optional[Union[str, Path]] = None,
        snapshot: Optional[SalesSnapshot] = None,
        **sizes: int,
    ) -> Dict[str, Path]:
        """
        Write a snapshot as the three CSV files BatchLoader reads.

        Returns:
            Path written per table
        """
        data_settings = get_settings().data
        output_dir = Path(output_dir or data_settings.raw_path)
        output_dir.mkdir(parents=True, exist_ok=True)
        snapshot = snapshot or self.generate_snapshot(**sizes)

        targets = {
            CUSTOMERS.name: (snapshot.customers, data_settings.customers_file),
            PRODUCTS.name: (snapshot.products, data_settings.products_file),
            SALES.name: (snapshot.sales, data_settings.sales_file),
        }

        paths = {}
        for table, (df, stem) in targets.items():
            path = output_dir / f"{stem}.csv"
            df.write_csv(path)
            paths[table] = path
            logger.info("Saved table", table=table, rows=df.height, path=str(path))

        return paths
