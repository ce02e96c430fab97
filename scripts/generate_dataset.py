"""
Bike Sales Dataset Generator
Writes dim_customers.csv, dim_products.csv and fact_sales.csv for development.
"""

import argparse
from pathlib import Path

from bike_analytics.config.logging import configure_logging
from bike_analytics.data import DataGenerator

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "raw"


def main():
    parser = argparse.ArgumentParser(description="Generate a synthetic bike sales snapshot")
    parser.add_argument("--output", default=str(OUTPUT_DIR), help="Output directory")
    parser.add_argument("--customers", type=int, default=18000)
    parser.add_argument("--products", type=int, default=300)
    parser.add_argument("--sales", type=int, default=60000)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    configure_logging()
    DataGenerator(seed=args.seed).write(
        args.output,
        n_customers=args.customers,
        n_products=args.products,
        n_sales=args.sales,
    )


if __name__ == "__main__":
    main()
