"""
Unit Tests - Batch Snapshot Loader
"""
from datetime import date

import pytest

from bike_analytics.analytics import SchemaViolationError
from bike_analytics.analytics.schema import CUSTOMERS, SALES
from bike_analytics.data import DataGenerator
from bike_analytics.ingestion import BatchFileConfig, BatchLoader, FileFormat, LoadStatus


@pytest.fixture
def snapshot_dir(tmp_path, sample_snapshot):
    """Directory holding the sample snapshot as CSV files"""
    DataGenerator().write(tmp_path, snapshot=sample_snapshot)
    return tmp_path


class TestBatchLoader:
    """Tests for BatchLoader"""

    def test_load_csv_snapshot(self, snapshot_dir, sample_snapshot):
        loader = BatchLoader()

        snapshot = loader.load_snapshot(snapshot_dir, FileFormat.CSV)

        assert snapshot.row_counts() == sample_snapshot.row_counts()
        assert snapshot.customers.equals(sample_snapshot.customers)
        assert snapshot.sales.equals(sample_snapshot.sales)
        assert [r.status for r in loader.results] == [LoadStatus.COMPLETED] * 3

    def test_csv_nulls_survive(self, snapshot_dir):
        snapshot = BatchLoader().load_snapshot(snapshot_dir, FileFormat.CSV)

        assert snapshot.customers["birthdate"].null_count() == 1
        assert snapshot.products["start_date"].null_count() == 1

    def test_load_parquet_snapshot(self, tmp_path, sample_snapshot):
        sample_snapshot.customers.write_parquet(tmp_path / "dim_customers.parquet")
        sample_snapshot.products.write_parquet(tmp_path / "dim_products.parquet")
        sample_snapshot.sales.write_parquet(tmp_path / "fact_sales.parquet")

        snapshot = BatchLoader().load_snapshot(tmp_path, FileFormat.PARQUET)

        assert snapshot.products.equals(sample_snapshot.products)

    def test_load_jsonl_table(self, tmp_path, sample_snapshot):
        path = tmp_path / "fact_sales.jsonl"
        sample_snapshot.sales.write_ndjson(path)

        df, result = BatchLoader().load_table(
            BatchFileConfig(file_path=path, file_format=FileFormat.JSONL, table=SALES)
        )

        assert df["order_date"][0] == date(2013, 1, 10)
        assert result.rows_loaded == 6

    def test_load_result_records_hash(self, snapshot_dir):
        _, result = BatchLoader().load_table(
            BatchFileConfig(
                file_path=snapshot_dir / "dim_customers.csv",
                file_format=FileFormat.CSV,
                table=CUSTOMERS,
            )
        )

        assert result.status == LoadStatus.COMPLETED
        assert result.target_table == "dim_customers"
        assert result.rows_loaded == 5
        assert len(result.file_hash) == 32
        assert result.completed_at >= result.started_at

    def test_missing_file(self, tmp_path):
        loader = BatchLoader()

        with pytest.raises(FileNotFoundError):
            loader.load_snapshot(tmp_path, FileFormat.CSV)

        assert loader.results[0].status == LoadStatus.FAILED

    def test_missing_column(self, snapshot_dir, sample_snapshot):
        sample_snapshot.sales.drop("price").write_csv(snapshot_dir / "fact_sales.csv")
        loader = BatchLoader()

        with pytest.raises(SchemaViolationError):
            loader.load_snapshot(snapshot_dir, FileFormat.CSV)

        failed = loader.results[-1]
        assert failed.status == LoadStatus.FAILED
        assert "price" in failed.error_message

    def test_malformed_value(self, tmp_path):
        path = tmp_path / "fact_sales.csv"
        path.write_text(
            "order_number,product_key,customer_key,order_date,shipping_date,due_date,sales_amount,quantity,price\n"
            "SO1,10,1,10/01/2013,2013-01-17,2013-01-22,2000,3,700\n"
        )

        with pytest.raises(SchemaViolationError):
            BatchLoader().load_table(
                BatchFileConfig(file_path=path, file_format=FileFormat.CSV, table=SALES)
            )

    def test_custom_null_tokens(self, tmp_path):
        path = tmp_path / "fact_sales.csv"
        path.write_text(
            "order_number,product_key,customer_key,order_date,shipping_date,due_date,sales_amount,quantity,price\n"
            "SO1,10,1,2013-01-10,-,2013-01-22,2000,3,700\n"
        )

        df, _ = BatchLoader(null_values=["-"]).load_table(
            BatchFileConfig(file_path=path, file_format=FileFormat.CSV, table=SALES)
        )

        assert df["shipping_date"][0] is None
