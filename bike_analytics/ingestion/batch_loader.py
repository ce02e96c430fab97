"""
Batch Snapshot Loader

Reads the three snapshot tables from CSV, JSON Lines or Parquet files and
conforms them to the star schema.

Text formats are read with every column as a string and coerced by the
schema module, so a malformed value fails the load instead of silently
changing a column's inferred type.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union

import polars as pl
import structlog
from pydantic import BaseModel

from bike_analytics.analytics.schema import CUSTOMERS, PRODUCTS, SALES, TableSchema, conform_frame
from bike_analytics.analytics.snapshot import SalesSnapshot
from bike_analytics.config import get_settings

logger = structlog.get_logger(__name__)


class FileFormat(str, Enum):
    """Supported file formats"""
    CSV = "csv"
    JSONL = "jsonl"
    PARQUET = "parquet"


class LoadStatus(str, Enum):
    """Batch load status"""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class BatchFileConfig:
    """Configuration for loading one table file"""
    file_path: Union[str, Path]
    file_format: FileFormat
    table: TableSchema
    delimiter: str = ","
    encoding: str = "utf8"
    null_values: List[str] = field(default_factory=lambda: list(get_settings().data.null_values))


class LoadResult(BaseModel):
    """Result of a table load"""
    file_path: str
    target_table: str
    status: LoadStatus
    rows_loaded: int = 0
    error_message: Optional[str] = None
    load_duration_seconds: float = 0
    started_at: datetime
    completed_at: Optional[datetime] = None
    file_hash: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BatchLoader:
    """
    Loads snapshot tables from files.

    Example:
        loader = BatchLoader()
        snapshot = loader.load_snapshot("data/raw", FileFormat.CSV)
    """

    def __init__(self, null_values: Optional[List[str]] = None):
        self.null_values = null_values
        self.results: List[LoadResult] = []

    def _compute_file_hash(self, file_path: Path) -> str:
        """Compute MD5 hash of file for auditing"""
        hash_md5 = hashlib.md5()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                hash_md5.update(chunk)
        return hash_md5.hexdigest()

    def _read_csv(self, config: BatchFileConfig) -> pl.DataFrame:
        """Read CSV file with every column as text"""
        return pl.read_csv(
            config.file_path,
            separator=config.delimiter,
            encoding=config.encoding,
            null_values=self.null_values or config.null_values,
            infer_schema=False,
        )

    def _read_jsonl(self, config: BatchFileConfig) -> pl.DataFrame:
        """Read JSON Lines (NDJSON) file"""
        return pl.read_ndjson(config.file_path)

    def _read_parquet(self, config: BatchFileConfig) -> pl.DataFrame:
        """Read Parquet file"""
        return pl.read_parquet(config.file_path)

    def _read_file(self, config: BatchFileConfig) -> pl.DataFrame:
        """Read file based on format"""
        readers = {
            FileFormat.CSV: self._read_csv,
            FileFormat.JSONL: self._read_jsonl,
            FileFormat.PARQUET: self._read_parquet,
        }
        reader = readers.get(FileFormat(config.file_format))
        if not reader:
            raise ValueError(f"Unsupported file format: {config.file_format}")
        return reader(config)

    def load_table(self, config: BatchFileConfig) -> Tuple[pl.DataFrame, LoadResult]:
        """
        Read one table file and conform it to its schema.

        Args:
            config: Batch file configuration

        Returns:
            The conformed frame and the load result

        Raises:
            FileNotFoundError: If the file does not exist
            SchemaViolationError: If the file does not match the table schema
        """
        file_path = Path(config.file_path)
        started_at = _utcnow()

        result = LoadResult(
            file_path=str(file_path),
            target_table=config.table.name,
            status=LoadStatus.RUNNING,
            started_at=started_at,
        )
        self.results.append(result)

        logger.info("Starting table load", file=str(file_path), table=config.table.name)

        try:
            if not file_path.exists():
                raise FileNotFoundError(f"File not found: {file_path}")

            result.file_hash = self._compute_file_hash(file_path)
            df = conform_frame(self._read_file(config), config.table)
        except Exception as e:
            result.status = LoadStatus.FAILED
            result.error_message = str(e)
            result.completed_at = _utcnow()
            result.load_duration_seconds = (result.completed_at - started_at).total_seconds()
            logger.error("Table load failed", error=str(e), file=str(file_path))
            raise

        result.status = LoadStatus.COMPLETED
        result.rows_loaded = df.height
        result.completed_at = _utcnow()
        result.load_duration_seconds = (result.completed_at - started_at).total_seconds()

        logger.info(
            "Table load completed",
            table=config.table.name,
            rows_loaded=result.rows_loaded,
            duration_seconds=result.load_duration_seconds,
        )
        return df, result

    def load_snapshot(
        self,
        directory: Optional[Union[str, Path]] = None,
        file_format: Optional[FileFormat] = None,
    ) -> SalesSnapshot:
        """
        Load the three configured table files from a directory.

        Args:
            directory: Directory holding the files; defaults to settings.data.raw_path
            file_format: File format; defaults to settings.data.file_format

        Returns:
            SalesSnapshot built from the three files
        """
        data_settings = get_settings().data
        directory = Path(directory or data_settings.raw_path)
        file_format = FileFormat(file_format or data_settings.file_format)

        stems = {
            CUSTOMERS.name: data_settings.customers_file,
            PRODUCTS.name: data_settings.products_file,
            SALES.name: data_settings.sales_file,
        }

        frames = {}
        for table in (CUSTOMERS, PRODUCTS, SALES):
            config = BatchFileConfig(
                file_path=directory / f"{stems[table.name]}.{file_format.value}",
                file_format=file_format,
                table=table,
            )
            frames[table.name], _ = self.load_table(config)

        # Frames are already conformed; conforming again is a no-op select
        return SalesSnapshot.from_frames(
            frames[CUSTOMERS.name],
            frames[PRODUCTS.name],
            frames[SALES.name],
        )
