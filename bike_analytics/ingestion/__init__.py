"""
Data Ingestion Module
"""
from .batch_loader import BatchLoader, BatchFileConfig, FileFormat, LoadResult, LoadStatus
from .db_loader import load_snapshot, seed_snapshot

__all__ = [
    "BatchLoader",
    "BatchFileConfig",
    "FileFormat",
    "LoadResult",
    "LoadStatus",
    "load_snapshot",
    "seed_snapshot",
]
