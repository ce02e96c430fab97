"""
Database Module
"""
from .connection import init_database, close_database, create_tables, get_db, get_engine, snapshot_session
from .models import Base, DimCustomer, DimProduct, FactSale

__all__ = [
    "init_database",
    "close_database",
    "create_tables",
    "get_db",
    "get_engine",
    "snapshot_session",
    "Base",
    "DimCustomer",
    "DimProduct",
    "FactSale",
]
