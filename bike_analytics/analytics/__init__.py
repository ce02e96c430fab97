"""
Analytics Reporting Engine
"""
from .metrics import MetricsEngine
from .report import BusinessMetricsReport, JoinPolicy
from .schema import SchemaViolationError
from .snapshot import SalesSnapshot

__all__ = [
    "MetricsEngine",
    "BusinessMetricsReport",
    "JoinPolicy",
    "SchemaViolationError",
    "SalesSnapshot",
]
