"""
Data Validation Module

Rule-based quality checks for the star-schema snapshot. A check never
raises on bad data; it reports how many rows fail and at which severity.

Features:
- Null and uniqueness checks on keys
- Range checks on measures
- Allowed-value checks on coded attributes
- Date ordering checks on the fact table
- Referential integrity checks against the dimensions
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

import polars as pl
import structlog

from bike_analytics.analytics.schema import CUSTOMERS, PRODUCTS, SALES
from bike_analytics.analytics.snapshot import SalesSnapshot

logger = structlog.get_logger(__name__)

CheckFunc = Callable[[pl.DataFrame], "ValidationCheck"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Data cannot be trusted for reporting
    WARNING = "warning"  # Data-quality signal, reporting continues
    INFO = "info"


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return self.passed_checks / self.total_checks * 100

    def get_check(self, name: str) -> ValidationCheck:
        for check in self.checks:
            if check.name == name:
                return check
        raise KeyError(name)


def _row_check(
    name: str,
    df: pl.DataFrame,
    failed: int,
    severity: ValidationSeverity,
    fail_message: str,
    pass_message: str,
    **details: Any,
) -> ValidationCheck:
    """Build the result of a check that counts failing rows"""
    return ValidationCheck(
        name=name,
        passed=failed == 0,
        severity=severity,
        message=fail_message if failed else pass_message,
        details=details,
        failed_rows=failed,
        total_rows=df.height,
    )


def _requires(name: str, columns: Sequence[str], severity: ValidationSeverity, body: CheckFunc) -> CheckFunc:
    """Wrap a check so a missing column fails it instead of raising"""
    def check(df: pl.DataFrame) -> ValidationCheck:
        missing = [c for c in columns if c not in df.columns]
        if missing:
            return ValidationCheck(
                name=name,
                passed=False,
                severity=severity,
                message=f"Column '{missing[0]}' not found",
                details={"missing_columns": missing},
                total_rows=df.height,
            )
        return body(df)

    return check


class DataValidator:
    """
    Chainable check suite over one table.

    Example:
        result = (
            DataValidator()
            .add_not_null_check("customer_key")
            .add_non_negative_check("quantity")
            .validate(df)
        )
    """

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode  # Warnings fail the suite
        self._checks: List[CheckFunc] = []

    def reset(self) -> None:
        self._checks = []

    def _add(self, name: str, columns: Sequence[str], severity: ValidationSeverity, body: CheckFunc) -> "DataValidator":
        self._checks.append(_requires(name, columns, severity, body))
        return self

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        name = f"not_null_{column}"

        def body(df: pl.DataFrame) -> ValidationCheck:
            nulls = df[column].null_count()
            return _row_check(
                name, df, nulls, severity,
                f"Column '{column}' has {nulls} null values",
                f"Column '{column}' has no null values",
                null_count=nulls,
                null_percentage=nulls / df.height * 100 if df.height else 0,
            )

        return self._add(name, [column], severity, body)

    def add_unique_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Non-null values must be distinct; nulls are the not-null check's concern"""
        name = f"unique_{column}"

        def body(df: pl.DataFrame) -> ValidationCheck:
            values = df[column].drop_nulls()
            distinct = values.n_unique()
            duplicates = values.len() - distinct
            return _row_check(
                name, df, duplicates, severity,
                f"Column '{column}' has {duplicates} duplicate values",
                f"Column '{column}' values are unique",
                unique_count=distinct,
                duplicate_count=duplicates,
            )

        return self._add(name, [column], severity, body)

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Values outside [min_value, max_value] fail; nulls are ignored"""
        name = f"range_{column}"
        bounds = []
        if min_value is not None:
            bounds.append(pl.col(column) < min_value)
        if max_value is not None:
            bounds.append(pl.col(column) > max_value)

        def body(df: pl.DataFrame) -> ValidationCheck:
            outside = df.filter(pl.any_horizontal(bounds)).height if bounds else 0
            return _row_check(
                name, df, outside, severity,
                f"Column '{column}' has {outside} values outside [{min_value}, {max_value}]",
                "All values in range",
                min=min_value,
                max=max_value,
                out_of_range_count=outside,
            )

        return self._add(name, [column], severity, body)

    def add_non_negative_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        return self.add_range_check(column, min_value=0, severity=severity)

    def add_enum_check(
        self,
        column: str,
        allowed_values: List[Any],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        name = f"enum_{column}"

        def body(df: pl.DataFrame) -> ValidationCheck:
            invalid = df.filter(
                pl.col(column).is_not_null() & ~pl.col(column).is_in(allowed_values)
            ).height
            return _row_check(
                name, df, invalid, severity,
                f"Column '{column}' has {invalid} values outside {allowed_values}",
                "All values are valid",
                allowed_values=allowed_values,
                invalid_count=invalid,
            )

        return self._add(name, [column], severity, body)

    def add_date_order_check(
        self,
        earlier: str,
        later: str,
        severity: ValidationSeverity = ValidationSeverity.WARNING,
    ) -> "DataValidator":
        """`earlier` must not fall after `later` where both dates are set"""
        name = f"date_order_{earlier}_{later}"

        def body(df: pl.DataFrame) -> ValidationCheck:
            violations = df.filter(pl.col(earlier) > pl.col(later)).height
            return _row_check(
                name, df, violations, severity,
                f"{violations} rows have '{earlier}' after '{later}'",
                f"'{earlier}' never after '{later}'",
                violation_count=violations,
            )

        return self._add(name, [earlier, later], severity, body)

    def add_custom_check(
        self,
        name: str,
        check_func: Callable[[pl.DataFrame], bool],
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Whole-table predicate; no per-row failure count"""
        def body(df: pl.DataFrame) -> ValidationCheck:
            passed = bool(check_func(df))
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message="Check passed" if passed else message_on_fail,
                total_rows=df.height,
            )

        return self._add(name, [], severity, body)

    def add_referential_integrity_check(
        self,
        column: str,
        reference_df: pl.DataFrame,
        reference_column: str,
        severity: ValidationSeverity = ValidationSeverity.WARNING,
    ) -> "DataValidator":
        """Every non-null value must exist in reference_df[reference_column]"""
        name = f"ref_integrity_{column}"
        known = reference_df.select(pl.col(reference_column).alias(column)).drop_nulls().unique()

        def body(df: pl.DataFrame) -> ValidationCheck:
            orphans = df.filter(pl.col(column).is_not_null()).join(known, on=column, how="anti").height
            return _row_check(
                name, df, orphans, severity,
                f"Column '{column}' has {orphans} orphan records",
                "Referential integrity maintained",
                orphan_count=orphans,
            )

        return self._add(name, [column], severity, body)

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run every registered check against the frame.

        Status is FAILED when an ERROR check fails (or a WARNING check in
        strict mode), PARTIAL when only WARNING checks fail, else PASSED.
        """
        started_at = _utcnow()
        checks = [check(df) for check in self._checks]

        for check in checks:
            if not check.passed:
                logger.warning(
                    "Validation check failed",
                    check=check.name,
                    severity=check.severity.value,
                    failed_rows=check.failed_rows,
                    message=check.message,
                )

        failures = [c for c in checks if not c.passed]
        errors = sum(1 for c in failures if c.severity == ValidationSeverity.ERROR)
        warnings = sum(1 for c in failures if c.severity == ValidationSeverity.WARNING)

        if errors or (warnings and self.strict_mode):
            status = ValidationStatus.FAILED
        elif warnings:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        logger.info(
            "Validation complete",
            status=status.value,
            rows=df.height,
            checks=len(checks),
            errors=errors,
            warnings=warnings,
        )

        return ValidationResult(
            status=status,
            total_checks=len(checks),
            passed_checks=len(checks) - len(failures),
            failed_checks=errors,
            warning_count=warnings,
            checks=checks,
            started_at=started_at,
            completed_at=_utcnow(),
        )


# Pre-built validators for the snapshot tables
def create_customers_validator() -> DataValidator:
    return (
        DataValidator()
        .add_not_null_check("customer_key")
        .add_unique_check("customer_key")
        .add_enum_check("gender", ["Male", "Female", "n/a"], severity=ValidationSeverity.WARNING)
        .add_enum_check("marital_status", ["Married", "Single", "n/a"], severity=ValidationSeverity.WARNING)
        .add_not_null_check("birthdate", severity=ValidationSeverity.WARNING)
    )


def create_products_validator() -> DataValidator:
    return (
        DataValidator()
        .add_not_null_check("product_key")
        .add_unique_check("product_key")
        .add_non_negative_check("cost")
        .add_not_null_check("start_date", severity=ValidationSeverity.WARNING)
    )


def create_sales_validator(customers: pl.DataFrame, products: pl.DataFrame) -> DataValidator:
    """fact_sales checks; keys are matched against the given dimensions"""
    return (
        DataValidator()
        .add_not_null_check("order_number")
        .add_non_negative_check("quantity")
        .add_non_negative_check("sales_amount")
        .add_non_negative_check("price")
        .add_date_order_check("order_date", "shipping_date")
        .add_date_order_check("shipping_date", "due_date")
        .add_referential_integrity_check("product_key", products, "product_key")
        .add_referential_integrity_check("customer_key", customers, "customer_key")
    )


def validate_snapshot(snapshot: SalesSnapshot) -> Dict[str, ValidationResult]:
    """Run the pre-built validators over all three tables, keyed by table name"""
    return {
        CUSTOMERS.name: create_customers_validator().validate(snapshot.customers),
        PRODUCTS.name: create_products_validator().validate(snapshot.products),
        SALES.name: create_sales_validator(snapshot.customers, snapshot.products).validate(snapshot.sales),
    }
