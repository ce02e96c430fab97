"""
Bike Sales Analytics
Centralized Configuration Management

Pydantic settings with environment variable support, validation, and type safety.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="bike_sales", description="Database name")
    user: str = Field(default="analytics", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, alias="DATABASE_URL", description="Full URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL - uses DATABASE_URL if set, otherwise asyncpg from host/port"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class DataSettings(BaseSettings):
    """Snapshot File Locations"""

    model_config = SettingsConfigDict(env_prefix="DATA_")

    raw_path: str = Field(default="./data/raw", description="Directory holding the snapshot files")
    file_format: str = Field(default="csv", description="Snapshot file format: csv, parquet or jsonl")
    customers_file: str = Field(default="dim_customers", description="Customers file stem")
    products_file: str = Field(default="dim_products", description="Products file stem")
    sales_file: str = Field(default="fact_sales", description="Sales file stem")
    null_values: List[str] = Field(
        default=["", "NULL", "null", "None", "NA"],
        description="Tokens read as null from text files",
    )


class AgeBand(BaseModel):
    """Inclusive integer-year age band"""
    label: str
    min_age: int
    max_age: int


class AnalyticsSettings(BaseSettings):
    """Metrics Engine Configuration"""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    unknown_genders: List[str] = Field(
        default=["n/a"],
        description="Gender values excluded from the gender distribution",
    )
    age_bands: List[AgeBand] = Field(
        default=[
            AgeBand(label="20-30", min_age=20, max_age=30),
            AgeBand(label="31-40", min_age=31, max_age=40),
        ],
        description="Age bands, checked in order",
    )
    age_overflow_label: str = Field(default="40+", description="Bucket for ages outside every band")
    age_unknown_label: str = Field(default="unknown", description="Bucket for missing or future birthdates")
    max_workers: int = Field(default=4, description="Threads used by compute_many")

    @field_validator("age_bands")
    @classmethod
    def validate_bands(cls, v: List[AgeBand]) -> List[AgeBand]:
        """Reject inverted bands"""
        for band in v:
            if band.min_age > band.max_age:
                raise ValueError(f"Age band {band.label!r} has min_age > max_age")
        return v


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = Field(default="bike-sales-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")
    version: str = Field(default="1.0.0", description="Application version")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    data: DataSettings = Field(default_factory=DataSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
