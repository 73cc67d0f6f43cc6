"""Configuration for the stock ledger analytics."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings

DEFAULT_CURRENCY = "USD"


class LedgerSettings(BaseSettings):
    """Tunable parameters for the ledger and metrics passes."""

    trading_days_per_year: int = Field(
        default=252,
        gt=0,
        description="Annualization factor applied to daily return volatility.",
    )
    trailing_window_years: int = Field(
        default=5,
        gt=0,
        description="Trailing window for drawdown, volatility and best/worst day.",
    )
    dividend_lookback_days: int = Field(default=365, gt=0)
    cagr_day_basis: float = Field(default=365.0, gt=0)
    share_epsilon: float = Field(
        default=1e-9,
        ge=0.0,
        description="Tolerance used when comparing share counts.",
    )
    include_closed_positions: bool = Field(default=True)
    default_currency: str = Field(default=DEFAULT_CURRENCY, min_length=3, max_length=3)

    log_level: str = Field(default="INFO")

    telemetry_enabled: bool = Field(default=False)
    telemetry_service_name: str = Field(default="stock-ledger")
    telemetry_otlp_endpoint: str | None = Field(default=None)
    telemetry_otlp_insecure: bool = Field(default=True)
    telemetry_sample_ratio: float = Field(default=1.0, ge=0.0, le=1.0)

    class Config:
        env_prefix = "STOCK_LEDGER_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def dict_for_logging(self) -> dict[str, Any]:
        """Return the settings as a plain dict for a startup log line."""

        return dict(self.model_dump())


@lru_cache(maxsize=1)
def get_settings(**overrides: Any) -> LedgerSettings:
    """Return cached settings with optional overrides."""

    if overrides:
        return LedgerSettings(**overrides)
    return LedgerSettings()


__all__ = ["LedgerSettings", "DEFAULT_CURRENCY", "get_settings"]
