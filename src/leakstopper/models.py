# src/leakstopper/models.py
"""
Typed records shared by ingestion, the scoring engine and the presentation layer.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Literal, get_args

import pandas as pd

from . import config

RiskLevel = Literal["critical", "high", "medium", "low"]
RiskFilter = Literal["all", "critical", "high", "medium"]
SectorType = Literal["Pharma", "ECommerce", "SaaS"]

RISK_FILTERS: tuple[str, ...] = get_args(RiskFilter)
SECTORS: tuple[str, ...] = get_args(SectorType)

# "unknown / never purchased"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Customer:
    """A single row of the customer export after ingestion."""

    id: str
    name: str
    email: str = ""
    phone: str | None = None
    company_name: str | None = None
    last_purchase_date: datetime = EPOCH
    total_revenue: float = 0.0
    favorite_product: str | None = None
    purchase_count: int | None = None  # None means unknown, not zero

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(Customer)}
        data["last_purchase_date"] = self.last_purchase_date.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Customer:
        known = {f.name for f in fields(Customer)}
        kwargs = {k: v for k, v in data.items() if k in known}
        raw_date = kwargs.get("last_purchase_date")
        if isinstance(raw_date, str) and raw_date:
            kwargs["last_purchase_date"] = datetime.fromisoformat(raw_date)
        elif not isinstance(raw_date, datetime):
            kwargs["last_purchase_date"] = EPOCH
        return cls(**kwargs)


@dataclass(frozen=True, kw_only=True)
class LeakedCustomer(Customer):
    """Customer plus the values derived for it during one analysis run."""

    days_since_last_purchase: int
    leak_score: int
    estimated_lost_revenue: float
    risk_level: RiskLevel


@dataclass(frozen=True)
class FilterOptions:
    threshold_days: int = config.DEFAULT_THRESHOLD_DAYS
    min_spending: float = config.DEFAULT_MIN_SPENDING
    risk_level: RiskFilter = config.DEFAULT_RISK_LEVEL  # type: ignore[assignment]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> FilterOptions:
        """Build filters from persisted data, falling back to defaults per field."""
        if not data:
            return cls()
        defaults = cls()
        risk_level = data.get("risk_level", defaults.risk_level)
        if risk_level not in RISK_FILTERS:
            risk_level = defaults.risk_level
        try:
            threshold_days = int(data.get("threshold_days", defaults.threshold_days))
        except (TypeError, ValueError):
            threshold_days = defaults.threshold_days
        if threshold_days <= 0:
            threshold_days = defaults.threshold_days
        try:
            min_spending = float(data.get("min_spending", defaults.min_spending))
        except (TypeError, ValueError):
            min_spending = defaults.min_spending
        return cls(
            threshold_days=threshold_days,
            min_spending=min_spending,
            risk_level=risk_level,
        )


@dataclass(frozen=True)
class AnalysisResult:
    total_customers: int
    active_customers: int
    leaked_customers: int
    leak_rate: float  # percent, one decimal
    total_revenue: float
    lost_revenue: int
    bucket_health: int  # 0-100
    leak_velocity: float  # 0-10, presentation pacing only
    top_leaked_customers: tuple[LeakedCustomer, ...] = field(default_factory=tuple)

    def to_frame(self) -> pd.DataFrame:
        """Ranked reclamation targets as a DataFrame (one row per customer)."""
        columns = [f.name for f in fields(LeakedCustomer)]
        rows = [asdict(c) for c in self.top_leaked_customers]
        return pd.DataFrame(rows, columns=columns)
